"""Tests for patch emission and replay."""

import pytest

from trellis.store import Collection, Model, Patch, PatchType


class Person(Model):
    type = "person"


class Pet(Model):
    type = "pet"
    refs = {"owner": "person"}


class Kennel(Model):
    type = "kennel"
    refs = {"dogs": "pet"}


class Zoo(Collection):
    types = [Person, Pet, Kennel]


@pytest.fixture
def zoo():
    return Zoo()


@pytest.fixture
def patches():
    return []


def record(patches):
    """Listener appending (patch, model) pairs to a list."""

    def listener(patch, model):
        patches.append((patch, model))

    return listener


class TestPatchObject:
    """Tests for the Patch dataclass."""

    def test_field(self):
        """field is the path without its leading slash."""
        patch = Patch(op="add", path="/name", value="John")

        assert patch.op is PatchType.ADD
        assert patch.field == "name"

    def test_dict_form(self):
        """The dict form uses oldValue and converts back."""
        patch = Patch(op=PatchType.REPLACE, path="/age", value=2, old_value=1)

        data = patch.to_dict()

        assert data == {"op": "replace", "path": "/age", "value": 2, "oldValue": 1}
        assert Patch.from_dict(data) == patch

    def test_unknown_op(self):
        """Unknown operations are rejected."""
        with pytest.raises(ValueError):
            Patch(op="move", path="/a")


class TestEmission:
    """Tests for patches emitted by mutations."""

    def test_no_patches_during_construction(self, zoo, patches):
        """Construction is silent; the listener sees later changes."""
        pet = Pet({"id": 1, "name": "Fido", "owner": {"id": 1}}, zoo, record(patches))

        assert patches == []

        pet.name = "Rex"

        assert len(patches) == 1
        patch, model = patches[0]
        assert model is pet
        assert patch == Patch(op="replace", path="/name", value="Rex", old_value="Fido")

    def test_no_patches_for_added_records(self, zoo, patches):
        """Adding new records emits nothing."""
        zoo.patch_listen(record(patches))

        zoo.add({"id": 1, "name": "John"}, "person")
        zoo.add({"id": 1, "owner": 1}, "pet")

        assert patches == []

    def test_upsert_emits_patches(self, zoo, patches):
        """Merging into an existing model emits its changes."""
        john = zoo.add({"id": 1, "name": "John"}, "person")
        john.patch_listen(record(patches))

        zoo.add({"id": 1, "name": "Johnny", "age": 3}, "person")

        assert [(p.op, p.field) for p, _ in patches] == [
            (PatchType.REPLACE, "name"),
            (PatchType.ADD, "age"),
        ]

    def test_add_patch(self, zoo, patches):
        """A new field emits an add patch."""
        john = zoo.add({"id": 1}, "person")
        john.patch_listen(record(patches))

        john.nickname = "JJ"

        patch, _ = patches[0]
        assert patch.op is PatchType.ADD
        assert patch.path == "/nickname"
        assert patch.value == "JJ"
        assert patch.old_value is None

    def test_unchanged_value_is_silent(self, zoo, patches):
        """Storing an equal value emits nothing."""
        john = zoo.add({"id": 1, "name": "John"}, "person")
        john.patch_listen(record(patches))

        john.name = "John"

        assert patches == []

    def test_remove_patch(self, zoo, patches):
        """unassign() emits a remove patch with the old value."""
        john = zoo.add({"id": 1, "name": "John"}, "person")
        john.patch_listen(record(patches))

        john.unassign("name")

        patch, _ = patches[0]
        assert patch.op is PatchType.REMOVE
        assert patch.value is None
        assert patch.old_value == "John"

    def test_reference_patches(self, zoo, patches):
        """Reference patches carry resolved models."""
        john = zoo.add({"id": 1}, "person")
        jane = zoo.add({"id": 2}, "person")
        fido = zoo.add({"id": 1}, "pet")
        fido.patch_listen(record(patches))

        fido.owner = john
        fido.owner = jane
        fido.owner = jane
        fido.owner = None

        assert [(p.op, p.value, p.old_value) for p, _ in patches] == [
            (PatchType.ADD, john, None),
            (PatchType.REPLACE, jane, john),
            (PatchType.REMOVE, None, jane),
        ]

    def test_unresolved_reference_is_silent(self, zoo, patches):
        """A reference that resolves to nothing either way emits nothing."""
        fido = zoo.add({"id": 1}, "pet")
        fido.patch_listen(record(patches))

        fido.owner = 5

        assert patches == []
        assert fido.owner_id == 5

    def test_reference_list_edits(self, zoo, patches):
        """Each ReferenceList edit emits one replace patch."""
        fido, rex = zoo.add([{"id": 1}, {"id": 2}], "pet")
        kennel = zoo.add({"id": 1, "dogs": [1]}, "kennel")
        kennel.patch_listen(record(patches))

        kennel.dogs.append(rex)
        del kennel.dogs[0]

        assert [p.op for p, _ in patches] == [PatchType.REPLACE, PatchType.REPLACE]
        assert patches[0][0].old_value == [fido]
        assert patches[0][0].value == [fido, rex]
        assert patches[1][0].value == [rex]

    def test_assign_ref_patch(self, zoo, patches):
        """assign_ref() emits a single add patch."""
        john = zoo.add({"id": 1}, "person")
        fido = zoo.add({"id": 1}, "pet")
        fido.patch_listen(record(patches))

        fido.assign_ref("vet", john)

        assert len(patches) == 1
        patch, _ = patches[0]
        assert patch.op is PatchType.ADD
        assert patch.path == "/vet"
        assert patch.value is john

    def test_listener_order(self, zoo):
        """Model listeners run in order before collection listeners."""
        calls = []
        john = zoo.add({"id": 1}, "person")
        zoo.patch_listen(lambda patch, model: calls.append("collection"))
        john.patch_listen(lambda patch, model: calls.append("first"))
        john.patch_listen(lambda patch, model: calls.append("second"))

        john.name = "John"

        assert calls == ["first", "second", "collection"]

    def test_unsubscribe(self, zoo, patches):
        """Unsubscribed listeners stop receiving patches."""
        john = zoo.add({"id": 1}, "person")
        unsubscribe = john.patch_listen(record(patches))
        unsubscribe_all = zoo.patch_listen(record(patches))

        john.name = "John"
        unsubscribe()
        unsubscribe_all()
        john.name = "Jane"

        assert len(patches) == 2

    def test_removed_model_stops_notifying_collection(self, zoo, patches):
        """Removed models no longer notify the collection."""
        john = zoo.add({"id": 1}, "person")
        zoo.patch_listen(record(patches))
        zoo.remove("person", 1)

        john.name = "John"

        assert patches == []

    def test_listener_reads_new_field(self, zoo):
        """Listeners can read a field added by the patch they receive."""
        seen = []
        john = zoo.add({"id": 1}, "person")
        john.patch_listen(lambda patch, model: seen.append(getattr(model, patch.field)))

        john.name = "John"

        assert seen == ["John"]

    def test_listener_reads_new_reference(self, zoo):
        """Listeners can read a reference declared by assign_ref()."""
        seen = []
        john = zoo.add({"id": 1}, "person")
        fido = zoo.add({"id": 1}, "pet")
        fido.patch_listen(lambda patch, model: seen.append((model.vet, model.vet_id)))

        fido.assign_ref("vet", john)

        assert seen == [(john, 1)]

    def test_reentrant_listener(self, zoo):
        """A listener may mutate the model it listens to."""
        fields = []
        john = zoo.add({"id": 1}, "person")

        def listener(patch, model):
            fields.append(patch.field)
            if patch.field == "name":
                model.nickname = model.name.lower()

        john.patch_listen(listener)
        john.name = "John"

        assert fields == ["name", "nickname"]
        assert john.nickname == "john"
        assert zoo.find("person", 1) is john
        assert len(zoo) == 1


class TestApplyPatch:
    """Tests for replaying patches."""

    def test_replay_into_clone(self, zoo):
        """Replaying patches keeps a clone in sync."""
        zoo.add([{"id": 1, "name": "John"}, {"id": 2, "name": "Jane"}], "person")
        fido = zoo.add({"id": 1, "name": "Fido", "owner": 1}, "pet")
        clone = Zoo(zoo.serialize())
        clone_fido = clone.find("pet", 1)

        fido.patch_listen(lambda patch, model: clone_fido.apply_patch(patch))
        fido.name = "Rex"
        fido.owner = 2
        fido.unassign("name")

        assert clone_fido.owner is clone.find("person", 2)
        assert "name" not in clone_fido
        assert clone_fido.serialize() == fido.serialize()

    def test_apply_dict_patch(self):
        """apply_patch() accepts the dict form."""
        john = Person({"id": 1})

        john.apply_patch({"op": "add", "path": "/name", "value": "John"})
        assert john.name == "John"

        john.apply_patch({"op": "remove", "path": "/name"})
        assert "name" not in john
