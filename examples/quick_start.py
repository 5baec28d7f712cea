#!/usr/bin/env python3
"""
Quick Start - Build a small object graph, watch its patches, round trip it.

Demonstrates:
- Declaring model types and references
- Upserting nested records
- Back-references computed from the collection
- Listening to patches
- Serializing to JSON and back

Usage:
    python examples/quick_start.py
"""

from trellis import Collection, ExternalRef, Model


class Person(Model):
    type = "person"
    refs = {
        "spouse": "person",
        "pets": ExternalRef(model="pet", property="owner"),
    }


class Pet(Model):
    type = "pet"
    refs = {"owner": "person"}


class Kennel(Model):
    type = "kennel"
    refs = {"dogs": "pet"}


class Zoo(Collection):
    types = [Person, Pet, Kennel]


def main():
    print("=" * 60)
    print("  Trellis Quick Start")
    print("=" * 60)
    print()

    zoo = Zoo()

    # Nested records are upserted and stored as ids
    fido = zoo.add({"id": 1, "name": "Fido", "owner": {"id": 1, "name": "John"}}, "pet")
    zoo.add({"id": 2, "name": "Rex", "owner": 1}, "pet")
    kennel = zoo.add({"id": 1, "dogs": [1, 2]}, "kennel")

    john = zoo.find("person", 1)
    print(f"{fido.name} belongs to {fido.owner.name} (owner_id={fido.owner_id})")
    print(f"{john.name} owns {[pet.name for pet in john.pets]}")
    print(f"Kennel holds {[dog.name for dog in kennel.dogs]}")
    print()

    print("Patches:")
    print("-" * 60)
    unsubscribe = zoo.patch_listen(lambda patch, model: print(f"  {model!r:16s} {patch.to_dict()}"))
    fido.name = "Fido II"
    fido.owner = {"id": 2, "name": "Jane"}
    kennel.dogs.append({"id": 3, "name": "Max"})
    unsubscribe()
    print()

    print("JSON round trip:")
    print("-" * 60)
    text = zoo.to_json()
    clone = Zoo.from_json(text)
    print(f"  {len(clone)} records, {len(clone.pet)} pets")
    print(f"  {clone.find('pet', 1).name} belongs to {clone.find('pet', 1).owner.name}")


if __name__ == "__main__":
    main()
