"""Partition persons into generation rows."""

from collections.abc import Mapping

from models import Person


def group_by_generation(persons: Mapping[str, Person]) -> dict[int, list[Person]]:
    """
    Group persons by their `generation` field.

    Rows keep the iteration order of `persons`; no secondary sort is applied.
    Generations with no members do not appear.
    """
    groups: dict[int, list[Person]] = {}
    for person in persons.values():
        groups.setdefault(person.generation, []).append(person)
    return groups


def sorted_generations(groups: Mapping[int, list[Person]]) -> list[int]:
    return sorted(groups)
