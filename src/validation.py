"""Data-integrity checks for family tree data."""

from collections.abc import Mapping

import networkx as nx

from graph import PARENT_OF, build_graph
from models import Person, normalize_person


def _relations(person: Person) -> list[tuple[str, str]]:
    person = normalize_person(person)
    pairs = [("parent", i) for i in person.parents]
    pairs += [("child", i) for i in person.children]
    pairs += [("sibling", i) for i in person.siblings]
    pairs += [("spouse", i) for i in person.spouse_ids()]
    return pairs


def validate_tree(persons: Mapping[str, Person]) -> list[str]:
    """
    Validate the Person map for:
    - Self-referential and dangling relations
    - Siblings declared across generations
    - Children not placed below their parents
    - Cycles in parent-child relationships
    - Impossible dates (child born before parent, death before birth)

    Nothing here is fatal; returns a list of warning messages.
    """
    warnings: list[str] = []

    for pid, person in persons.items():
        for relation, other_id in _relations(person):
            if other_id == pid:
                warnings.append(f"{person.name or pid} is listed as their own {relation}")
            elif other_id not in persons:
                warnings.append(
                    f"{person.name or pid} lists missing {relation} {other_id!r}"
                )
            elif relation == "sibling" and persons[other_id].generation != person.generation:
                warnings.append(
                    f"Sibling generation mismatch: {pid} ({person.generation}) and "
                    f"{other_id} ({persons[other_id].generation})"
                )

    G = build_graph(persons)

    for parent, child, data in G.edges(data=True):
        if data.get("relationship_type") != PARENT_OF:
            continue
        parent_data = persons[parent]
        child_data = persons[child]

        if child_data.generation <= parent_data.generation:
            warnings.append(
                f"Inconsistent generation: {child_data.name or child} "
                f"(generation {child_data.generation}) is a child of "
                f"{parent_data.name or parent} (generation {parent_data.generation})"
            )

        # ISO dates compare correctly as strings
        parent_birth = parent_data.date_of_birth
        child_birth = child_data.date_of_birth
        if parent_birth and child_birth and child_birth < parent_birth:
            warnings.append(
                f"Impossible: {child_data.name} born before parent {parent_data.name}"
            )

    parent_graph = nx.DiGraph(
        (u, v) for u, v, d in G.edges(data=True) if d.get("relationship_type") == PARENT_OF
    )
    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        warnings.append(
            f"Cycle detected in parent-child relationships: {[edge[0] for edge in cycle]}"
        )
    except nx.NetworkXNoCycle:
        pass

    for person in persons.values():
        if person.date_of_birth and person.date_of_death:
            if person.date_of_death < person.date_of_birth:
                warnings.append(f"Impossible: {person.name} died before being born")

    return warnings
