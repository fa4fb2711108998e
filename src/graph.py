"""NetworkX graph building and operations over the Person map."""

from collections.abc import Mapping
from dataclasses import replace

import networkx as nx

from errors import ValidationError
from models import Person, normalize_person

PARENT_OF = "PARENT_OF"
SPOUSE_OF = "SPOUSE_OF"
SIBLING_OF = "SIBLING_OF"


def build_graph(persons: Mapping[str, Person]) -> nx.DiGraph:
    """
    Build a NetworkX directed graph from the Person map.

    PARENT_OF edges go parent -> child. SPOUSE_OF and SIBLING_OF edges are stored
    once per pair, from the lower id to the higher one. References to persons
    outside the map and self-references are skipped.
    """
    G = nx.DiGraph()

    for pid, person in persons.items():
        G.add_node(
            pid,
            person_name=person.name,
            gender=person.gender.value if person.gender else None,
            generation=person.generation,
        )

    def add(u: str, v: str, relationship_type: str):
        if u == v or u not in persons or v not in persons:
            return
        if relationship_type != PARENT_OF:
            u, v = sorted((u, v))
        G.add_edge(u, v, relationship_type=relationship_type)

    for pid, person in persons.items():
        person = normalize_person(person)
        for child_id in person.children:
            add(pid, child_id, PARENT_OF)
        for parent_id in person.parents:
            add(parent_id, pid, PARENT_OF)
        for spouse_id in person.spouse_ids():
            add(pid, spouse_id, SPOUSE_OF)
        for sibling_id in person.siblings:
            add(pid, sibling_id, SIBLING_OF)

    return G


def derive_generations(persons: Mapping[str, Person]) -> dict[str, int]:
    """
    Derive generations by breadth-first propagation from generation-0 anchors.

    Walking a PARENT_OF edge downwards adds one generation, upwards subtracts
    one; spouses and siblings share a generation. Persons with no path to an
    anchor keep their asserted `generation`. Derived values are relative to the
    anchors and can be negative for ancestors of an anchor.
    """
    G = build_graph(persons)
    undirected = G.to_undirected(as_view=True)
    derived: dict[str, int] = {}

    anchors = [pid for pid, p in persons.items() if p.generation == 0]
    for anchor in anchors:
        if anchor in derived:
            continue
        derived[anchor] = 0
        for u, v in nx.bfs_edges(undirected, anchor):
            if v in derived:
                continue
            if G.has_edge(u, v) and G.edges[u, v]["relationship_type"] == PARENT_OF:
                derived[v] = derived[u] + 1
            elif G.has_edge(v, u) and G.edges[v, u]["relationship_type"] == PARENT_OF:
                derived[v] = derived[u] - 1
            else:
                derived[v] = derived[u]

    for pid, person in persons.items():
        derived.setdefault(pid, person.generation)
    return derived


def with_derived_generations(persons: Mapping[str, Person]) -> dict[str, Person]:
    generations = derive_generations(persons)
    return {
        pid: p if p.generation == generations[pid] else replace(p, generation=generations[pid])
        for pid, p in persons.items()
    }


def neighbourhood_ids(G: nx.DiGraph, center_id: str, radius: int = 2) -> set[str]:
    """
    Ids of persons at most `radius` relations away from `center_id`.

    Relations count in both directions, so a parent, child, spouse or sibling
    is one step away.

    Raises:
        ValidationError: if `center_id` is not a person in `G`.
    """
    if center_id not in G:
        raise ValidationError(f"No person with id {center_id!r} to focus on")
    return set(nx.ego_graph(G.to_undirected(as_view=True), center_id, radius=radius))


def focus_subgraph(
    persons: Mapping[str, Person], center_id: str, radius: int = 2
) -> dict[str, Person]:
    """
    Restrict the Person map to the neighbourhood of one person.

    Used to refine the view when a tree is too large to lay out in full.
    Relation lists of the returned persons only mention persons that are kept.
    """
    kept = neighbourhood_ids(build_graph(persons), center_id, radius)

    focused: dict[str, Person] = {}
    for pid, person in persons.items():
        if pid not in kept:
            continue
        person = normalize_person(person)
        focused[pid] = replace(
            person,
            parents=[i for i in person.parents if i in kept],
            children=[i for i in person.children if i in kept],
            siblings=[i for i in person.siblings if i in kept],
            spouses=[s for s in person.spouses if s.id in kept],
        )
    return focused
