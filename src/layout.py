"""Layout entry points: full recomputation from the Person map."""

from collections.abc import Mapping
from dataclasses import replace
import logging

from config import DEFAULT_CONFIG, LayoutConfig
from connections import build_connections, filter_valid, make_connection
from errors import CapacityError
from graph import with_derived_generations
from models import LayoutResult, LayoutStatus, Person, WorkflowNode, normalize_persons
from positions import assign_positions

logger = logging.getLogger(__name__)


def check_capacity(count: int, config: LayoutConfig = DEFAULT_CONFIG):
    """Raise CapacityError when `count` nodes exceed the supported cap."""
    if count > config.max_nodes:
        raise CapacityError(count, config.max_nodes)


def degraded_layout(error: CapacityError) -> LayoutResult:
    return LayoutResult(status=LayoutStatus.TOO_MANY_NODES, reason=str(error))


def compute_layout(
    persons: Mapping[str, Person], config: LayoutConfig = DEFAULT_CONFIG
) -> LayoutResult:
    """
    Lay out a tree: one node per person plus the typed edges between them.

    This is a pure function of `persons` and `config`; calling it twice on the
    same data yields identical coordinates and the same connection set. Trees
    over `config.max_nodes` produce an empty result with status
    TOO_MANY_NODES instead of a layout.
    """
    try:
        check_capacity(len(persons), config)
    except CapacityError as e:
        logger.warning("%s", e)
        return degraded_layout(e)

    persons = normalize_persons(dict(persons))
    placed = with_derived_generations(persons) if config.derive_generations else persons
    positions = assign_positions(placed, config)

    nodes: dict[str, WorkflowNode] = {}
    for pid, person in persons.items():
        x, y = positions[pid]
        nodes[pid] = WorkflowNode(
            id=pid, person=person, x=x, y=y, generation=placed[pid].generation
        )

    connections, warnings = build_connections(persons, nodes, config)
    connections = filter_valid(connections, set(nodes))

    logger.debug("Laid out %d nodes and %d connections", len(nodes), len(connections))
    return LayoutResult(
        nodes=tuple(nodes.values()),
        connections=tuple(connections),
        warnings=tuple(warnings),
    )


def apply_positions(
    layout: LayoutResult,
    positions: Mapping[str, tuple[float, float]],
    config: LayoutConfig = DEFAULT_CONFIG,
) -> LayoutResult:
    """
    Return a copy of `layout` with nodes moved to `positions`.

    Ids missing from `positions` keep their coordinates; every connection is
    re-anchored against the moved nodes.
    """
    nodes = {
        n.id: replace(n, x=positions[n.id][0], y=positions[n.id][1]) if n.id in positions else n
        for n in layout.nodes
    }
    connections = tuple(
        make_connection(nodes[c.from_id], nodes[c.to_id], c.type, config, c.marriage_info)
        for c in filter_valid(layout.connections, set(nodes))
    )
    return replace(layout, nodes=tuple(nodes.values()), connections=connections)
