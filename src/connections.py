"""Typed, deduplicated edges between positioned nodes."""

from collections.abc import Iterable, Mapping
from dataclasses import replace
import logging

from config import DEFAULT_CONFIG, LayoutConfig
from models import Connection, ConnectionType, Person, SpouseLink, WorkflowNode, connection_key

logger = logging.getLogger(__name__)

FROM = "from"
TO = "to"


def anchor_for(
    node: WorkflowNode,
    other: WorkflowNode,
    kind: ConnectionType,
    endpoint: str,
    config: LayoutConfig = DEFAULT_CONFIG,
) -> tuple[float, float]:
    """
    Anchor point on `node` for one end of an edge to `other`.

    Parent edges leave the parent's bottom centre and enter the child's top
    centre. Spouse edges use the facing sides of the two nodes. Sibling edges
    hang from the top centre of both nodes.
    """
    half_w = config.node_width / 2
    half_h = config.node_height / 2

    if kind is ConnectionType.PARENT:
        if endpoint == FROM:
            return (node.x, node.y + half_h)
        return (node.x, node.y - half_h)

    if kind is ConnectionType.SPOUSE:
        # On a tie the "from" node faces right and the "to" node faces left
        faces_right = node.x <= other.x if endpoint == FROM else node.x < other.x
        return (node.x + half_w, node.y) if faces_right else (node.x - half_w, node.y)

    return (node.x, node.y - half_h)


def make_connection(
    source: WorkflowNode,
    target: WorkflowNode,
    kind: ConnectionType,
    config: LayoutConfig = DEFAULT_CONFIG,
    marriage_info: SpouseLink | None = None,
) -> Connection:
    from_x, from_y = anchor_for(source, target, kind, FROM, config)
    to_x, to_y = anchor_for(target, source, kind, TO, config)
    return Connection(
        from_id=source.id,
        to_id=target.id,
        from_x=from_x,
        from_y=from_y,
        to_x=to_x,
        to_y=to_y,
        type=kind,
        marriage_info=marriage_info,
    )


class _EdgeCollector:
    """Accumulates edges, enforcing dedup keys and endpoint integrity."""

    def __init__(self, nodes: Mapping[str, WorkflowNode], config: LayoutConfig):
        self.nodes = nodes
        self.config = config
        self.seen: set[str] = set()
        self.index: dict[str, int] = {}
        self.connections: list[Connection] = []
        self.warnings: list[str] = []

    def warn(self, message: str):
        logger.warning(message)
        self.warnings.append(message)

    def add(
        self,
        from_id: str,
        to_id: str,
        kind: ConnectionType,
        marriage_info: SpouseLink | None = None,
    ):
        if from_id == to_id:
            self.warn(f"Dropped {kind.value} relation of {from_id} to itself")
            return

        key = connection_key(kind, from_id, to_id)
        if key in self.seen:
            if marriage_info is not None:
                self._merge_marriage_info(key, marriage_info)
            return

        source = self.nodes.get(from_id)
        target = self.nodes.get(to_id)
        if source is None or target is None:
            missing = from_id if source is None else to_id
            self.warn(
                f"Dropped {kind.value} edge {from_id} -> {to_id}: "
                f"no person with id {missing!r} in this tree"
            )
            return

        if kind is ConnectionType.SIBLING and source.generation != target.generation:
            self.warn(
                f"Dropped sibling edge {from_id} -> {to_id}: generation "
                f"{source.generation} != {target.generation}"
            )
            return

        self.seen.add(key)
        self.index[key] = len(self.connections)
        self.connections.append(
            make_connection(source, target, kind, self.config, marriage_info)
        )

    def _merge_marriage_info(self, key: str, other: SpouseLink):
        """Fill dates missing on an existing spouse edge from the other side's link."""
        position = self.index[key]
        edge = self.connections[position]
        current = edge.marriage_info
        if current is None or not (current.marriage_date or current.divorce_date):
            # Undated edge: take the other side's dates and current flag
            merged = replace(other, id=edge.to_id)
        else:
            merged = replace(
                current,
                marriage_date=current.marriage_date or other.marriage_date,
                divorce_date=current.divorce_date or other.divorce_date,
            )
        if merged != current:
            self.connections[position] = replace(edge, marriage_info=merged)


def build_connections(
    persons: Mapping[str, Person],
    nodes: Mapping[str, WorkflowNode],
    config: LayoutConfig = DEFAULT_CONFIG,
) -> tuple[list[Connection], list[str]]:
    """
    Derive parent, spouse and sibling edges from the relational pointers.

    `persons` must already be normalized (legacy spouse merged into `spouses`).
    Edges are created in fixed priority order: parent edges from both the
    `children` and `parents` lists, then spouse edges, then sibling edges.
    Offending edges are dropped with a warning; this never raises for bad data.

    Returns:
        The connection list and the integrity warnings raised while building it.
    """
    collector = _EdgeCollector(nodes, config)

    for person in persons.values():
        for child_id in person.children:
            collector.add(person.id, child_id, ConnectionType.PARENT)
        for parent_id in person.parents:
            collector.add(parent_id, person.id, ConnectionType.PARENT)

    for person in persons.values():
        for link in person.spouses:
            collector.add(person.id, link.id, ConnectionType.SPOUSE, marriage_info=link)

    for person in persons.values():
        for sibling_id in person.siblings:
            collector.add(person.id, sibling_id, ConnectionType.SIBLING)

    return collector.connections, collector.warnings


def filter_valid(connections: Iterable[Connection], node_ids: set[str]) -> list[Connection]:
    """Drop any connection whose endpoints are not both in node_ids."""
    valid = []
    for c in connections:
        if c.from_id in node_ids and c.to_id in node_ids:
            valid.append(c)
        else:
            logger.warning("Filtered dangling %s edge %s -> %s", c.type.value, c.from_id, c.to_id)
    return valid
