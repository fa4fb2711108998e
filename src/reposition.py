"""Interactive repositioning of a single node with collision avoidance."""

from dataclasses import dataclass, replace
import logging
import math

from config import DEFAULT_CONFIG, LayoutConfig
from connections import FROM, TO, anchor_for
from errors import CapacityError
from layout import check_capacity
from models import LayoutResult, LayoutStatus, WorkflowNode
from positions import canvas_bounds, canvas_size

logger = logging.getLogger(__name__)

# Pushed nodes land just past the separation threshold, not exactly on it
SEPARATION_EPSILON = 1e-6

Point = tuple[float, float]


def _clamp(point: Point, config: LayoutConfig) -> Point:
    min_x, min_y, max_x, max_y = canvas_bounds(config)
    return (min(max(point[0], min_x), max_x), min(max(point[1], min_y), max_y))


def _in_bounds(point: Point, config: LayoutConfig) -> bool:
    min_x, min_y, max_x, max_y = canvas_bounds(config)
    return min_x <= point[0] <= max_x and min_y <= point[1] <= max_y


def _collides(point: Point, others: list[Point], min_separation: float) -> bool:
    return any(math.dist(point, other) < min_separation for other in others)


def _push_away(point: Point, others: list[Point], min_separation: float) -> tuple[Point, bool]:
    """One pass over all other nodes, moving `point` out of each one it overlaps."""
    x, y = point
    moved = False
    for ox, oy in others:
        dx, dy = x - ox, y - oy
        dist = math.hypot(dx, dy)
        if dist >= min_separation:
            continue
        if dist == 0:
            dx, dy, dist = 1.0, 0.0, 1.0
        reach = min_separation + SEPARATION_EPSILON
        x, y = ox + dx / dist * reach, oy + dy / dist * reach
        moved = True
    return (x, y), moved


def _ring_search(origin: Point, others: list[Point], config: LayoutConfig) -> Point | None:
    """Nearest free, in-bounds point on rings of growing radius around origin."""
    step = config.min_separation / 2
    max_radius = math.hypot(*canvas_size(config))
    radius = step
    while radius <= max_radius:
        count = max(8, int(2 * math.pi * radius / step))
        for k in range(count):
            angle = 2 * math.pi * k / count
            candidate = (
                origin[0] + radius * math.cos(angle),
                origin[1] + radius * math.sin(angle),
            )
            if _in_bounds(candidate, config) and not _collides(
                candidate, others, config.min_separation
            ):
                return candidate
        radius += step
    return None


def resolve_position(target: Point, others: list[Point], config: LayoutConfig) -> Point | None:
    """
    Find where a node dragged to `target` should land.

    The node is pushed directly away from every node closer than
    `config.min_separation`, then clamped to the canvas, until nothing collides.
    If relaxation does not settle, the nearest free point around the target is
    used. Returns None when the canvas has no free point at all.
    """
    point = _clamp(target, config)
    for _ in range(config.max_relax_iterations):
        if not _collides(point, others, config.min_separation):
            return point
        point, _ = _push_away(point, others, config.min_separation)
        point = _clamp(point, config)

    if not _collides(point, others, config.min_separation):
        return point
    return _ring_search(_clamp(target, config), others, config)


@dataclass(frozen=True)
class RepositionNode:
    """Command: move one node towards `target`, producing a new layout."""

    node_id: str
    target: Point

    def apply(self, layout: LayoutResult, config: LayoutConfig = DEFAULT_CONFIG) -> LayoutResult:
        if layout.status is LayoutStatus.TOO_MANY_NODES:
            return layout
        try:
            check_capacity(len(layout.nodes), config)
        except CapacityError as e:
            return replace(layout, status=LayoutStatus.TOO_MANY_NODES, reason=str(e))

        node = layout.node(self.node_id)
        if node is None:
            return replace(
                layout,
                status=LayoutStatus.REJECTED,
                reason=f"No node with id {self.node_id!r} in this layout",
            )

        others = [(n.x, n.y) for n in layout.nodes if n.id != node.id]
        landing = resolve_position(self.target, others, config)
        if landing is None:
            logger.warning("No free position for %s near %s", node.id, self.target)
            return replace(
                layout, status=LayoutStatus.REJECTED, reason="No free position on the canvas"
            )

        moved = replace(node, x=landing[0], y=landing[1])
        nodes = {n.id: n for n in layout.nodes}
        nodes[moved.id] = moved

        return LayoutResult(
            nodes=tuple(nodes.values()),
            connections=tuple(_patch_connections(layout, moved, nodes, config)),
            warnings=layout.warnings,
        )


def _patch_connections(
    layout: LayoutResult,
    moved: WorkflowNode,
    nodes: dict[str, WorkflowNode],
    config: LayoutConfig,
):
    """Recompute only the anchors that belong to the moved node."""
    for c in layout.connections:
        if c.from_id == moved.id and c.to_id in nodes:
            x, y = anchor_for(moved, nodes[c.to_id], c.type, FROM, config)
            yield replace(c, from_x=x, from_y=y)
        elif c.to_id == moved.id and c.from_id in nodes:
            x, y = anchor_for(moved, nodes[c.from_id], c.type, TO, config)
            yield replace(c, to_x=x, to_y=y)
        else:
            yield c


def reposition_node(
    layout: LayoutResult,
    node_id: str,
    target: Point,
    config: LayoutConfig = DEFAULT_CONFIG,
) -> LayoutResult:
    return RepositionNode(node_id, target).apply(layout, config)
