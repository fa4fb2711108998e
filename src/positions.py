"""Deterministic placement of persons on the layout canvas."""

from collections.abc import Mapping

from config import DEFAULT_CONFIG, LayoutConfig
from grouping import group_by_generation, sorted_generations
from models import Person

X_SALT = 0
Y_SALT = 1


def canvas_size(config: LayoutConfig = DEFAULT_CONFIG) -> tuple[float, float]:
    return (
        config.viewport_width * config.canvas_scale,
        config.viewport_height * config.canvas_scale,
    )


def canvas_bounds(config: LayoutConfig = DEFAULT_CONFIG) -> tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) allowed for a node centre."""
    width, height = canvas_size(config)
    half_w = config.node_width / 2
    half_h = config.node_height / 2
    return (half_w, half_h, width - half_w, height - half_h)


def stable_offset(node_id: str, salt: int, jitter: int) -> int:
    """
    Offset in [-jitter, jitter] derived only from the characters of node_id.

    salt=0 is the plain sum of character codes; other salts weight each code by
    its position so the x and y offsets of one id differ.
    """
    if jitter <= 0:
        return 0
    h = sum(ord(c) * (1 + salt * i) for i, c in enumerate(node_id))
    return h % (2 * jitter + 1) - jitter


def row_spacing(count: int, available: float, preferred: float) -> float:
    """Spacing between neighbours in a row of `count` nodes; 0 for a single node."""
    if count <= 1:
        return 0.0
    return min(preferred, available / (count - 1))


def assign_positions(
    persons: Mapping[str, Person], config: LayoutConfig = DEFAULT_CONFIG
) -> dict[str, tuple[float, float]]:
    """
    Compute an (x, y) node centre for every person.

    Each generation is a horizontally centred row; rows are stacked top to bottom
    in ascending generation order. A small per-id offset breaks up the grid
    without depending on ordering or time, so identical data always lands on
    identical coordinates.
    """
    width, height = canvas_size(config)
    groups = group_by_generation(persons)
    generations = sorted_generations(groups)

    top = height * config.top_margin_ratio
    available_height = height - top - config.min_margin
    generation_spacing = row_spacing(
        len(generations), available_height, config.preferred_generation_spacing
    )
    available_width = width - 2 * config.min_margin

    positions: dict[str, tuple[float, float]] = {}
    for gen_index, generation in enumerate(generations):
        row = groups[generation]
        spacing = row_spacing(len(row), available_width, config.preferred_spacing)
        start_x = (width - spacing * (len(row) - 1)) / 2
        y = top + gen_index * generation_spacing

        for index, person in enumerate(row):
            x = start_x + index * spacing
            positions[person.id] = (
                x + stable_offset(person.id, X_SALT, config.jitter),
                y + stable_offset(person.id, Y_SALT, config.jitter),
            )

    return positions
