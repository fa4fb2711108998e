"""Layout engine configuration."""

from dataclasses import dataclass, fields
import json
from pathlib import Path


@dataclass(frozen=True)
class LayoutConfig:
    # Viewport of the hosting screen; the canvas is a fixed multiple of it
    viewport_width: float = 390.0
    viewport_height: float = 844.0
    canvas_scale: float = 4.0

    node_width: float = 140.0
    node_height: float = 90.0

    preferred_spacing: float = 200.0
    min_margin: float = 100.0
    top_margin_ratio: float = 0.15
    preferred_generation_spacing: float = 300.0
    jitter: int = 12

    min_separation: float = 160.0
    max_relax_iterations: int = 25
    max_nodes: int = 60

    cache_expiry_seconds: float = 24 * 60 * 60
    persist_debounce_seconds: float = 2.0

    derive_generations: bool = False

    @classmethod
    def from_mapping(cls, values: dict) -> "LayoutConfig":
        """Build a config from a dict, ignoring keys that are not config fields."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})


DEFAULT_CONFIG = LayoutConfig()


def load_config(path: Path | None) -> LayoutConfig:
    """Load a LayoutConfig from a JSON file, or the defaults when path is None."""
    if path is None:
        return DEFAULT_CONFIG
    with open(path, encoding="utf-8") as f:
        return LayoutConfig.from_mapping(json.load(f))
