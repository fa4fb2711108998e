"""Layout cache keyed by tree id, validated against the live Person map."""

from collections.abc import Callable, Mapping
import json
import logging
import time
from typing import Protocol

from config import DEFAULT_CONFIG, LayoutConfig
from errors import CacheError, StorageError
from models import (
    Connection,
    ConnectionType,
    LayoutResult,
    Person,
    SpouseLink,
    WorkflowNode,
    normalize_persons,
)

logger = logging.getLogger(__name__)

BLOB_VERSION = 1


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, mostly for tests and single-session use."""

    def __init__(self):
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


def cache_key(tree_id: str) -> str:
    return f"layout:{tree_id}"


def encode_layout(layout: LayoutResult, timestamp: float) -> str:
    return json.dumps(
        {
            "version": BLOB_VERSION,
            "timestamp": timestamp,
            "nodes": [
                {"id": n.id, "x": n.x, "y": n.y, "generation": n.generation}
                for n in layout.nodes
            ],
            "connections": [
                {
                    "from": c.from_id,
                    "to": c.to_id,
                    "from_x": c.from_x,
                    "from_y": c.from_y,
                    "to_x": c.to_x,
                    "to_y": c.to_y,
                    "type": c.type.value,
                    "marriage_info": c.marriage_info.to_dict() if c.marriage_info else None,
                }
                for c in layout.connections
            ],
        }
    )


def decode_layout(raw: str) -> tuple[float, list[dict], list[Connection]]:
    """
    Parse a cache blob into (timestamp, node records, connections).

    Raises:
        CacheError: if the blob is not a well-formed layout entry.
    """
    try:
        data = json.loads(raw)
        if data.get("version") != BLOB_VERSION:
            raise CacheError(f"Unsupported cache blob version {data.get('version')!r}")
        timestamp = float(data["timestamp"])
        nodes = [
            {
                "id": str(n["id"]),
                "x": float(n["x"]),
                "y": float(n["y"]),
                "generation": int(n["generation"]),
            }
            for n in data["nodes"]
        ]
        connections = [
            Connection(
                from_id=str(c["from"]),
                to_id=str(c["to"]),
                from_x=float(c["from_x"]),
                from_y=float(c["from_y"]),
                to_x=float(c["to_x"]),
                to_y=float(c["to_y"]),
                type=ConnectionType(c["type"]),
                marriage_info=SpouseLink.from_dict(c["marriage_info"])
                if c.get("marriage_info")
                else None,
            )
            for c in data["connections"]
        ]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        raise CacheError(f"Corrupt layout cache entry: {e}") from e
    return timestamp, nodes, connections


class LayoutCache:
    """
    Persist the last computed layout per tree and decide when it can be reused.

    A stored layout is reused only while it is younger than the configured
    expiry and its node ids are exactly the ids of the current Person map.
    Storage failures and corrupt entries count as misses, never as errors.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: LayoutConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.config = config
        self.clock = clock

    async def get(self, tree_id: str, persons: Mapping[str, Person]) -> LayoutResult | None:
        key = cache_key(tree_id)
        try:
            raw = await self.store.get(key)
        except (OSError, StorageError) as e:
            logger.warning("Layout cache read failed for %s: %s", tree_id, e)
            return None
        if raw is None:
            logger.debug("Layout cache miss for %s: no entry", tree_id)
            return None

        try:
            timestamp, node_records, connections = decode_layout(raw)
        except CacheError as e:
            logger.warning("Purging layout cache entry for %s: %s", tree_id, e)
            await self.invalidate(tree_id)
            return None

        age = self.clock() - timestamp
        if age > self.config.cache_expiry_seconds:
            logger.debug("Layout cache miss for %s: expired (%.0fs old)", tree_id, age)
            return None

        cached_ids = [n["id"] for n in node_records]
        if len(cached_ids) != len(persons) or set(cached_ids) != set(persons):
            logger.debug("Layout cache miss for %s: person set changed", tree_id)
            return None

        current = normalize_persons(dict(persons))
        nodes = tuple(
            WorkflowNode(
                id=n["id"],
                person=current[n["id"]],
                x=n["x"],
                y=n["y"],
                generation=n["generation"],
            )
            for n in node_records
        )
        ids = set(current)
        logger.debug("Layout cache hit for %s", tree_id)
        return LayoutResult(
            nodes=nodes,
            connections=tuple(c for c in connections if c.from_id in ids and c.to_id in ids),
        )

    async def put(self, tree_id: str, layout: LayoutResult) -> bool:
        """Store `layout`; returns False when it was not persisted."""
        if not layout.ok:
            return False
        try:
            await self.store.set(cache_key(tree_id), encode_layout(layout, self.clock()))
        except (OSError, StorageError) as e:
            logger.warning("Layout cache write failed for %s: %s", tree_id, e)
            return False
        logger.debug("Stored layout for %s (%d nodes)", tree_id, len(layout.nodes))
        return True

    async def invalidate(self, tree_id: str):
        try:
            await self.store.delete(cache_key(tree_id))
        except (OSError, StorageError) as e:
            logger.warning("Layout cache delete failed for %s: %s", tree_id, e)
