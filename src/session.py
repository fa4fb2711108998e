"""Async orchestration of loading, layout, caching and interactive edits for one tree."""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
import contextlib
from dataclasses import replace
import logging
from typing import Any

from cache import LayoutCache
from config import DEFAULT_CONFIG, LayoutConfig
from errors import TreeError, ValidationError
from graph import focus_subgraph
from layout import compute_layout
from models import (
    EMPTY_LAYOUT,
    LayoutResult,
    LayoutStatus,
    MutationResult,
    Person,
    RelationType,
)
from reposition import RepositionNode
from tree import FamilyTree

logger = logging.getLogger(__name__)

PersonSource = Callable[[str], Awaitable[Mapping[str, Person]]]


class TreeSession:
    """
    Keeps the layout of one tree in step with its Person data.

    Everything runs on the event loop thread. The only suspension points are
    cache I/O and fetching person data; while they are pending `layout` keeps
    the previous known-good result. Each load or refresh takes a ticket, and a
    result whose ticket has been superseded is discarded instead of applied.
    Interactive repositioning persists through a debounced write that
    `close()` cancels.
    """

    def __init__(
        self,
        tree: FamilyTree,
        cache: LayoutCache,
        config: LayoutConfig = DEFAULT_CONFIG,
    ):
        self.tree = tree
        self.cache = cache
        self.config = config
        self.layout: LayoutResult = EMPTY_LAYOUT

        self._ticket = 0
        self._dirty = False
        self._persist_task: asyncio.Task | None = None
        self._invalidation: asyncio.Task | None = None
        self._needs_invalidation = False
        self._undo: list[LayoutResult] = []
        self._closed = False
        self._unsubscribe = tree.subscribe(self._on_tree_changed)

    @property
    def tree_id(self) -> str:
        return self.tree.tree_id

    @property
    def persist_pending(self) -> bool:
        return self._persist_task is not None and not self._persist_task.done()

    def _next_ticket(self) -> int:
        self._ticket += 1
        return self._ticket

    # Loading and recomputation

    async def load(self, source: PersonSource) -> LayoutResult:
        """Fetch the Person map for this tree, then lay it out (cache first)."""
        ticket = self._next_ticket()
        try:
            persons = await source(self.tree_id)
        except (OSError, TreeError) as e:
            logger.warning("Loading tree %s failed: %s", self.tree_id, e)
            return replace(self.layout, status=LayoutStatus.REJECTED, reason=str(e))

        if ticket != self._ticket:
            logger.debug("Discarding stale load of %s", self.tree_id)
            return self.layout

        self._cancel_persist()
        self.tree.replace_all(persons, notify=False)
        return await self.refresh()

    async def refresh(self) -> LayoutResult:
        """
        Bring `layout` up to date with the current Person map.

        Uses the cached layout when it is still valid for this data, otherwise
        recomputes and stores the result.
        """
        ticket = self._next_ticket()
        persons = self.tree.snapshot()

        await self._await_invalidation()
        cached = await self.cache.get(self.tree_id, persons)
        if ticket != self._ticket:
            logger.debug("Discarding stale refresh of %s", self.tree_id)
            return self.layout

        if cached is not None:
            self._apply(cached)
            return cached

        layout = compute_layout(persons, self.config)
        self._apply(layout)
        logger.info(
            "Recomputed layout for %s: %d nodes, %d connections",
            self.tree_id,
            len(layout.nodes),
            len(layout.connections),
        )
        if layout.ok:
            await self.cache.put(self.tree_id, layout)
        return layout

    def _apply(self, layout: LayoutResult):
        self.layout = layout
        self._undo.clear()

    def focus(self, center_id: str, radius: int = 2) -> LayoutResult:
        """Lay out only the neighbourhood of one person; not cached."""
        try:
            persons = focus_subgraph(self.tree.snapshot(), center_id, radius)
        except ValidationError as e:
            return replace(self.layout, status=LayoutStatus.REJECTED, reason=str(e))
        self._cancel_persist()
        self._apply(compute_layout(persons, self.config))
        return self.layout

    # Cache invalidation on mutation

    def _on_tree_changed(self, tree_id: str):
        # Pending positions belong to the previous data
        self._cancel_persist()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._needs_invalidation = True
            return
        previous = self._invalidation
        self._invalidation = loop.create_task(self._invalidate_after(previous))

    async def _invalidate_after(self, previous: asyncio.Task | None):
        if previous is not None:
            await previous
        await self.cache.invalidate(self.tree_id)

    async def _await_invalidation(self):
        if self._invalidation is not None:
            task, self._invalidation = self._invalidation, None
            await task
        if self._needs_invalidation:
            self._needs_invalidation = False
            await self.cache.invalidate(self.tree_id)

    # Mutations

    async def add_person(
        self,
        data: Mapping[str, Any],
        anchor_id: str | None = None,
        relation: RelationType | str = RelationType.CHILD,
    ) -> MutationResult:
        result = self.tree.add_person(data, anchor_id, relation)
        if result.ok:
            await self.refresh()
        return result

    async def delete_person(
        self, person_id: str, can_delete: Callable[[Person], bool]
    ) -> MutationResult:
        result = self.tree.delete_person(person_id, can_delete)
        if result.ok:
            await self.refresh()
        return result

    async def edit_person(self, person_id: str, patch: Mapping[str, Any]) -> MutationResult:
        result = self.tree.edit_person(person_id, patch)
        if result.ok:
            await self.refresh()
        return result

    # Interactive repositioning

    def reposition(self, node_id: str, target: tuple[float, float]) -> LayoutResult:
        """
        Move one node, avoiding collisions, and schedule a debounced persist.

        A rejected move leaves `layout` untouched and is returned as-is.
        """
        result = RepositionNode(node_id, target).apply(self.layout, self.config)
        if not result.ok:
            return result
        self._undo.append(self.layout)
        self.layout = result
        self._schedule_persist()
        return result

    def undo_reposition(self) -> LayoutResult | None:
        if not self._undo:
            return None
        self.layout = self._undo.pop()
        self._schedule_persist()
        return self.layout

    def _schedule_persist(self):
        self._dirty = True
        self._cancel_persist()
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to time against; the next flush() writes it
            return
        self._persist_task = loop.create_task(self._persist_later())

    async def _persist_later(self):
        await asyncio.sleep(self.config.persist_debounce_seconds)
        await self.flush()

    def _cancel_persist(self):
        if self._persist_task is not None and not self._persist_task.done():
            self._persist_task.cancel()
        self._persist_task = None

    async def flush(self) -> bool:
        """Persist repositioned coordinates now; returns True if a write happened."""
        if not self._dirty or self._closed:
            return False
        self._dirty = False
        return await self.cache.put(self.tree_id, self.layout)

    async def close(self):
        """Cancel pending persists and stop listening to the tree."""
        self._closed = True
        task, self._persist_task = self._persist_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._invalidation is not None:
            await self._invalidation
            self._invalidation = None
        self._unsubscribe()
