"""Versioned Person store and the tree mutation API."""

from collections.abc import Callable, Mapping
from dataclasses import fields, replace
import logging
from types import MappingProxyType
from typing import Any
import uuid

from errors import ValidationError
from models import (
    ALIASES,
    MutationResult,
    Person,
    RelationType,
    SpouseLink,
    full_name,
    normalize_person,
    normalize_persons,
)

logger = logging.getLogger(__name__)

PERSON_FIELDS = {f.name for f in fields(Person)}

Listener = Callable[[str], None]


def _append(ids: list[str], new_id: str) -> list[str]:
    return ids if new_id in ids else [*ids, new_id]


def _generation_for(anchor: Person | None, relation: RelationType, requested: int) -> int:
    if anchor is None:
        return requested
    if relation is RelationType.PARENT:
        return anchor.generation - 1
    if relation is RelationType.CHILD:
        return anchor.generation + 1
    return anchor.generation


def _without(person: Person, removed_id: str) -> Person:
    """Copy of person with every relation to removed_id purged."""
    return replace(
        person,
        parents=[i for i in person.parents if i != removed_id],
        children=[i for i in person.children if i != removed_id],
        siblings=[i for i in person.siblings if i != removed_id],
        spouse=None if person.spouse == removed_id else person.spouse,
        spouses=[s for s in person.spouses if s.id != removed_id],
    )


def _references(person: Person, other_id: str) -> bool:
    return (
        other_id in person.parents
        or other_id in person.children
        or other_id in person.siblings
        or person.spouse == other_id
        or other_id in person.spouse_ids()
    )


class FamilyTree:
    """
    The single source of truth for one tree's Person map.

    Persons are never mutated in place: every mutation builds a new map with
    replaced records and bumps `version`, so snapshots handed to readers stay
    consistent while later edits happen. Listeners registered with `subscribe`
    are called with the tree id after every successful mutation.
    """

    def __init__(self, tree_id: str, persons: Mapping[str, Person] | None = None):
        self.tree_id = tree_id
        self._persons: dict[str, Person] = normalize_persons(dict(persons or {}))
        self.version = 0
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._persons)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self._persons

    def get(self, person_id: str) -> Person | None:
        return self._persons.get(person_id)

    def snapshot(self) -> Mapping[str, Person]:
        return MappingProxyType(dict(self._persons))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _commit(self, persons: dict[str, Person]):
        self._persons = persons
        self.version += 1
        for listener in list(self._listeners):
            listener(self.tree_id)

    def replace_all(self, persons: Mapping[str, Person], notify: bool = True):
        """
        Swap in a freshly loaded Person map.

        With notify=False listeners are skipped; used when reloading data that
        has not been edited, so a cached layout for it stays valid.
        """
        if notify:
            self._commit(normalize_persons(dict(persons)))
        else:
            self._persons = normalize_persons(dict(persons))
            self.version += 1

    # Mutations

    def add_person(
        self,
        data: Mapping[str, Any],
        anchor_id: str | None = None,
        relation: RelationType | str = RelationType.CHILD,
    ) -> MutationResult:
        """
        Add a person related to `anchor_id`.

        The new generation follows the anchor: parent is one above, child one
        below, sibling and spouse share it. Pointers are wired on both the new
        record and the anchor. RelationType.NONE adds an unanchored person.
        """
        try:
            person_id = self._add_person(data, anchor_id, relation)
        except ValidationError as e:
            logger.info("Rejected add to %s: %s", self.tree_id, e)
            return MutationResult.failure(str(e))
        return MutationResult.success(person_id)

    def _add_person(
        self, data: Mapping[str, Any], anchor_id: str | None, relation: RelationType | str
    ) -> str:
        try:
            relation = RelationType(relation)
        except ValueError as e:
            raise ValidationError(f"Unknown relation type {relation!r}") from e

        record = {ALIASES.get(k, k): v for k, v in data.items()}
        first_name = str(record.get("first_name") or "").strip()
        if not first_name:
            raise ValidationError("First name is required")

        anchor = None
        if relation is not RelationType.NONE:
            if not anchor_id:
                raise ValidationError(f"Adding a {relation.value} requires an anchor person")
            anchor = self._persons.get(anchor_id)
            if anchor is None:
                raise ValidationError(f"Anchor person {anchor_id!r} not found")

        last_name = str(record.get("last_name") or "").strip()
        if not last_name and anchor is not None and relation in (
            RelationType.CHILD,
            RelationType.SIBLING,
        ):
            last_name = anchor.last_name

        record.update(
            id=uuid.uuid4().hex,
            first_name=first_name,
            last_name=last_name,
            name=full_name(first_name, last_name),
        )
        new = normalize_person(Person.from_dict(record))
        new = replace(
            new, generation=_generation_for(anchor, relation, new.generation)
        )

        persons = dict(self._persons)
        if anchor is not None:
            new, anchor = self._wire(new, anchor, relation)
            persons[anchor.id] = anchor
        persons[new.id] = new

        lowest = min(p.generation for p in persons.values())
        if lowest < 0:
            # Keep generations non-negative when a parent is added above the top row
            persons = {
                pid: replace(p, generation=p.generation - lowest) for pid, p in persons.items()
            }

        self._commit(persons)
        logger.info("Added %s (%s) to %s", new.name, new.id, self.tree_id)
        return new.id

    @staticmethod
    def _wire(new: Person, anchor: Person, relation: RelationType) -> tuple[Person, Person]:
        if relation is RelationType.CHILD:
            return (
                replace(new, parents=_append(new.parents, anchor.id)),
                replace(anchor, children=_append(anchor.children, new.id)),
            )
        if relation is RelationType.PARENT:
            return (
                replace(new, children=_append(new.children, anchor.id)),
                replace(anchor, parents=_append(anchor.parents, new.id)),
            )
        if relation is RelationType.SIBLING:
            return (
                replace(new, siblings=_append(new.siblings, anchor.id)),
                replace(anchor, siblings=_append(anchor.siblings, new.id)),
            )
        # Spouse
        new_links = [s for s in new.spouses if s.id != anchor.id]
        return (
            replace(new, spouses=[*new_links, SpouseLink(id=anchor.id)]),
            replace(anchor, spouses=[*anchor.spouses, SpouseLink(id=new.id)]),
        )

    def delete_person(
        self, person_id: str, can_delete: Callable[[Person], bool]
    ) -> MutationResult:
        """
        Remove a person if `can_delete(person)` allows it.

        Every other person's relation lists are purged of the removed id so the
        next layout has no dangling edges.
        """
        person = self._persons.get(person_id)
        if person is None:
            return MutationResult.failure(f"Person {person_id!r} not found")
        if not can_delete(person):
            logger.info("Delete of %s in %s not permitted", person_id, self.tree_id)
            return MutationResult.failure("You do not have permission to delete this person")

        persons = {
            pid: _without(p, person_id) if _references(p, person_id) else p
            for pid, p in self._persons.items()
            if pid != person_id
        }
        self._commit(persons)
        logger.info("Deleted %s from %s", person_id, self.tree_id)
        return MutationResult.success(person_id)

    def edit_person(self, person_id: str, patch: Mapping[str, Any]) -> MutationResult:
        """
        Merge `patch` into a person.

        `name` is recomputed when first or last name changes. Generation and
        relation lists only change when the patch names them.
        """
        try:
            self._edit_person(person_id, patch)
        except ValidationError as e:
            logger.info("Rejected edit of %s: %s", person_id, e)
            return MutationResult.failure(str(e))
        return MutationResult.success(person_id)

    def _edit_person(self, person_id: str, patch: Mapping[str, Any]):
        person = self._persons.get(person_id)
        if person is None:
            raise ValidationError(f"Person {person_id!r} not found")

        changes = {ALIASES.get(k, k): v for k, v in patch.items()}
        unknown = set(changes) - PERSON_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if changes.get("id", person_id) != person_id:
            raise ValidationError("A person's id cannot be changed")

        merged = person.to_dict()
        merged.update(changes)
        if "first_name" in changes or "last_name" in changes:
            merged["first_name"] = str(merged["first_name"] or "").strip()
            merged["last_name"] = str(merged["last_name"] or "").strip()
            if not merged["first_name"]:
                raise ValidationError("First name is required")
            merged["name"] = full_name(merged["first_name"], merged["last_name"])

        persons = dict(self._persons)
        persons[person_id] = normalize_person(Person.from_dict(merged))
        self._commit(persons)
