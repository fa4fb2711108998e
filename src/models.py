"""Data classes for family tree entities and layout results."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from errors import ValidationError


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class RelationType(str, Enum):
    """How a newly added person relates to the anchor person."""

    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    SPOUSE = "spouse"
    NONE = "none"


class ConnectionType(str, Enum):
    PARENT = "parent"
    SPOUSE = "spouse"
    SIBLING = "sibling"


class LayoutStatus(str, Enum):
    OK = "ok"
    TOO_MANY_NODES = "too_many_nodes"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SpouseLink:
    id: str
    marriage_date: str | None = None
    divorce_date: str | None = None
    is_current_spouse: bool = True

    @classmethod
    def from_dict(cls, data: "dict | str | SpouseLink") -> "SpouseLink":
        if isinstance(data, SpouseLink):
            return data
        if isinstance(data, str):
            return cls(id=data)
        return cls(
            id=str(data["id"]),
            marriage_date=data.get("marriage_date", data.get("marriageDate")),
            divorce_date=data.get("divorce_date", data.get("divorceDate")),
            is_current_spouse=bool(
                data.get("is_current_spouse", data.get("isCurrentSpouse", True))
            ),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "marriage_date": self.marriage_date,
            "divorce_date": self.divorce_date,
            "is_current_spouse": self.is_current_spouse,
        }


# camelCase keys used by the mobile client -> Person field names
ALIASES = {
    "_id": "id",
    "firstName": "first_name",
    "lastName": "last_name",
    "dateOfBirth": "date_of_birth",
    "birthDate": "date_of_birth",
    "dateOfDeath": "date_of_death",
    "deathDate": "date_of_death",
    "placeOfBirth": "place_of_birth",
    "birthPlace": "place_of_birth",
    "isAlive": "is_alive",
    "isCurrentUser": "is_current_user",
    "isUser": "is_current_user",
    "isAIMatched": "is_ai_matched",
    "matchConfidence": "match_confidence",
    "userId": "user_id",
    "createdBy": "created_by",
    "isEditable": "is_editable",
}

_LIST_FIELDS = ("parents", "children", "siblings", "photos", "achievements", "documents")


def _list_value(values: dict[str, Any], name: str) -> list | tuple:
    value = values.get(name) or []
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")
    return value


@dataclass
class Person:
    id: str
    first_name: str = ""
    last_name: str = ""
    name: str = ""
    gender: Gender | None = None
    generation: int = 0

    parents: list[str] = field(default_factory=list)
    children: list[str] = field(default_factory=list)
    siblings: list[str] = field(default_factory=list)
    spouse: str | None = None  # legacy single spouse
    spouses: list[SpouseLink] = field(default_factory=list)

    # Payload: opaque to the layout engine
    photo: str | None = None
    photos: list[str] = field(default_factory=list)
    bio: str | None = None
    achievements: list[str] = field(default_factory=list)
    documents: list[str] = field(default_factory=list)
    date_of_birth: str | None = None
    date_of_death: str | None = None
    place_of_birth: str | None = None
    is_alive: bool = True

    # Provenance and permission flags
    is_current_user: bool = False
    is_ai_matched: bool = False
    match_confidence: float | None = None
    user_id: str | None = None
    created_by: str | None = None
    is_editable: bool = True

    def __post_init__(self):
        if not self.name:
            self.name = full_name(self.first_name, self.last_name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Person":
        """
        Build a Person from a record dict.

        Accepts both snake_case field names and the camelCase keys of the mobile
        client. Unknown keys are ignored.
        """
        values: dict[str, Any] = {}
        for key, value in data.items():
            values[ALIASES.get(key, key)] = value

        if not values.get("id"):
            raise ValidationError("Person record is missing an id")

        try:
            generation = int(values.get("generation") or 0)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Person {values['id']}: generation must be an integer, "
                f"got {values.get('generation')!r}"
            ) from e

        gender = values.get("gender")
        if gender:
            try:
                gender = Gender(str(gender).lower())
            except ValueError as e:
                raise ValidationError(f"Person {values['id']}: unknown gender {gender!r}") from e
        try:
            spouses = [SpouseLink.from_dict(s) for s in _list_value(values, "spouses")]
            lists = {name: [str(v) for v in _list_value(values, name)] for name in _LIST_FIELDS}
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Person {values['id']}: malformed list field ({e!r})") from e

        kwargs: dict[str, Any] = {
            "id": str(values["id"]),
            "first_name": values.get("first_name") or "",
            "last_name": values.get("last_name") or "",
            "name": values.get("name") or "",
            "gender": gender or None,
            "generation": generation,
            "spouse": str(values["spouse"]) if values.get("spouse") else None,
            "spouses": spouses,
        }
        kwargs.update(lists)
        for name in (
            "photo",
            "bio",
            "date_of_birth",
            "date_of_death",
            "place_of_birth",
            "match_confidence",
            "user_id",
            "created_by",
        ):
            kwargs[name] = values.get(name)
        for name, default in (
            ("is_alive", True),
            ("is_current_user", False),
            ("is_ai_matched", False),
            ("is_editable", True),
        ):
            kwargs[name] = bool(values.get(name, default))

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.name,
            "gender": self.gender.value if self.gender else None,
            "generation": self.generation,
            "parents": list(self.parents),
            "children": list(self.children),
            "siblings": list(self.siblings),
            "spouse": self.spouse,
            "spouses": [s.to_dict() for s in self.spouses],
            "photo": self.photo,
            "photos": list(self.photos),
            "bio": self.bio,
            "achievements": list(self.achievements),
            "documents": list(self.documents),
            "date_of_birth": self.date_of_birth,
            "date_of_death": self.date_of_death,
            "place_of_birth": self.place_of_birth,
            "is_alive": self.is_alive,
            "is_current_user": self.is_current_user,
            "is_ai_matched": self.is_ai_matched,
            "match_confidence": self.match_confidence,
            "user_id": self.user_id,
            "created_by": self.created_by,
            "is_editable": self.is_editable,
        }

    def spouse_ids(self) -> list[str]:
        return [s.id for s in self.spouses]


def full_name(first_name: str, last_name: str) -> str:
    return f"{first_name or ''} {last_name or ''}".strip()


def normalize_person(person: Person) -> Person:
    """
    Return a copy of person with the legacy `spouse` merged into `spouses`.

    A spouse declared in both forms is kept once; the `spouses` entry wins since
    it may carry marriage details. Duplicate `spouses` entries are collapsed.
    """
    merged: dict[str, SpouseLink] = {}
    for link in person.spouses:
        merged.setdefault(link.id, link)
    if person.spouse and person.spouse not in merged:
        merged[person.spouse] = SpouseLink(id=person.spouse)

    if person.spouse is None and len(merged) == len(person.spouses):
        return person
    return replace(person, spouse=None, spouses=list(merged.values()))


def normalize_persons(persons: dict[str, Person]) -> dict[str, Person]:
    return {pid: normalize_person(p) for pid, p in persons.items()}


@dataclass(frozen=True)
class WorkflowNode:
    id: str
    person: Person
    x: float
    y: float
    generation: int


@dataclass(frozen=True)
class Connection:
    from_id: str
    to_id: str
    from_x: float
    from_y: float
    to_x: float
    to_y: float
    type: ConnectionType
    marriage_info: SpouseLink | None = None

    @property
    def key(self) -> str:
        return connection_key(self.type, self.from_id, self.to_id)


def connection_key(kind: ConnectionType, from_id: str, to_id: str) -> str:
    """Canonical dedup key: directional for parent edges, unordered otherwise."""
    if kind is ConnectionType.PARENT:
        return f"parent:{from_id}:{to_id}"
    a, b = sorted((from_id, to_id))
    return f"{kind.value}:{a}:{b}"


@dataclass(frozen=True)
class LayoutResult:
    nodes: tuple[WorkflowNode, ...] = ()
    connections: tuple[Connection, ...] = ()
    warnings: tuple[str, ...] = ()
    status: LayoutStatus = LayoutStatus.OK
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is LayoutStatus.OK

    def node(self, node_id: str) -> WorkflowNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def positions(self) -> dict[str, tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.nodes}


EMPTY_LAYOUT = LayoutResult()


@dataclass(frozen=True)
class TreeStats:
    total_members: int
    generations: int
    with_photos: int
    ai_matched: int
    with_bios: int
    completeness: int  # percent


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    reason: str | None = None
    person_id: str | None = None

    @classmethod
    def success(cls, person_id: str) -> "MutationResult":
        return cls(ok=True, person_id=person_id)

    @classmethod
    def failure(cls, reason: str) -> "MutationResult":
        return cls(ok=False, reason=reason)
