"""Export and import of a tree as structured records or a flat table."""

from collections.abc import Iterable, Mapping
import json
import math
from pathlib import Path
from typing import Any

import pandas as pd

from errors import ValidationError
from models import LayoutResult, Person, SpouseLink


LIST_COLUMNS = ("parents", "children", "siblings", "photos", "achievements", "documents")
BOOL_COLUMNS = ("is_alive", "is_current_user", "is_ai_matched", "is_editable")
OPTIONAL_COLUMNS = (
    "gender",
    "spouse",
    "date_of_birth",
    "date_of_death",
    "place_of_birth",
    "photo",
    "bio",
    "user_id",
    "created_by",
)

TABLE_COLUMNS = [
    "id",
    "first_name",
    "last_name",
    "name",
    "gender",
    "generation",
    "parents",
    "children",
    "siblings",
    "spouse",
    "spouses",
    "date_of_birth",
    "date_of_death",
    "place_of_birth",
    "is_alive",
    "photo",
    "photos",
    "bio",
    "achievements",
    "documents",
    "is_current_user",
    "is_ai_matched",
    "match_confidence",
    "user_id",
    "created_by",
    "is_editable",
    "x",
    "y",
]

Positions = dict[str, tuple[float, float]]


def _positions(layout: LayoutResult | None) -> Positions:
    return layout.positions() if layout is not None else {}


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, float) and math.isnan(value))


# Structured records


def export_records(
    persons: Mapping[str, Person], layout: LayoutResult | None = None
) -> list[dict[str, Any]]:
    """One dict per person: every Person field plus the last computed x/y."""
    positions = _positions(layout)
    records = []
    for pid, person in persons.items():
        record = person.to_dict()
        x, y = positions.get(pid, (None, None))
        record["x"] = x
        record["y"] = y
        records.append(record)
    return records


def import_records(records: Iterable[Mapping[str, Any]]) -> tuple[dict[str, Person], Positions]:
    """
    Rebuild the Person map and node positions from exported records.

    Raises:
        ValidationError: for malformed records or duplicate ids.
    """
    persons: dict[str, Person] = {}
    positions: Positions = {}
    for record in records:
        person = Person.from_dict(dict(record))
        if person.id in persons:
            raise ValidationError(f"Duplicate person id {person.id!r}")
        persons[person.id] = person
        x, y = record.get("x"), record.get("y")
        if not _is_blank(x) and not _is_blank(y):
            positions[person.id] = (float(x), float(y))
    return persons, positions


def write_json(path: Path, persons: Mapping[str, Person], layout: LayoutResult | None = None):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(export_records(persons, layout), f, indent=2, ensure_ascii=False)


def read_json(path: Path) -> tuple[dict[str, Person], Positions]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    # Accept both a bare record list and {"persons": [...]} / {"persons": {id: record}}
    if isinstance(data, dict):
        data = data.get("persons", [])
        if isinstance(data, dict):
            data = list(data.values())
    return import_records(data)


# Flat table


def _dump_cell(values: list) -> str:
    return json.dumps(values, ensure_ascii=False) if values else ""


def _load_cell(value: Any) -> list:
    if _is_blank(value):
        return []
    values = json.loads(str(value))
    if not isinstance(values, list):
        raise ValueError(f"expected a JSON list, got {value!r}")
    return values


def _parse_bool(value: Any, default: bool) -> bool:
    if _is_blank(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def export_table(persons: Mapping[str, Person], layout: LayoutResult | None = None) -> pd.DataFrame:
    """
    Flatten the tree into one row per person.

    List columns and spouses are stored as JSON arrays, so entries may contain
    any character; empty lists are left blank.
    """
    rows = []
    for record in export_records(persons, layout):
        row = dict(record)
        for column in (*LIST_COLUMNS, "spouses"):
            row[column] = _dump_cell(record[column])
        rows.append(row)
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


def import_table(df: pd.DataFrame) -> tuple[dict[str, Person], Positions]:
    """Inverse of export_table; also accepts a DataFrame read from CSV as strings."""
    records = []
    for row in df.to_dict("records"):
        record: dict[str, Any] = {
            "id": str(row["id"]),
            "first_name": "" if _is_blank(row.get("first_name")) else str(row["first_name"]),
            "last_name": "" if _is_blank(row.get("last_name")) else str(row["last_name"]),
            "name": "" if _is_blank(row.get("name")) else str(row["name"]),
            "generation": row.get("generation"),
        }
        for column in OPTIONAL_COLUMNS:
            value = row.get(column)
            record[column] = None if _is_blank(value) else str(value)
        for column, default in (
            ("is_alive", True),
            ("is_current_user", False),
            ("is_ai_matched", False),
            ("is_editable", True),
        ):
            record[column] = _parse_bool(row.get(column), default)

        try:
            for column in LIST_COLUMNS:
                record[column] = [str(v) for v in _load_cell(row.get(column))]
            record["spouses"] = [SpouseLink.from_dict(s) for s in _load_cell(row.get("spouses"))]
            confidence = row.get("match_confidence")
            record["match_confidence"] = None if _is_blank(confidence) else float(confidence)
            if _is_blank(record["generation"]):
                raise ValueError("generation is empty")
            record["generation"] = int(float(record["generation"]))
            for axis in ("x", "y"):
                value = row.get(axis)
                record[axis] = None if _is_blank(value) else float(value)
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Row for {record['id']!r}: {e}") from e

        records.append(record)
    return import_records(records)


def write_csv(path: Path, persons: Mapping[str, Person], layout: LayoutResult | None = None):
    export_table(persons, layout).to_csv(path, index=False)


def read_csv(path: Path) -> tuple[dict[str, Person], Positions]:
    return import_table(pd.read_csv(path, dtype=str, keep_default_na=False))
