"""Tests for structured and tabular export/import."""

import json

import pandas as pd
import pytest

from config import LayoutConfig
from errors import ValidationError
from export import (
    TABLE_COLUMNS,
    export_records,
    export_table,
    import_records,
    import_table,
    read_csv,
    read_json,
    write_csv,
    write_json,
)
from layout import compute_layout
from models import Gender, Person, SpouseLink


def rich_tree() -> dict[str, Person]:
    return {
        "h": Person(
            id="h",
            first_name="Henry",
            last_name="Ford",
            gender=Gender.MALE,
            generation=0,
            children=["k"],
            spouses=[SpouseLink("w", marriage_date="1950-04-01", divorce_date="1960-01-01", is_current_spouse=False)],
            photos=["a.jpg", "b.jpg"],
            bio="Engineer",
            date_of_birth="1920-03-04",
            is_alive=False,
            is_ai_matched=True,
            match_confidence=0.82,
        ),
        "w": Person(id="w", first_name="Wilma", last_name="Ford", gender=Gender.FEMALE, generation=0, children=["k"]),
        "k": Person(id="k", first_name="Kit", last_name="Ford", generation=1, parents=["h", "w"], is_current_user=True),
    }


def test_records_carry_positions():
    persons = rich_tree()
    layout = compute_layout(persons, LayoutConfig(jitter=0))
    records = export_records(persons, layout)

    by_id = {r["id"]: r for r in records}
    assert (by_id["k"]["x"], by_id["k"]["y"]) == layout.positions()["k"]
    assert by_id["h"]["spouses"][0]["marriage_date"] == "1950-04-01"


def test_records_without_layout_have_no_positions():
    records = export_records(rich_tree())
    assert all(r["x"] is None and r["y"] is None for r in records)
    assert import_records(records)[1] == {}


def test_json_file_round_trip(tmp_path):
    persons = rich_tree()
    layout = compute_layout(persons)
    path = tmp_path / "tree.json"

    write_json(path, persons, layout)
    loaded, positions = read_json(path)

    assert loaded == persons
    assert positions == layout.positions()


def test_read_json_accepts_wrapped_and_camel_case(tmp_path):
    path = tmp_path / "client.json"
    path.write_text(
        json.dumps(
            {
                "persons": {
                    "1": {"_id": "1", "firstName": "Ana", "isUser": True, "spouse": "2"},
                    "2": {"_id": "2", "firstName": "Bo", "birthDate": "1990-01-01"},
                }
            }
        )
    )
    persons, _ = read_json(path)

    assert persons["1"].first_name == "Ana"
    assert persons["1"].is_current_user
    assert persons["1"].spouse == "2"
    assert persons["2"].date_of_birth == "1990-01-01"


def test_duplicate_ids_are_rejected():
    with pytest.raises(ValidationError):
        import_records([{"id": "a"}, {"id": "a"}])


def test_table_has_one_row_per_person():
    persons = rich_tree()
    df = export_table(persons, compute_layout(persons))

    assert list(df.columns) == TABLE_COLUMNS
    assert len(df) == 3
    row = df.set_index("id").loc["h"]
    assert json.loads(row["children"]) == ["k"]
    assert json.loads(row["photos"]) == ["a.jpg", "b.jpg"]
    assert json.loads(row["spouses"])[0]["marriage_date"] == "1950-04-01"
    assert df.set_index("id").loc["k"]["spouses"] == ""


def test_table_round_trip_in_memory():
    persons = rich_tree()
    layout = compute_layout(persons)

    loaded, positions = import_table(export_table(persons, layout))

    assert loaded == persons
    assert positions == layout.positions()


def test_csv_round_trip(tmp_path):
    persons = rich_tree()
    layout = compute_layout(persons)
    path = tmp_path / "tree.csv"

    write_csv(path, persons, layout)
    loaded, positions = read_csv(path)

    assert loaded == persons
    for pid, (x, y) in layout.positions().items():
        assert positions[pid] == (pytest.approx(x), pytest.approx(y))


def test_blank_table_cells_become_defaults():
    df = pd.DataFrame([{"id": "solo", "first_name": "Sol", "generation": "2"}])
    persons, positions = import_table(df)

    solo = persons["solo"]
    assert solo.generation == 2
    assert solo.parents == []
    assert solo.bio is None
    assert solo.is_alive
    assert positions == {}


def test_bad_generation_in_table_is_rejected():
    df = pd.DataFrame([{"id": "x", "generation": "second"}])
    with pytest.raises(ValidationError, match="Row for 'x'"):
        import_table(df)


def test_separators_inside_list_entries_survive_csv(tmp_path):
    persons = {
        "a": Person(
            id="a",
            first_name="Ada",
            achievements=["Mayor; later senator", "Chess | bridge"],
            documents=['Letter, "private"'],
        )
    }
    path = tmp_path / "tree.csv"

    write_csv(path, persons)
    loaded, _ = read_csv(path)

    assert loaded["a"].achievements == ["Mayor; later senator", "Chess | bridge"]
    assert loaded["a"].documents == ['Letter, "private"']


def test_malformed_list_cell_is_rejected():
    df = pd.DataFrame([{"id": "x", "generation": "0", "parents": "not json"}])
    with pytest.raises(ValidationError, match="Row for 'x'"):
        import_table(df)
