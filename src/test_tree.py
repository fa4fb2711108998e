"""Tests for the tree mutation API."""

from models import Person, RelationType, SpouseLink
from tree import FamilyTree


def family() -> FamilyTree:
    return FamilyTree(
        "fam",
        {
            "mom": Person(id="mom", first_name="Mary", last_name="Lee", generation=0, children=["kid"], spouse="dad"),
            "dad": Person(id="dad", first_name="Tom", last_name="Lee", generation=0, children=["kid"]),
            "kid": Person(id="kid", first_name="Sam", last_name="Lee", generation=1, parents=["mom", "dad"]),
        },
    )


def allow(_person: Person) -> bool:
    return True


def test_add_child_wires_both_sides_and_inherits_last_name():
    tree = family()
    result = tree.add_person({"firstName": "Ivy"}, "kid", RelationType.CHILD)

    assert result.ok
    new = tree.get(result.person_id)
    assert new.generation == 2
    assert new.last_name == "Lee"
    assert new.name == "Ivy Lee"
    assert new.parents == ["kid"]
    assert tree.get("kid").children == [result.person_id]


def test_add_sibling_and_spouse_share_generation():
    tree = family()
    sibling = tree.add_person({"first_name": "Jo"}, "kid", "sibling")
    spouse = tree.add_person({"first_name": "Pat", "last_name": "Kim"}, "kid", "spouse")

    assert tree.get(sibling.person_id).generation == 1
    assert tree.get(sibling.person_id).last_name == "Lee"
    assert "kid" in tree.get(sibling.person_id).siblings
    assert sibling.person_id in tree.get("kid").siblings

    assert tree.get(spouse.person_id).generation == 1
    assert tree.get(spouse.person_id).last_name == "Kim"
    assert tree.get(spouse.person_id).spouse_ids() == ["kid"]
    assert spouse.person_id in tree.get("kid").spouse_ids()


def test_add_parent_above_top_row_shifts_generations():
    tree = family()
    result = tree.add_person({"first_name": "Old"}, "mom", RelationType.PARENT)

    assert result.ok
    assert tree.get(result.person_id).generation == 0
    assert tree.get("mom").generation == 1
    assert tree.get("kid").generation == 2
    assert tree.get("mom").parents == [result.person_id]


def test_add_requires_first_name():
    tree = family()
    result = tree.add_person({"first_name": "  "}, "kid")

    assert not result.ok
    assert result.reason == "First name is required"
    assert len(tree) == 3
    assert tree.version == 0


def test_add_requires_existing_anchor():
    tree = family()
    assert not tree.add_person({"first_name": "X"}, None, "child").ok
    assert not tree.add_person({"first_name": "X"}, "ghost", "child").ok
    assert not tree.add_person({"first_name": "X"}, "kid", "cousin").ok


def test_add_unanchored_person():
    tree = family()
    result = tree.add_person({"first_name": "Lone", "generation": 3}, relation=RelationType.NONE)

    assert result.ok
    assert tree.get(result.person_id).generation == 3


def test_delete_purges_references():
    tree = family()
    result = tree.delete_person("dad", allow)

    assert result.ok
    assert "dad" not in tree
    assert tree.get("mom").spouse_ids() == []
    assert tree.get("kid").parents == ["mom"]


def test_delete_respects_permission():
    tree = family()
    result = tree.delete_person("kid", lambda p: p.is_editable and p.id != "kid")

    assert not result.ok
    assert "permission" in result.reason
    assert "kid" in tree


def test_delete_unknown_person():
    assert not family().delete_person("ghost", allow).ok


def test_edit_recomputes_name():
    tree = family()
    result = tree.edit_person("kid", {"lastName": "Park", "bio": "Loves maps"})

    assert result.ok
    kid = tree.get("kid")
    assert kid.name == "Sam Park"
    assert kid.bio == "Loves maps"
    assert kid.parents == ["mom", "dad"]
    assert kid.generation == 1


def test_edit_keeps_spouse_details():
    tree = family()
    tree.edit_person("mom", {"spouses": [SpouseLink("dad", marriage_date="1980-01-01")]})

    assert tree.get("mom").spouses == [SpouseLink("dad", marriage_date="1980-01-01")]


def test_edit_rejects_unknown_fields_and_id_changes():
    tree = family()

    assert "Unknown fields" in tree.edit_person("kid", {"favourite_colour": "red"}).reason
    assert not tree.edit_person("kid", {"id": "other"}).ok
    assert not tree.edit_person("kid", {"first_name": ""}).ok
    assert not tree.edit_person("ghost", {"bio": "x"}).ok
    assert tree.version == 0


def test_listeners_fire_on_commit_only():
    tree = family()
    seen: list[str] = []
    unsubscribe = tree.subscribe(seen.append)

    tree.add_person({"first_name": ""}, "kid")
    tree.edit_person("kid", {"bio": "hi"})
    tree.replace_all(tree.snapshot(), notify=False)
    unsubscribe()
    tree.edit_person("kid", {"bio": "bye"})

    assert seen == ["fam"]


def test_snapshot_is_isolated_from_later_edits():
    tree = family()
    before = tree.snapshot()
    tree.edit_person("kid", {"bio": "changed"})

    assert before["kid"].bio is None
    assert tree.get("kid").bio == "changed"


def test_legacy_spouse_is_normalized_on_load():
    tree = family()
    mom = tree.get("mom")
    assert mom.spouse is None
    assert mom.spouse_ids() == ["dad"]


def test_malformed_payloads_fail_without_raising():
    tree = family()

    bad_spouse = tree.add_person({"first_name": "Bo", "spouses": [{"name": "x"}]}, "kid", "child")
    bad_parents = tree.edit_person("kid", {"parents": 5})
    bad_children = tree.edit_person("kid", {"children": "mom"})

    assert not bad_spouse.ok
    assert "malformed list field" in bad_spouse.reason
    assert not bad_parents.ok
    assert "must be a list" in bad_children.reason
    assert len(tree) == 3
    assert tree.get("kid").parents == ["mom", "dad"]
    assert tree.version == 0
