"""Tests for grouping, positions, connections and compute_layout."""

import pytest

from config import LayoutConfig
from grouping import group_by_generation, sorted_generations
from layout import apply_positions, compute_layout
from models import ConnectionType, LayoutStatus, Person, SpouseLink
from positions import assign_positions, canvas_size, row_spacing, stable_offset


def tree(*persons: Person) -> dict[str, Person]:
    return {p.id: p for p in persons}


def edges(layout) -> set[tuple[str, str, str]]:
    return {(c.from_id, c.to_id, c.type.value) for c in layout.connections}


def basic_tree() -> dict[str, Person]:
    return tree(
        Person(id="A", first_name="Ada", generation=0, children=["B"]),
        Person(id="B", first_name="Ben", generation=1, parents=["A"], children=["C"]),
        Person(id="C", first_name="Cy", generation=2, parents=["B"]),
    )


# Generation grouping


def test_group_by_generation_keeps_insertion_order():
    persons = tree(
        Person(id="z", generation=1),
        Person(id="a", generation=0),
        Person(id="m", generation=1),
    )
    groups = group_by_generation(persons)
    assert [p.id for p in groups[1]] == ["z", "m"]
    assert [p.id for p in groups[0]] == ["a"]
    assert sorted_generations(groups) == [0, 1]


def test_group_by_generation_skips_empty_generations():
    persons = tree(Person(id="a", generation=0), Person(id="b", generation=3))
    assert set(group_by_generation(persons)) == {0, 3}


# Positions


def test_stable_offset_is_sum_of_character_codes():
    # ord('a') + ord('b') + ord('c') = 294; 294 % 25 = 19; 19 - 12 = 7
    assert stable_offset("abc", 0, 12) == 7


def test_stable_offset_is_bounded_and_pure():
    for node_id in ["a", "B", "person-1", "64b7f0c2e1", "ghost", "Zoë"]:
        for salt in (0, 1):
            offset = stable_offset(node_id, salt, 12)
            assert -12 <= offset <= 12
            assert offset == stable_offset(node_id, salt, 12)


def test_stable_offset_zero_jitter():
    assert stable_offset("anything", 0, 0) == 0


def test_row_spacing_single_member_is_zero():
    assert row_spacing(1, 1000, 200) == 0.0
    assert row_spacing(0, 1000, 200) == 0.0


def test_single_member_row_is_centred():
    config = LayoutConfig(jitter=0)
    positions = assign_positions(tree(Person(id="solo")), config)
    width, _ = canvas_size(config)
    assert positions["solo"][0] == width / 2


def test_crowded_row_compresses_spacing_within_margins():
    config = LayoutConfig(jitter=0)
    persons = tree(*(Person(id=f"p{i}", generation=0) for i in range(10)))
    positions = assign_positions(persons, config)
    width, _ = canvas_size(config)

    xs = [positions[f"p{i}"][0] for i in range(10)]
    gaps = {round(b - a, 6) for a, b in zip(xs, xs[1:])}
    assert len(gaps) == 1
    assert gaps.pop() < config.preferred_spacing
    assert xs[0] >= config.min_margin - 1e-9
    assert xs[-1] <= width - config.min_margin + 1e-9


def test_single_generation_shares_one_row():
    config = LayoutConfig(jitter=0)
    persons = tree(*(Person(id=f"p{i}", generation=4) for i in range(3)))
    ys = {y for _, y in assign_positions(persons, config).values()}
    assert len(ys) == 1


def test_rows_stack_in_generation_order():
    config = LayoutConfig(jitter=0)
    persons = tree(
        Person(id="kid", generation=2),
        Person(id="root", generation=0),
        Person(id="mid", generation=1),
    )
    positions = assign_positions(persons, config)
    assert positions["root"][1] < positions["mid"][1] < positions["kid"][1]
    assert positions["mid"][1] - positions["root"][1] == pytest.approx(
        config.preferred_generation_spacing
    )


# compute_layout


def test_basic_tree_scenario():
    layout = compute_layout(basic_tree())

    assert layout.ok
    assert len(layout.nodes) == 3
    assert edges(layout) == {("A", "B", "parent"), ("B", "C", "parent")}
    ys = {n.id: n.y for n in layout.nodes}
    assert ys["A"] < ys["B"] < ys["C"]


def test_redundant_declaration_yields_one_edge():
    persons = tree(
        Person(id="A", generation=0, children=["B"]),
        Person(id="B", generation=1, parents=["A"]),
    )
    layout = compute_layout(persons)
    assert edges(layout) == {("A", "B", "parent")}


def test_spouse_merge_yields_one_edge():
    persons = tree(
        Person(
            id="X",
            generation=0,
            spouse="Y",
            spouses=[SpouseLink(id="Y", marriage_date="1990-06-01", is_current_spouse=True)],
        ),
        Person(id="Y", generation=0, spouse="X"),
    )
    layout = compute_layout(persons)

    spouse_edges = [c for c in layout.connections if c.type is ConnectionType.SPOUSE]
    assert len(spouse_edges) == 1
    assert spouse_edges[0].marriage_info.marriage_date == "1990-06-01"


def test_spouse_edge_takes_dates_from_either_side():
    persons = tree(
        Person(id="X", generation=0, spouse="Y"),
        Person(
            id="Y",
            generation=0,
            spouses=[SpouseLink.from_dict({"id": "X", "marriageDate": "1990-06-01", "divorceDate": "2001-02-03", "isCurrentSpouse": False})],
        ),
    )
    layout = compute_layout(persons)

    spouse_edges = [c for c in layout.connections if c.type is ConnectionType.SPOUSE]
    assert len(spouse_edges) == 1
    edge = spouse_edges[0]
    assert (edge.from_id, edge.to_id) == ("X", "Y")
    assert edge.marriage_info == SpouseLink(
        id="Y", marriage_date="1990-06-01", divorce_date="2001-02-03", is_current_spouse=False
    )


def test_spouse_edge_fills_missing_divorce_date():
    persons = tree(
        Person(id="X", generation=0, spouses=[SpouseLink("Y", marriage_date="1990-06-01")]),
        Person(id="Y", generation=0, spouses=[SpouseLink("X", divorce_date="2001-02-03")]),
    )
    edge = next(c for c in compute_layout(persons).connections if c.type is ConnectionType.SPOUSE)

    assert edge.marriage_info.marriage_date == "1990-06-01"
    assert edge.marriage_info.divorce_date == "2001-02-03"


def test_dangling_reference_keeps_node_and_drops_edge():
    persons = tree(Person(id="D", generation=1, parents=["ghost"]))
    layout = compute_layout(persons)

    assert layout.node_ids() == {"D"}
    assert layout.connections == ()
    assert any("ghost" in w for w in layout.warnings)


def test_layout_is_deterministic():
    persons = tree(
        Person(id="gp", generation=0, children=["p1", "p2"], spouse="gm"),
        Person(id="gm", generation=0, children=["p1"]),
        Person(id="p1", generation=1, parents=["gp", "gm"], siblings=["p2"]),
        Person(id="p2", generation=1, parents=["gp"], siblings=["p1"]),
    )
    first = compute_layout(persons)
    second = compute_layout(persons)

    assert first.positions() == second.positions()
    assert set(first.connections) == set(second.connections)


def test_no_dangling_or_duplicate_edges():
    persons = tree(
        Person(id="a", generation=0, children=["b", "c", "nobody"], spouses=[SpouseLink("s")]),
        Person(id="s", generation=0, spouse="a", children=["b"]),
        Person(id="b", generation=1, parents=["a", "s"], siblings=["c", "c"]),
        Person(id="c", generation=1, parents=["a", "missing"], siblings=["b"]),
    )
    layout = compute_layout(persons)
    ids = layout.node_ids()

    for c in layout.connections:
        assert c.from_id in ids and c.to_id in ids

    keys = [c.key for c in layout.connections]
    assert len(keys) == len(set(keys))
    assert len([c for c in layout.connections if c.type is ConnectionType.SIBLING]) == 1
    assert len([c for c in layout.connections if c.type is ConnectionType.SPOUSE]) == 1


def test_sibling_generation_guard():
    persons = tree(
        Person(id="s1", generation=1, siblings=["s2"]),
        Person(id="s2", generation=2, siblings=["s1"]),
    )
    layout = compute_layout(persons)

    assert not [c for c in layout.connections if c.type is ConnectionType.SIBLING]
    assert any("generation" in w for w in layout.warnings)


def test_self_reference_is_dropped():
    persons = tree(Person(id="me", generation=0, parents=["me"], siblings=["me"], spouse="me"))
    layout = compute_layout(persons)

    assert layout.connections == ()
    assert len(layout.warnings) == 3


def test_anchors_for_parent_and_spouse_edges():
    config = LayoutConfig(jitter=0)
    persons = tree(
        Person(id="p", generation=0, children=["c"], spouse="q"),
        Person(id="q", generation=0),
        Person(id="c", generation=1),
    )
    layout = compute_layout(persons, config)
    nodes = {n.id: n for n in layout.nodes}
    by_type = {c.type: c for c in layout.connections}

    parent = by_type[ConnectionType.PARENT]
    assert (parent.from_x, parent.from_y) == (nodes["p"].x, nodes["p"].y + config.node_height / 2)
    assert (parent.to_x, parent.to_y) == (nodes["c"].x, nodes["c"].y - config.node_height / 2)

    spouse = by_type[ConnectionType.SPOUSE]
    assert nodes["p"].x < nodes["q"].x
    assert spouse.from_x == nodes["p"].x + config.node_width / 2
    assert spouse.to_x == nodes["q"].x - config.node_width / 2


def test_too_many_nodes_degrades():
    config = LayoutConfig(max_nodes=2)
    persons = tree(*(Person(id=str(i)) for i in range(3)))
    layout = compute_layout(persons, config)

    assert layout.status is LayoutStatus.TOO_MANY_NODES
    assert layout.nodes == ()
    assert "refine your view" in layout.reason


def test_derived_generations_override_asserted_values():
    persons = tree(
        Person(id="A", generation=0, children=["B"]),
        Person(id="B", generation=7, parents=["A"]),
    )
    asserted = compute_layout(persons)
    derived = compute_layout(persons, LayoutConfig(derive_generations=True))

    assert {n.id: n.generation for n in asserted.nodes} == {"A": 0, "B": 7}
    assert {n.id: n.generation for n in derived.nodes} == {"A": 0, "B": 1}


def test_node_references_person():
    persons = basic_tree()
    layout = compute_layout(persons)
    assert layout.node("A").person is persons["A"]


def test_apply_positions_moves_nodes_and_reanchors():
    config = LayoutConfig(jitter=0)
    layout = compute_layout(basic_tree(), config)
    moved = apply_positions(layout, {"B": (300.0, 900.0)}, config)

    assert moved.node("B").x == 300.0 and moved.node("B").y == 900.0
    assert moved.node("A") == layout.node("A")
    ab = next(c for c in moved.connections if c.to_id == "B")
    assert (ab.to_x, ab.to_y) == (300.0, 900.0 - config.node_height / 2)
