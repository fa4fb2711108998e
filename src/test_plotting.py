from config import LayoutConfig
from layout import compute_layout
from models import Gender, Person
from plotting import layout_to_dot, write_layout


def small_layout():
    persons = {
        "a": Person(id="a", first_name="Al", gender=Gender.MALE, generation=0, children=["b"], spouse="c"),
        "c": Person(id="c", first_name='Cora "Cee"', gender=Gender.FEMALE, generation=0),
        "b": Person(id="b", first_name="Bo", generation=1, parents=["a"], date_of_birth="2001-02-03"),
    }
    return compute_layout(persons, LayoutConfig(jitter=0))


def test_layout_to_dot_pins_every_node():
    layout = small_layout()
    P = layout_to_dot(layout, canvas_height=3376)

    nodes = {n.get_name().strip('"'): n for n in P.get_nodes()}
    assert set(nodes) == {"a", "b", "c"}
    a = layout.node("a")
    assert nodes["a"].get("pos") == f'"{a.x:.1f},{3376 - a.y:.1f}!"'
    assert len(P.get_edges()) == 2


def test_write_dot_source(tmp_path):
    path = tmp_path / "tree.dot"
    write_layout(small_layout(), path)

    source = path.read_text()
    assert "digraph" in source
    assert "firebrick" in source
