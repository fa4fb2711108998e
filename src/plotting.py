"""Snapshot rendering of a computed layout with Graphviz."""

from pathlib import Path

import pydot

from models import ConnectionType, Gender, LayoutResult


def layout_to_dot(layout: LayoutResult, canvas_height: float | None = None) -> pydot.Dot:
    """
    Build a pydot graph whose nodes are pinned at the layout's coordinates.

    Intended for debugging and sharing a layout, not as the app renderer. Render
    with neato (`-n` keeps pinned positions) so Graphviz does not re-layout.
    """
    if canvas_height is None:
        canvas_height = max((n.y for n in layout.nodes), default=0.0)

    P = pydot.Dot(graph_type="digraph")
    P.set("splines", "true")
    P.set("outputorder", "edgesfirst")

    for node in layout.nodes:
        person = node.person
        if person.gender is Gender.MALE:
            fillcolor = "lightblue"
        elif person.gender is Gender.FEMALE:
            fillcolor = "lightpink"
        else:
            fillcolor = "lightgray"

        birth_year = (person.date_of_birth or "")[:4]
        death_year = (person.date_of_death or "")[:4]
        lines = [person.first_name, person.last_name, f"{birth_year}-{death_year}"]
        label = "\\n".join(line.replace('"', '\\"') for line in lines)

        P.add_node(
            pydot.Node(
                f'"{node.id}"',
                label=f'"{label}"',
                shape="box",
                style="rounded,filled",
                fillcolor=fillcolor,
                fontsize="10",
                pos=f'"{node.x:.1f},{canvas_height - node.y:.1f}!"',
            )
        )

    for c in layout.connections:
        if c.type is ConnectionType.PARENT:
            attrs = {"color": "darkgray"}
        elif c.type is ConnectionType.SPOUSE:
            attrs = {"dir": "none", "color": "firebrick", "penwidth": "2"}
        else:
            attrs = {"dir": "none", "color": "darkgray", "style": "dashed"}
        P.add_edge(pydot.Edge(f'"{c.from_id}"', f'"{c.to_id}"', **attrs))

    return P


def write_layout(layout: LayoutResult, output_path: Path, canvas_height: float | None = None):
    """
    Write a layout snapshot. `.dot` writes the DOT source; png, svg and pdf are
    rendered with neato and require Graphviz to be installed.
    """
    P = layout_to_dot(layout, canvas_height)
    ext = output_path.suffix.lower().lstrip(".")
    if ext == "dot":
        P.write_raw(str(output_path))
        return
    if ext not in ("png", "svg", "pdf"):
        ext = "png"
    P.write(str(output_path), prog=["neato", "-n"], format=ext)
