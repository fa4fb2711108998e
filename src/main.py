"""
1) Load a family tree from JSON records, a CSV export or a GEDCOM file.
2) Check the data for integrity problems.
3) Lay it out (through the SQLite layout cache when --cache-db is given).
4) Print summary stats and write the requested exports.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from cache import LayoutCache
from config import LayoutConfig, load_config
from database import SQLiteStore
from errors import TreeError
from export import read_csv, read_json, write_csv, write_json
from graph import focus_subgraph
from layout import apply_positions, compute_layout
from models import LayoutResult, Person
from parsing import load_gedcom
from plotting import write_layout
from positions import canvas_size
from session import TreeSession
from stats import get_stats
from tree import FamilyTree
from validation import validate_tree

MAX_WARNINGS_SHOWN = 10


def load_input(path: Path) -> tuple[dict[str, Person], dict[str, tuple[float, float]]]:
    suffix = path.suffix.lower()
    if suffix == ".ged":
        return load_gedcom(path), {}
    if suffix == ".csv":
        return read_csv(path)
    return read_json(path)


async def layout_with_cache(
    tree_id: str, persons: dict[str, Person], db_path: Path, config: LayoutConfig
) -> LayoutResult:
    store = SQLiteStore(db_path)
    session = TreeSession(FamilyTree(tree_id), LayoutCache(store, config), config)

    async def source(_tree_id: str) -> dict[str, Person]:
        return persons

    try:
        return await session.load(source)
    finally:
        await session.close()
        store.close()


def print_warnings(title: str, warnings: list[str] | tuple[str, ...]):
    if not warnings:
        print(f"  No {title} found")
        return
    print(f"  Found {len(warnings)} {title}:")
    for w in warnings[:MAX_WARNINGS_SHOWN]:
        print(f"    - {w}")
    if len(warnings) > MAX_WARNINGS_SHOWN:
        print(f"    ... and {len(warnings) - MAX_WARNINGS_SHOWN} more")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lay out a family tree and export it.")
    parser.add_argument("input", type=Path, help="Tree data: .json records, .csv export or .ged")
    parser.add_argument("--tree-id", default=None, help="Tree identifier (default: file stem)")
    parser.add_argument("--config", type=Path, default=None, help="JSON layout config")
    parser.add_argument("--cache-db", type=Path, default=None, help="SQLite layout cache")
    parser.add_argument("--focus", default=None, help="Only lay out around this person id")
    parser.add_argument("--radius", type=int, default=2, help="Focus radius (default: 2)")
    parser.add_argument("--layout-out", type=Path, default=None, help="Write records + positions")
    parser.add_argument("--csv-out", type=Path, default=None, help="Write a flat CSV export")
    parser.add_argument("--plot", type=Path, default=None, help="Write .dot/.png/.svg snapshot")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)
    tree_id = args.tree_id or args.input.stem

    print(f"Loading tree data: {args.input}")
    try:
        persons, positions = load_input(args.input)
        if args.focus:
            persons = focus_subgraph(persons, args.focus, args.radius)
    except (OSError, TreeError) as e:
        print(f"Error: {e}")
        return 1
    print(f"  Found {len(persons)} persons")

    print("Validating tree...")
    print_warnings("validation warnings", validate_tree(persons))

    print("Computing layout...")
    if args.cache_db:
        layout = asyncio.run(layout_with_cache(tree_id, persons, args.cache_db, config))
    else:
        layout = compute_layout(persons, config)
    if positions and layout.ok:
        layout = apply_positions(layout, positions, config)

    if not layout.ok:
        print(f"  {layout.reason}")
        return 2
    print(f"  {len(layout.nodes)} nodes, {len(layout.connections)} connections")

    stats = get_stats(persons)
    print(
        f"  {stats.total_members} members across {stats.generations} generations, "
        f"{stats.with_photos} with photos, {stats.ai_matched} AI matched "
        f"({stats.completeness}% complete)"
    )

    if args.layout_out:
        write_json(args.layout_out, persons, layout)
        print(f"Layout saved to {args.layout_out}")
    if args.csv_out:
        write_csv(args.csv_out, persons, layout)
        print(f"Table saved to {args.csv_out}")
    if args.plot:
        write_layout(layout, args.plot, canvas_size(config)[1])
        print(f"Snapshot saved to {args.plot}")

    print("Done!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
