"""Summary statistics over a tree's Person map."""

from collections.abc import Mapping

from models import Person, TreeStats


def get_stats(persons: Mapping[str, Person]) -> TreeStats:
    """Aggregate member counts for headers and sharing; independent of layout."""
    members = list(persons.values())
    if not members:
        return TreeStats(
            total_members=0, generations=0, with_photos=0, ai_matched=0, with_bios=0, completeness=0
        )

    generations = [m.generation for m in members]
    with_photos = sum(1 for m in members if m.photo or m.photos)
    with_bios = sum(1 for m in members if m.bio)

    return TreeStats(
        total_members=len(members),
        generations=max(generations) - min(generations) + 1,
        with_photos=with_photos,
        ai_matched=sum(1 for m in members if m.is_ai_matched),
        with_bios=with_bios,
        completeness=round((with_bios + with_photos) / (len(members) * 2) * 100),
    )
