"""GEDCOM import: build a Person map from a GEDCOM file."""

from dataclasses import replace
import logging
from pathlib import Path
import re

from ged4py import GedcomReader

from graph import derive_generations
from models import Gender, Person, SpouseLink

logger = logging.getLogger(__name__)

MONTHS = {
    name: number
    for number, names in enumerate(
        [
            ("JAN", "JANUARY"),
            ("FEB", "FEBRUARY"),
            ("MAR", "MARCH"),
            ("APR", "APRIL"),
            ("MAY",),
            ("JUN", "JUNE"),
            ("JUL", "JULY"),
            ("AUG", "AUGUST"),
            ("SEP", "SEPT", "SEPTEMBER"),
            ("OCT", "OCTOBER"),
            ("NOV", "NOVEMBER"),
            ("DEC", "DECEMBER"),
        ],
        start=1,
    )
    for name in names
}

QUALIFIERS = re.compile(
    r"^(ABT\.?|ABOUT|BEF\.?|BEFORE|AFT\.?|AFTER|EST\.?|CAL\.?|CIRCA|CA\.?|AROUND):?\s*",
    re.IGNORECASE,
)


def parse_date_string(date_str: str | None) -> str | None:
    """
    Parse a GEDCOM date string into ISO format (YYYY-MM-DD).
    Returns None if the date cannot be parsed.

    Handles "25 NOV 1954", "NOV 1954", "1698", "ABT 1905", "1839-08-29" and
    "01/27/1920"; missing month or day default to 01.
    """
    if not date_str:
        return None

    s = QUALIFIERS.sub("", date_str.strip().strip("()").rstrip("?")).strip()
    if not s:
        return None

    match = re.match(r"^(\d{4})-(\d{2})-(\d{2})$", s)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return f"{year:04d}-{max(month, 1):02d}-{max(day, 1):02d}"

    match = re.match(r"^(?:(\d{1,2})\s+)?([A-Za-z]+)\.?,?\s*(\d{4})$", s)
    if match:
        month = MONTHS.get(match.group(2).upper())
        if month:
            day = int(match.group(1) or 1)
            return f"{int(match.group(3)):04d}-{month:02d}-{day:02d}"

    match = re.match(r"^(\d{4})$", s)
    if match:
        return f"{int(match.group(1)):04d}-01-01"

    match = re.match(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$", s)
    if match:
        month, day, year = (int(g) for g in match.groups())
        if 1 <= month <= 12 and 1 <= day <= 31:
            return f"{year:04d}-{month:02d}-{day:02d}"

    return None


def person_id(xref_id: str) -> str:
    """'@I123@' -> 'I123'."""
    return xref_id.strip("@")


def extract_name_parts(indi) -> tuple[str, str, str]:
    """Extract full name, given name, and surname from an individual record."""
    name_rec = indi.sub_tag("NAME")
    if name_rec is None or name_rec.value is None:
        return ("Unknown", "Unknown", "")

    name_value = name_rec.value

    # ged4py returns NAME as tuple: (given, surname, suffix)
    if isinstance(name_value, tuple):
        given, surname, suffix = name_value
        parts = [p for p in [given, surname, suffix] if p]
        return (" ".join(parts) or "Unknown", given or "Unknown", surname or "")

    full_name = str(name_value).replace("/", "").strip() or "Unknown"
    givn = name_rec.sub_tag("GIVN")
    surn = name_rec.sub_tag("SURN")
    given = givn.value if givn else full_name.split(" ")[0]
    return (full_name, given, surn.value if surn else "")


def extract_event(record, tag: str) -> tuple[str | None, str | None, bool]:
    """Date (ISO when parseable) and place of an event tag, plus whether the tag exists."""
    event = record.sub_tag(tag)
    if event is None:
        return (None, None, False)

    date_rec = event.sub_tag("DATE")
    place_rec = event.sub_tag("PLAC")

    date_val = None
    if date_rec and date_rec.value:
        raw = str(date_rec.value)
        date_val = parse_date_string(raw) or raw

    place_val = str(place_rec.value) if place_rec and place_rec.value else None
    return (date_val, place_val, True)


def extract_gender(indi) -> Gender | None:
    sex_rec = indi.sub_tag("SEX")
    if sex_rec is None:
        return None
    return {"M": Gender.MALE, "F": Gender.FEMALE}.get(str(sex_rec.value).upper())


def _pointer(record, tag: str) -> str | None:
    sub = record.sub_tag(tag)
    return person_id(sub.xref_id) if sub is not None and sub.xref_id else None


def normalize_data(reader: GedcomReader) -> dict[str, Person]:
    """
    Extract persons and their relations from parsed GEDCOM data.

    FAM records provide parent/child and spouse links; children of one family
    are each other's siblings. Generations are derived from the relations
    since GEDCOM does not carry them.
    """
    persons: dict[str, Person] = {}

    for rec in reader.records0("INDI"):
        if rec.xref_id is None:
            continue
        pid = person_id(rec.xref_id)
        full_name, given, surname = extract_name_parts(rec)
        birth_date, birth_place, _ = extract_event(rec, "BIRT")
        death_date, _, died = extract_event(rec, "DEAT")

        persons[pid] = Person(
            id=pid,
            first_name=given,
            last_name=surname,
            name=full_name,
            gender=extract_gender(rec),
            date_of_birth=birth_date,
            place_of_birth=birth_place,
            date_of_death=death_date,
            is_alive=not died,
        )

    def link(pid: str | None, field: str, other: str):
        if pid is None or pid not in persons or other not in persons:
            return
        ids = getattr(persons[pid], field)
        if other != pid and other not in ids:
            ids.append(other)

    for rec in reader.records0("FAM"):
        husb_id = _pointer(rec, "HUSB")
        wife_id = _pointer(rec, "WIFE")
        child_ids = [person_id(c.xref_id) for c in rec.sub_tags("CHIL") if c.xref_id]

        if husb_id in persons and wife_id in persons:
            marriage_date, _, _ = extract_event(rec, "MARR")
            divorce_date, _, divorced = extract_event(rec, "DIV")
            for a, b in ((husb_id, wife_id), (wife_id, husb_id)):
                persons[a].spouses.append(
                    SpouseLink(
                        id=b,
                        marriage_date=marriage_date,
                        divorce_date=divorce_date,
                        is_current_spouse=not divorced,
                    )
                )

        for child_id in child_ids:
            for parent_id in (husb_id, wife_id):
                if parent_id is None:
                    continue
                link(parent_id, "children", child_id)
                link(child_id, "parents", parent_id)
            for sibling_id in child_ids:
                link(child_id, "siblings", sibling_id)

    generations = derive_generations(persons)
    lowest = min(generations.values(), default=0)
    return {
        pid: replace(p, generation=generations[pid] - lowest) for pid, p in persons.items()
    }


def load_gedcom(filepath: Path) -> dict[str, Person]:
    """Parse a GEDCOM file into a Person map."""
    with GedcomReader(str(filepath)) as reader:
        persons = normalize_data(reader)
    logger.info("Loaded %d persons from %s", len(persons), filepath)
    return persons
