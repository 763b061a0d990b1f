"""Duplicate patient detection.

Exact-equality probes over a single patient collection. There is no
similarity scoring: a typo in a name is a missed match, never a guess.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from practicedesk.services.firestore_docs import snapshot_to_dict
from practicedesk.services.normalize import normalize

# Lowercase shadow fields first, then the raw name fields for legacy
# documents that stored lower-cased names directly.
NAME_FIELDS = (
    ("firstNameLower", "lastNameLower"),
    ("firstName", "lastName"),
)

Filters = Sequence[Tuple[str, str]]


def build_probes(candidate: Mapping[str, Any]) -> List[Filters]:
    """
    Equality filters to run for ``candidate``.

    1) first name + last name + dob
    2) phone
    3) email + first name + last name

    A probe is only built when every value it needs is non-empty.
    """
    c = normalize(candidate)
    probes: List[Filters] = []

    if c["firstName"] and c["lastName"] and c["dob"]:
        for first_field, last_field in NAME_FIELDS:
            probes.append([
                (first_field, c["firstName"]),
                (last_field, c["lastName"]),
                ("dob", c["dob"]),
            ])

    if c["phone"]:
        probes.append([("phone", c["phone"])])

    if c["email"] and c["firstName"] and c["lastName"]:
        for first_field, last_field in NAME_FIELDS:
            probes.append([
                ("email", c["email"]),
                (first_field, c["firstName"]),
                (last_field, c["lastName"]),
            ])

    return probes


def _run_probe(collection, filters: Filters, limit: int):
    q = collection
    for field, value in filters:
        q = q.where(field, "==", value)
    return q.limit(limit).stream()


def unique_by_id(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    out = []
    for row in rows:
        if row["id"] in seen:
            continue
        seen.add(row["id"])
        out.append(row)
    return out


def find_duplicates(
    collection,
    candidate: Mapping[str, Any],
    practice_id: Optional[str] = None,
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """
    Existing patients in ``collection`` that plausibly are ``candidate``.

    Each probe is capped at ``limit`` documents; results keep probe order
    and are deduplicated by document id.
    """
    probes = build_probes(candidate)
    if not probes:
        return []

    results: List[Dict[str, Any]] = []
    for filters in probes:
        for snap in _run_probe(collection, filters, limit):
            results.append(snapshot_to_dict(snap, practice_id))

    return unique_by_id(results)


def describe_duplicates(matches: Iterable[Mapping[str, Any]]) -> List[str]:
    """One human-readable line per match: name, DOB, and phone or email."""
    lines = []
    for d in matches:
        contact = d.get("phone") or d.get("email") or ""
        lines.append(
            f"{d.get('firstName', '')} {d.get('lastName', '')} - DOB {d.get('dob') or '-'} - {contact}"
        )
    return lines
