"""Canonical forms of the patient fields used for storage and comparison."""
from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional

_NON_DIGIT = re.compile(r"\D")

COMPARISON_KEYS = ("firstName", "lastName", "dob", "phone", "email")


def _text(value: Optional[Any]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def comparison_name(value: Optional[Any]) -> str:
    return _text(value).lower()


def digits_only(value: Optional[Any]) -> str:
    return _NON_DIGIT.sub("", _text(value))


def display_name(value: Optional[Any]) -> str:
    """Title-case each whitespace-delimited word: "  mARY  ann " -> "Mary Ann"."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in _text(value).split())


def normalize(record: Mapping[str, Any]) -> Dict[str, str]:
    """
    Comparison form of a patient-like record.

    dob is only trimmed. A malformed date stays a literal token, so it can
    only ever match the same malformed value.
    """
    return {
        "firstName": comparison_name(record.get("firstName")),
        "lastName": comparison_name(record.get("lastName")),
        "dob": _text(record.get("dob")),
        "phone": digits_only(record.get("phone")),
        "email": comparison_name(record.get("email")),
    }


def storage_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Write-side transform, applied only to the keys present in ``fields``.

    Names are stored in display case with lowercase shadow copies
    (firstNameLower/lastNameLower) because Firestore has no
    case-insensitive equality.
    """
    out: Dict[str, Any] = dict(fields)

    for key in ("firstName", "lastName"):
        if key in fields:
            out[key] = display_name(fields[key])
            out[f"{key}Lower"] = comparison_name(fields[key])

    if "phone" in fields:
        out["phone"] = digits_only(fields["phone"])
    if "email" in fields:
        out["email"] = comparison_name(fields["email"])
    if "dob" in fields:
        out["dob"] = _text(fields["dob"])

    return out
