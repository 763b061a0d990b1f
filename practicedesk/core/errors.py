"""Typed failures raised by the patient and practice services.

The API layer maps each of these onto an HTTP status in ``main.py``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class PracticeDeskError(Exception):
    """Base error for service operations."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message}


class ValidationError(PracticeDeskError):
    """A write is missing required scoping or carries invalid fields.

    The caller must correct the input; retrying as-is will fail again.
    """

    status_code = 422

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class DuplicateFoundError(PracticeDeskError):
    """Creation blocked because existing patients match the candidate."""

    status_code = 409

    def __init__(self, matches: List[Dict[str, Any]], summaries: List[str]):
        message = "Potential duplicate(s) found:\n" + "\n".join(summaries)
        super().__init__(message)
        self.matches = matches
        self.summaries = summaries

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "summaries": self.summaries,
            "matches": self.matches,
        }


class NotFoundError(PracticeDeskError):
    status_code = 404


class TransportError(PracticeDeskError):
    """The underlying Firestore call failed (network, permission denial...)."""

    status_code = 502
