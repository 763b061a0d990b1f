from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPICallError

from practicedesk.core.errors import TransportError
from practicedesk.services.logger import log_debug


@contextmanager
def firestore_call(action: str):
    """Re-raise any Firestore API failure as TransportError with the store's message."""
    try:
        yield
    except GoogleAPICallError as exc:
        log_debug("firestore.error", {"action": action, "code": exc.code})
        raise TransportError(exc.message or str(exc)) from exc


# -------------------------
# Helpers
# -------------------------
def to_iso(ts):
    if ts is None:
        return None
    # Firestore Timestamp has .datetime in firebase_admin
    dt = getattr(ts, "datetime", ts)
    if isinstance(dt, datetime):
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat()
    return str(ts)


def owning_practice_id(snapshot) -> Optional[str]:
    """
    Practice id from the document path tenants/{practiceId}/patients/{id}.

    Documents in a top-level collection have no parent document; for those
    the stored practiceId field (if any) is used.
    """
    parent_doc = snapshot.reference.parent.parent
    if parent_doc is not None:
        return parent_doc.id
    return (snapshot.to_dict() or {}).get("practiceId")


def snapshot_to_dict(snapshot, practice_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Flatten a DocumentSnapshot into {"id": ..., **fields, "practiceId": ...}.

    ``practice_id`` overrides the owning practice when the caller already
    knows which tenant collection it queried.
    """
    data: Dict[str, Any] = snapshot.to_dict() or {}
    out = {"id": snapshot.id, **data}
    out["practiceId"] = practice_id if practice_id is not None else owning_practice_id(snapshot)
    if "createdAt" in out:
        out["createdAt"] = to_iso(out["createdAt"])
    return out
