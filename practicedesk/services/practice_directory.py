"""Practices (tenants) a signed-in user may work in.

users/{uid}.allowedPractices holds the practice ids; practices/{id}
holds the display name. Read only.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from practicedesk.core.config import Settings, settings as default_settings
from practicedesk.services.firestore_docs import firestore_call


def _by_name(rows: List[Dict[str, str]]) -> List[Dict[str, str]]:
    return sorted(rows, key=lambda p: p["name"].lower())


def resolve_selection(allowed_ids: Sequence[str], saved_id: Optional[str]) -> Optional[str]:
    """
    Practice to work in, given the user's allow-list and a remembered choice.

    A remembered practice that is no longer allowed is dropped. With nothing
    remembered and exactly one allowed practice, that one is chosen.
    """
    if saved_id and saved_id in allowed_ids:
        return saved_id
    if len(allowed_ids) == 1:
        return allowed_ids[0]
    return None


class PracticeDirectory:
    def __init__(self, db, settings: Settings = default_settings):
        self.db = db
        self.settings = settings

    def allowed_practice_ids(self, principal_id: str) -> List[str]:
        with firestore_call("allowed_practices"):
            snap = self.db.collection(self.settings.USER_COLLECTION).document(principal_id).get()

        if not snap.exists:
            return []
        ids = (snap.to_dict() or {}).get("allowedPractices")
        if not isinstance(ids, list):
            return []
        # Repeated ids keep their first position
        out: List[str] = []
        for i in ids:
            if isinstance(i, str) and i and i not in out:
                out.append(i)
        return out

    def can_access(self, principal_id: str, practice_id: str) -> bool:
        return practice_id in self.allowed_practice_ids(principal_id)

    def _practice(self, practice_id: str) -> Optional[Dict[str, str]]:
        with firestore_call("get_practice"):
            snap = self.db.collection(self.settings.PRACTICE_COLLECTION).document(practice_id).get()
        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        return {"id": snap.id, "name": data.get("name") or snap.id}

    def practice_name(self, practice_id: str) -> Optional[str]:
        practice = self._practice(practice_id)
        return practice["name"] if practice else None

    def list_accessible_practices(self, principal_id: str) -> List[Dict[str, str]]:
        # Fetch each allowed practice directly rather than querying the
        # collection, so security rules never filter the result.
        rows = []
        for practice_id in self.allowed_practice_ids(principal_id):
            practice = self._practice(practice_id)
            if practice is not None:
                rows.append(practice)
        return _by_name(rows)

    def list_practices(self) -> List[Dict[str, str]]:
        with firestore_call("list_practices"):
            docs = list(self.db.collection(self.settings.PRACTICE_COLLECTION).stream())
        return _by_name([
            {"id": d.id, "name": (d.to_dict() or {}).get("name") or d.id}
            for d in docs
        ])
