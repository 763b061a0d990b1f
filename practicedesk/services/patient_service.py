"""Business logic / service layer for patient operations.

Every operation takes the practice (tenant) id explicitly; nothing here
reads the frontend's "selected practice". Patients live under

    tenants/{practiceId}/patients/{patientId}

with a flat patients/{patientId} collection for records written before
practices existed.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError, NotFound
from pydantic import BaseModel, ValidationError as SchemaError

from practicedesk.core.config import Settings, settings as default_settings
from practicedesk.core.errors import (
    DuplicateFoundError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from practicedesk.models.patient import PatientIn, PatientUpdate
from practicedesk.services import duplicates
from practicedesk.services.firestore_docs import firestore_call, snapshot_to_dict
from practicedesk.services.logger import log_debug
from practicedesk.services.normalize import comparison_name, storage_fields

# Sentinel practice id for the cross-practice view
ALL_PRACTICES = "*"


class ListMode(str, Enum):
    SCOPED = "scoped"
    # Scoped read, then the flat legacy collection when the practice has no rows
    LEGACY_UNSCOPED = "legacy-unscoped"


def _validate(model, record: Union[BaseModel, Mapping[str, Any]]):
    if isinstance(record, model):
        return record
    if isinstance(record, BaseModel):
        record = record.model_dump(exclude_unset=True)
    try:
        return model.model_validate(dict(record))
    except SchemaError as exc:
        raise ValidationError(
            "invalid patient fields",
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc


def _search_values(p: Dict[str, Any]) -> List[str]:
    aid = p.get("medicalAid") if isinstance(p.get("medicalAid"), dict) else {}
    values = [
        p.get("firstName"),
        p.get("lastName"),
        p.get("phone"),
        p.get("email"),
        aid.get("memberNo") or p.get("memberNo"),
    ]
    return [str(v).lower() for v in values if v]


class PatientService:
    def __init__(self, db, settings: Settings = default_settings):
        self.db = db
        self.settings = settings

    # -------------------------
    # Collections
    # -------------------------
    def _collection(self, practice_id: Optional[str]):
        if practice_id:
            return (
                self.db.collection(self.settings.TENANT_COLLECTION)
                .document(practice_id)
                .collection(self.settings.PATIENT_COLLECTION)
            )
        return self.db.collection(self.settings.LEGACY_PATIENT_COLLECTION)

    def _write_scope(self, practice_id: Optional[str]) -> Optional[str]:
        """Practice id to write under, or None for the legacy collection."""
        if practice_id == ALL_PRACTICES:
            raise ValidationError("a single practice is required for this operation")
        if not practice_id:
            if self.settings.STRICT_TENANCY:
                raise ValidationError("tenant required")
            return None
        return practice_id

    def _read_scope_missing(self, practice_id: Optional[str]) -> bool:
        return not practice_id and self.settings.STRICT_TENANCY

    # -------------------------
    # Duplicate detection
    # -------------------------
    def find_duplicates(
        self,
        practice_id: Optional[str],
        candidate: Union[BaseModel, Mapping[str, Any]],
    ) -> List[Dict[str, Any]]:
        if practice_id == ALL_PRACTICES:
            raise ValidationError("a single practice is required for this operation")
        if self._read_scope_missing(practice_id):
            return []

        if isinstance(candidate, BaseModel):
            candidate = candidate.model_dump()

        with firestore_call("find_duplicates"):
            matches = duplicates.find_duplicates(
                self._collection(practice_id),
                candidate,
                practice_id or None,
                limit=self.settings.DUPLICATE_PROBE_LIMIT,
            )

        log_debug("patient.duplicate_check", {
            "practice_id": practice_id,
            "matches": [m["id"] for m in matches],
        })
        return matches

    # -------------------------
    # CRUD
    # -------------------------
    def create(
        self,
        practice_id: Optional[str],
        record: Union[PatientIn, Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Register a patient after a duplicate check.

        Any match blocks the write with DuplicateFoundError. The check and
        the insert are separate Firestore calls, so two concurrent creates
        of the same person can both succeed.
        """
        scope = self._write_scope(practice_id)
        patient = _validate(PatientIn, record)
        data = patient.model_dump(mode="json")

        matches = self.find_duplicates(scope, data)
        if matches:
            raise DuplicateFoundError(matches, duplicates.describe_duplicates(matches))

        doc = storage_fields(data)
        doc["practiceId"] = scope
        doc["createdAt"] = firestore.SERVER_TIMESTAMP

        with firestore_call("create"):
            _, ref = self._collection(scope).add(doc)
            snap = ref.get()

        log_debug("patient.created", {"practice_id": scope, "patient_id": ref.id})
        return snapshot_to_dict(snap, scope)

    def get(self, practice_id: Optional[str], patient_id: str) -> Optional[Dict[str, Any]]:
        if practice_id == ALL_PRACTICES or self._read_scope_missing(practice_id):
            return None

        with firestore_call("get"):
            snap = self._collection(practice_id).document(patient_id).get()

        if not snap.exists:
            return None
        return snapshot_to_dict(snap, practice_id or None)

    def _check_medical_aid_against_stored(self, ref, patient_id: str, medical_aid) -> None:
        """A medicalAid change without a payer change must agree with the stored payer."""
        with firestore_call("update"):
            snap = ref.get()
        if not snap.exists:
            raise NotFoundError(f"Patient {patient_id} not found")

        # Older documents store "medical" for medical aid
        on_aid = (snap.to_dict() or {}).get("payer") in ("medical_aid", "medical")
        if on_aid and medical_aid is None:
            raise ValidationError("medicalAid is required when payer is medical_aid")
        if not on_aid and medical_aid is not None:
            raise ValidationError("medicalAid requires payer medical_aid")

    def update(
        self,
        practice_id: Optional[str],
        patient_id: str,
        fields: Union[PatientUpdate, Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Apply a partial update. Only the fields present are re-normalized;
        duplicate detection is not re-run.
        """
        scope = self._write_scope(practice_id)
        patch = _validate(PatientUpdate, fields)
        changes = patch.model_dump(mode="json", exclude_unset=True)

        if changes.get("payer") == "private":
            changes["medicalAid"] = None

        ref = self._collection(scope).document(patient_id)

        if "medicalAid" in changes and "payer" not in changes:
            self._check_medical_aid_against_stored(ref, patient_id, changes["medicalAid"])

        if changes:
            try:
                ref.update(storage_fields(changes))
            except NotFound as exc:
                raise NotFoundError(f"Patient {patient_id} not found") from exc
            except GoogleAPICallError as exc:
                raise TransportError(exc.message or str(exc)) from exc

        with firestore_call("update"):
            snap = ref.get()

        if not snap.exists:
            raise NotFoundError(f"Patient {patient_id} not found")

        log_debug("patient.updated", {
            "practice_id": scope,
            "patient_id": patient_id,
            "fields": sorted(changes),
        })
        return snapshot_to_dict(snap, scope)

    # -------------------------
    # Listing
    # -------------------------
    def list(
        self,
        practice_id: Optional[str],
        mode: Union[ListMode, str] = ListMode.SCOPED,
    ) -> List[Dict[str, Any]]:
        """
        Patients of one practice, newest first.

        ALL_PRACTICES reads every practice plus the legacy collection,
        ordered by last name then first name.
        """
        if practice_id == ALL_PRACTICES:
            return self._list_all()
        if not practice_id:
            return []

        mode = ListMode(mode)
        rows = self._list_scoped(practice_id)
        if rows or mode is ListMode.SCOPED:
            return rows

        log_debug("patient.list.legacy_fallback", {"practice_id": practice_id})
        return self._list_legacy(practice_id)

    def _list_scoped(self, practice_id: str) -> List[Dict[str, Any]]:
        q = (
            self._collection(practice_id)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(self.settings.LIST_LIMIT)
        )
        with firestore_call("list"):
            return [snapshot_to_dict(d, practice_id) for d in q.stream()]

    def _list_legacy(self, practice_id: str) -> List[Dict[str, Any]]:
        q = self.db.collection(self.settings.LEGACY_PATIENT_COLLECTION).limit(self.settings.LIST_LIMIT)
        with firestore_call("list_legacy"):
            rows = [snapshot_to_dict(d) for d in q.stream()]

        rows = [r for r in rows if not r.get("practiceId") or r["practiceId"] == practice_id]
        rows.sort(key=lambda r: r.get("createdAt") or "", reverse=True)
        return rows

    def _list_all(self) -> List[Dict[str, Any]]:
        cap = self.settings.ALL_PRACTICES_LIMIT

        with firestore_call("list_all"):
            # The collection group also covers a top-level collection with the same id
            snaps = list(self.db.collection_group(self.settings.PATIENT_COLLECTION).limit(cap).stream())
            if self.settings.LEGACY_PATIENT_COLLECTION != self.settings.PATIENT_COLLECTION:
                legacy = self.db.collection(self.settings.LEGACY_PATIENT_COLLECTION).limit(cap)
                snaps.extend(legacy.stream())

        rows = [snapshot_to_dict(d) for d in snaps][:cap]
        rows.sort(key=lambda r: (comparison_name(r.get("lastName")), comparison_name(r.get("firstName"))))
        return rows

    def search(
        self,
        practice_id: Optional[str],
        query: Optional[str],
        mode: Union[ListMode, str] = ListMode.SCOPED,
    ) -> List[Dict[str, Any]]:
        """Substring search over name, phone, email, member number and dob."""
        rows = self.list(practice_id, mode)
        s = (query or "").strip().lower()
        if not s:
            return rows

        return [
            p for p in rows
            if any(s in v for v in _search_values(p)) or s in str(p.get("dob") or "")
        ]
