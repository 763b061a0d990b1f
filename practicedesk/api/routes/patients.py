"""Patient-related API routes.

Practice-scoped routes check the caller's allow-list before touching
Firestore; the cross-practice listing is for admins only. Handlers are
plain functions because the Firestore client blocks; FastAPI runs them in
its threadpool.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Body, HTTPException
from practicedesk.api.deps import get_patient_service, require_practice_access, require_role
from practicedesk.models.patient import PatientIn, PatientUpdate
from practicedesk.services.patient_service import ALL_PRACTICES, ListMode, PatientService

router = APIRouter(prefix="/practices/{practice_id}/patients", tags=["patients"])
all_router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("/")
def list_patients(
    mode: ListMode = ListMode.SCOPED,
    q: Optional[str] = None,
    practice_id: str = Depends(require_practice_access),
    service: PatientService = Depends(get_patient_service),
):
    """List a practice's patients, newest first; `q` filters by substring."""
    if q:
        items = service.search(practice_id, q, mode)
    else:
        items = service.list(practice_id, mode)
    return {"items": items}


@router.post("/", status_code=201)
def create_patient(
    payload: PatientIn = Body(...),
    practice_id: str = Depends(require_practice_access),
    service: PatientService = Depends(get_patient_service),
):
    return service.create(practice_id, payload)


@router.post("/duplicates")
def check_duplicates(
    candidate: dict = Body(...),
    practice_id: str = Depends(require_practice_access),
    service: PatientService = Depends(get_patient_service),
):
    return {"items": service.find_duplicates(practice_id, candidate)}


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    practice_id: str = Depends(require_practice_access),
    service: PatientService = Depends(get_patient_service),
):
    patient = service.get(practice_id, patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@router.patch("/{patient_id}")
def update_patient(
    patient_id: str,
    payload: PatientUpdate = Body(...),
    practice_id: str = Depends(require_practice_access),
    service: PatientService = Depends(get_patient_service),
):
    return service.update(practice_id, patient_id, payload)


@all_router.get("/")
def list_all_patients(
    q: Optional[str] = None,
    user=Depends(require_role(["admin"])),
    service: PatientService = Depends(get_patient_service),
):
    """Every practice's patients plus pre-tenancy records, by surname."""
    return {"items": service.search(ALL_PRACTICES, q)}


@all_router.post("/", status_code=201)
def create_unscoped_patient(
    payload: PatientIn = Body(...),
    user=Depends(require_role(["admin"])),
    service: PatientService = Depends(get_patient_service),
):
    """Write to the flat legacy collection. Rejected when tenancy is strict."""
    return service.create(None, payload)
