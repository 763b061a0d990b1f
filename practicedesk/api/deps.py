"""
API dependencies.

Verifies Firebase ID tokens, enforces roles and the per-user practice
allow-list, and hands routes the Firestore-backed services.
"""

from typing import List, Callable

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth

from practicedesk.core.firebase import get_db
from practicedesk.services.patient_service import PatientService
from practicedesk.services.practice_directory import PracticeDirectory

security = HTTPBearer(auto_error=True)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
):
    """
    Verify Firebase ID token from Authorization header.

    Expects:
        Authorization: Bearer <id_token>
    """
    try:
        id_token = credentials.credentials
        decoded = auth.verify_id_token(id_token)
        return decoded
    except Exception as exc:
        raise HTTPException(
            status_code=401,
            detail="Invalid ID token",
        ) from exc


def require_role(allowed: List[str]) -> Callable:
    """
    Return a FastAPI dependency that enforces a user's role.

    The Firebase ID token is expected to have a custom claim `role`.
    Example claims:
        {'role': 'staff'}
        {'role': 'admin'}
    """

    def _checker(user=Depends(get_current_user)):
        role = user.get("role") or user.get("roles")

        if isinstance(role, list):
            is_allowed = any(r in allowed for r in role)
        else:
            is_allowed = role in allowed

        if not is_allowed:
            raise HTTPException(
                status_code=403,
                detail="Insufficient permissions",
            )

        return user

    return _checker


def get_patient_service() -> PatientService:
    return PatientService(get_db())


def get_practice_directory() -> PracticeDirectory:
    return PracticeDirectory(get_db())


def require_practice_access(
    practice_id: str,
    user=Depends(get_current_user),
    directory: PracticeDirectory = Depends(get_practice_directory),
) -> str:
    """Path dependency: the caller must have `practice_id` in allowedPractices."""
    if not directory.can_access(user["uid"], practice_id):
        raise HTTPException(
            status_code=403,
            detail="No access to this practice",
        )
    return practice_id
