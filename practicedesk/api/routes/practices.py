"""Practice directory routes."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from practicedesk.api.deps import get_current_user, get_practice_directory, require_practice_access, require_role
from practicedesk.models.practice import Practice
from practicedesk.services.practice_directory import PracticeDirectory, resolve_selection

router = APIRouter(prefix="/practices", tags=["practices"])


@router.get("/")
def list_practices(
    user=Depends(get_current_user),
    directory: PracticeDirectory = Depends(get_practice_directory),
):
    return {"items": [Practice(**p) for p in directory.list_accessible_practices(user["uid"])]}


@router.get("/selection")
def current_selection(
    saved: Optional[str] = None,
    user=Depends(get_current_user),
    directory: PracticeDirectory = Depends(get_practice_directory),
):
    """Which practice the frontend should work in, given its remembered choice."""
    allowed = directory.allowed_practice_ids(user["uid"])
    return {"selectedId": resolve_selection(allowed, saved), "allowedIds": allowed}


@router.get("/all")
def list_all_practices(
    user=Depends(require_role(["admin"])),
    directory: PracticeDirectory = Depends(get_practice_directory),
):
    return {"items": [Practice(**p) for p in directory.list_practices()]}


@router.get("/{practice_id}")
def get_practice(
    practice_id: str = Depends(require_practice_access),
    directory: PracticeDirectory = Depends(get_practice_directory),
):
    name = directory.practice_name(practice_id)
    if name is None:
        raise HTTPException(status_code=404, detail="Practice not found")
    return Practice(id=practice_id, name=name)
