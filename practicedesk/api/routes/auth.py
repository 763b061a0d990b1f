"""Authentication-related routes.

Frontend performs authentication with Firebase; backend exposes helper
endpoints and token verification status.
"""
from fastapi import APIRouter, Depends
from practicedesk.api.deps import get_current_user, get_practice_directory

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
def get_me(user=Depends(get_current_user), directory=Depends(get_practice_directory)):
    return {
        "uid": user.get("uid"),
        "email": user.get("email"),
        "allowedPractices": directory.allowed_practice_ids(user["uid"]),
    }
