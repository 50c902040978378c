from typing import Any

from fastapi import APIRouter

from pokemaker.api.deps import CurrentUser
from pokemaker.models import UserPublic

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserPublic)
def read_user_me(current_user: CurrentUser) -> Any:
    """
    Get current user.
    """
    return current_user
