import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from relevance_engine.api.deps import get_repository
from relevance_engine.core.errors import NotFoundError, StateError
from relevance_engine.schemas.social import CreateUserRequest, PreferenceProfile, User
from relevance_engine.services.repository import BaseRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=User, status_code=201)
def create_user(request: CreateUserRequest, repository: BaseRepository = Depends(get_repository)) -> User:
    """Create a user; an id that is already taken is a 409 and leaves the stored user unchanged."""
    user = User(id=request.id or uuid.uuid4().hex, username=request.username)
    try:
        repository.get_user(user.id)
    except NotFoundError:
        return repository.save_user(user)
    raise StateError(f"User already exists: {user.id}")


@router.get("/{user_id}", response_model=User)
def get_user(user_id: str, repository: BaseRepository = Depends(get_repository)) -> User:
    return repository.get_user(user_id)


@router.get("/{user_id}/preferences", response_model=PreferenceProfile)
def get_preferences(user_id: str, repository: BaseRepository = Depends(get_repository)) -> PreferenceProfile:
    return repository.get_preferences(user_id)


@router.get("/{user_id}/following", response_model=List[str])
def get_following(user_id: str, repository: BaseRepository = Depends(get_repository)) -> List[str]:
    return sorted(repository.get_follow_set(user_id))


@router.post("/{user_id}/follow/{target_id}", status_code=204)
def follow(user_id: str, target_id: str, repository: BaseRepository = Depends(get_repository)) -> None:
    if user_id == target_id:
        raise HTTPException(status_code=400, detail="Users cannot follow themselves.")
    repository.follow(user_id, target_id)


@router.delete("/{user_id}/follow/{target_id}", status_code=204)
def unfollow(user_id: str, target_id: str, repository: BaseRepository = Depends(get_repository)) -> None:
    repository.unfollow(user_id, target_id)
