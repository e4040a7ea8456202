import uuid
from typing import List

from fastapi import APIRouter, Depends

from relevance_engine.api.deps import get_current_user_id, get_like_service, get_repository
from relevance_engine.schemas.social import CreatePostRequest, LikeResponse, Post
from relevance_engine.services.preferences import LikeService
from relevance_engine.services.repository import BaseRepository

router = APIRouter(prefix="/posts", tags=["posts"])


def _like_response(post: Post, liked: bool) -> LikeResponse:
    return LikeResponse(
        post_id=post.id,
        liked=liked,
        like_count=len(post.likes),
        message="Post liked." if liked else "Post unliked.",
    )


@router.post("", response_model=Post, status_code=201)
def create_post(
    request: CreatePostRequest,
    user_id: str = Depends(get_current_user_id),
    repository: BaseRepository = Depends(get_repository),
) -> Post:
    """Create a post carrying the unanalyzed placeholder record."""
    post = Post(
        id=uuid.uuid4().hex,
        author_id=user_id,
        content=request.content,
        image=request.image,
    )
    return repository.save_post(post)


@router.get("", response_model=List[Post])
def list_posts(repository: BaseRepository = Depends(get_repository)) -> List[Post]:
    """Global feed, newest first."""
    return repository.list_posts()


@router.get("/{post_id}", response_model=Post)
def get_post(post_id: str, repository: BaseRepository = Depends(get_repository)) -> Post:
    return repository.get_post(post_id)


@router.put("/{post_id}/like", response_model=LikeResponse)
def toggle_like(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    likes: LikeService = Depends(get_like_service),
) -> LikeResponse:
    """Like the post if the user has not liked it yet, unlike it otherwise."""
    post, liked = likes.toggle_like(user_id, post_id)
    return _like_response(post, liked)


@router.post("/{post_id}/like", response_model=LikeResponse)
def like_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    likes: LikeService = Depends(get_like_service),
) -> LikeResponse:
    return _like_response(likes.record_like(user_id, post_id), True)


@router.delete("/{post_id}/like", response_model=LikeResponse)
def unlike_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    likes: LikeService = Depends(get_like_service),
) -> LikeResponse:
    return _like_response(likes.record_unlike(user_id, post_id), False)
