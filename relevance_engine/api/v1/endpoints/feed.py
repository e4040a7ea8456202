from typing import List, Literal

from fastapi import APIRouter, Depends, Query

from relevance_engine.api.deps import get_current_user_id, get_feed_service
from relevance_engine.schemas.social import RankedFeedEntry
from relevance_engine.services.feed import FeedService

router = APIRouter(tags=["feed"])


@router.get("/feed", response_model=List[RankedFeedEntry])
def get_feed(
    scope: Literal["network", "global"] = Query("network"),
    user_id: str = Depends(get_current_user_id),
    feed: FeedService = Depends(get_feed_service),
) -> List[RankedFeedEntry]:
    """
    Personalized feed for the acting user, highest relevance first.
    "network" ranks followed and own posts, "global" ranks every post.
    """
    return feed.rank_feed(user_id, scope=scope)
