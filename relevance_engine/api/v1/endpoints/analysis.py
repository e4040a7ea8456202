from fastapi import APIRouter, Depends

from relevance_engine.api.deps import get_aggregator, get_repository
from relevance_engine.schemas.analysis_result import AnalysisResponse
from relevance_engine.services.aggregator import AnalysisAggregator
from relevance_engine.services.repository import BaseRepository

router = APIRouter(tags=["analysis"])


@router.post("/analyze/{post_id}", response_model=AnalysisResponse)
def analyze(
    post_id: str,
    aggregator: AnalysisAggregator = Depends(get_aggregator),
    repository: BaseRepository = Depends(get_repository),
) -> AnalysisResponse:
    """
    Run every analysis provider on a post and store the merged record.
    Individual provider failures show up as sentinel values, not errors.
    """
    record = aggregator.analyze(post_id)
    post = repository.get_post(post_id)
    return AnalysisResponse(post_id=post.id, content=post.content, analysis=record)
