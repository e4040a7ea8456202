"""
Concurrent multi-provider analysis of a single post.

All configured providers are called at once and the aggregator waits for
every call to settle. Failed calls are folded into sentinel values, so a
record is always complete; only missing credentials abort an analysis.
"""
import logging
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from relevance_engine.core.config import Settings, settings as default_settings
from relevance_engine.core.errors import ProviderError
from relevance_engine.schemas.analysis_result import AnalysisRecord
from relevance_engine.services.normalizers import (
    apply_safety_override,
    normalize_emotions,
    normalize_sentiment,
    normalize_structured,
    normalize_toxicity,
)
from relevance_engine.services.providers import (
    BaseProvider,
    ProviderKind,
    RawProviderResponse,
    build_providers,
)
from relevance_engine.services.repository import BaseRepository

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings], Mapping[ProviderKind, BaseProvider]]


@dataclass
class ProviderOutcome:
    """Settled result of one provider call: either a payload or an error."""

    kind: ProviderKind
    payload: Optional[RawProviderResponse] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.payload is not None


def call_provider(kind: ProviderKind, provider: BaseProvider, text: str) -> ProviderOutcome:
    """Run one provider call and capture its outcome instead of raising."""
    try:
        payload = provider.analyze(text)
    except ProviderError as e:
        logger.warning(f"{kind.value} provider failed ({e.reason}): {e}")
        return ProviderOutcome(kind=kind, error=e)
    except Exception as e:
        logger.exception(f"{kind.value} provider raised unexpectedly")
        return ProviderOutcome(kind=kind, error=ProviderError(kind.value, ProviderError.MALFORMED, str(e)))

    if getattr(payload, "kind", None) != kind:
        error = ProviderError(kind.value, ProviderError.MALFORMED, f"expected a {kind.value} payload")
        logger.warning(f"{kind.value} provider returned the wrong payload type")
        return ProviderOutcome(kind=kind, error=error)
    return ProviderOutcome(kind=kind, payload=payload)


def merge_outcomes(
    outcomes: Mapping[ProviderKind, ProviderOutcome],
    emotion_threshold: float = 0.4,
    toxicity_threshold: float = 0.5,
) -> AnalysisRecord:
    """
    Combine settled provider outcomes into one AnalysisRecord.

    A kind missing from `outcomes` is treated as a failed call. The toxicity
    override runs last, after every individual normalizer.
    """

    def payload(kind: ProviderKind):
        outcome = outcomes.get(kind)
        return outcome.payload if outcome is not None and outcome.ok else None

    topics, summary, category, factuality = normalize_structured(payload(ProviderKind.STRUCTURED))
    record = AnalysisRecord(
        sentiment=normalize_sentiment(payload(ProviderKind.SENTIMENT)),
        emotions=normalize_emotions(payload(ProviderKind.EMOTION), threshold=emotion_threshold),
        toxicity=normalize_toxicity(payload(ProviderKind.TOXICITY), threshold=toxicity_threshold),
        topics=topics,
        summary=summary,
        category=category,
        factuality=factuality,
    )
    return apply_safety_override(record)


class AnalysisAggregator:
    """Fans one post's text out to every provider and stores the merged record."""

    def __init__(
        self,
        repository: BaseRepository,
        providers: Optional[Mapping[ProviderKind, BaseProvider]] = None,
        provider_factory: ProviderFactory = build_providers,
        settings: Settings = default_settings,
    ):
        self.repository = repository
        self.settings = settings
        self._provider_factory = provider_factory
        self._providers: Optional[Dict[ProviderKind, BaseProvider]] = dict(providers) if providers else None

    @property
    def providers(self) -> Dict[ProviderKind, BaseProvider]:
        """Configured providers; raises ConfigurationError while credentials are missing."""
        if self._providers is None:
            self._providers = dict(self._provider_factory(self.settings))
        return self._providers

    def analyze_text(self, text: str) -> AnalysisRecord:
        providers = self.providers
        # one worker per provider so every call runs at once
        workers = max(1, len(providers))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analysis") as executor:
            futures = {
                executor.submit(call_provider, kind, provider, text): kind
                for kind, provider in providers.items()
            }
            wait(futures, return_when=ALL_COMPLETED)

        outcomes = {kind: future.result() for future, kind in futures.items()}
        failed = sorted(kind.value for kind, outcome in outcomes.items() if not outcome.ok)
        if failed:
            logger.info(f"Analysis completed with failed providers: {', '.join(failed)}")

        return merge_outcomes(
            outcomes,
            emotion_threshold=self.settings.emotion_threshold,
            toxicity_threshold=self.settings.toxicity_threshold,
        )

    def analyze(self, post_id: str) -> AnalysisRecord:
        """
        Analyze a stored post and persist the record onto it.

        Raises:
            ConfigurationError: provider credentials are missing
            NotFoundError: the post does not exist
        """
        providers = self.providers  # raises ConfigurationError before the post is loaded
        logger.debug(f"Analyzing post {post_id} with {len(providers)} providers")

        post = self.repository.get_post(post_id)
        record = self.analyze_text(post.content)
        self.repository.save_post_analysis(post_id, record)
        logger.info(f"Post {post_id} analyzed: sentiment={record.sentiment.value} category={record.category}")
        return record
