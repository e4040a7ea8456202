"""
Per-provider normalizers that turn typed provider payloads (or a provider
failure) into AnalysisRecord fields.
"""
import re
from typing import Dict, List, Optional, Tuple

from relevance_engine.schemas.analysis_result import (
    AnalysisRecord,
    CATEGORIES,
    CATEGORY_ERROR,
    CATEGORY_OTHER,
    EmotionScore,
    Factuality,
    NOT_AVAILABLE,
    Sentiment,
    SUMMARY_UNAVAILABLE,
    TOPIC_ERROR,
    ToxicityResult,
    UNCATEGORIZED,
)
from relevance_engine.services.providers import (
    EmotionPayload,
    SentimentPayload,
    StructuredPayload,
    ToxicityPayload,
)

DEFAULT_EMOTION_THRESHOLD = 0.4
DEFAULT_TOXICITY_THRESHOLD = 0.5
OFFENSIVE_LABEL = "offensive"

_SENTIMENT_LABELS = {
    "label_0": Sentiment.NEGATIVE,
    "label_1": Sentiment.NEUTRAL,
    "label_2": Sentiment.POSITIVE,
    "negative": Sentiment.NEGATIVE,
    "neutral": Sentiment.NEUTRAL,
    "positive": Sentiment.POSITIVE,
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_sentiment(payload: Optional[SentimentPayload]) -> Sentiment:
    """Pick the highest-scoring label of the 3-way distribution; None means the call failed."""
    if payload is None:
        return Sentiment.ERROR

    best_label = ""
    best_score = -1.0
    for item in payload.scores:
        if item.score > best_score:
            best_score = item.score
            best_label = item.label
    return _SENTIMENT_LABELS.get(best_label.strip().lower(), Sentiment.UNKNOWN)


def normalize_emotions(
    payload: Optional[EmotionPayload],
    threshold: float = DEFAULT_EMOTION_THRESHOLD,
) -> List[EmotionScore]:
    if payload is None:
        return [EmotionScore(emotion=Sentiment.ERROR.value, score=NOT_AVAILABLE)]
    return [
        EmotionScore(emotion=item.label.lower(), score=round(item.score, 2))
        for item in payload.scores
        if item.score >= threshold
    ]


def clean_toxicity_label(label: str) -> str:
    """'IDENTITY_ATTACK' -> 'identity attack'"""
    return _WHITESPACE_RE.sub(" ", label.replace("_", " ")).strip().lower()


def normalize_toxicity(
    payload: Optional[ToxicityPayload],
    threshold: float = DEFAULT_TOXICITY_THRESHOLD,
) -> ToxicityResult:
    if payload is None:
        return ToxicityResult(detected=False, details={"error": NOT_AVAILABLE})

    details: Dict[str, float] = {}
    detected = False
    for item in payload.scores:
        if item.score < threshold:
            continue
        label = clean_toxicity_label(item.label)
        details[label] = round(item.score, 2)
        if label == OFFENSIVE_LABEL:
            detected = True
    return ToxicityResult(detected=detected, details=details)


def _clean_topics(topics: List[str]) -> List[str]:
    seen = set()
    cleaned: List[str] = []
    for topic in topics:
        topic = _WHITESPACE_RE.sub(" ", topic).strip()
        if topic and topic not in seen:
            seen.add(topic)
            cleaned.append(topic)
    return cleaned


def _clean_category(category: Optional[str]) -> str:
    if not category or not category.strip():
        return UNCATEGORIZED
    category = category.strip()
    for known in CATEGORIES:
        if known.lower() == category.lower():
            return known
    return CATEGORY_OTHER


def _clean_factuality(verdict: Optional[str]) -> Factuality:
    try:
        return Factuality((verdict or "").strip().lower())
    except ValueError:
        return Factuality.UNKNOWN


def normalize_structured(
    payload: Optional[StructuredPayload],
) -> Tuple[List[str], str, str, Factuality]:
    """Returns (topics, summary, category, factuality)."""
    if payload is None:
        return [TOPIC_ERROR], SUMMARY_UNAVAILABLE, CATEGORY_ERROR, Factuality.UNKNOWN

    summary = (payload.summary or "").strip() or SUMMARY_UNAVAILABLE
    return (
        _clean_topics(payload.topics),
        summary,
        _clean_category(payload.category),
        _clean_factuality(payload.factuality),
    )


def apply_safety_override(record: AnalysisRecord) -> AnalysisRecord:
    """Toxic content is never surfaced as cleanly positive or negative."""
    if record.toxicity.detected:
        record.sentiment = Sentiment.MIXED
    return record
