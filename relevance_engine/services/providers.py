"""
Analysis provider clients.

Each provider wraps exactly one remote content-analysis call with a bounded
timeout and turns the loosely-typed JSON it gets back into a typed payload
for its provider kind. Any failure is raised as ProviderError; retries and
recovery are the aggregator's concern, not this module's.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import requests
from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from relevance_engine.core.config import Settings
from relevance_engine.core.errors import ConfigurationError, ProviderError
from relevance_engine.schemas.analysis_result import CATEGORIES, Factuality

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    SENTIMENT = "sentiment"
    EMOTION = "emotion"
    TOXICITY = "toxicity"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class LabelScore:
    label: str
    score: float


@dataclass
class SentimentPayload:
    scores: List[LabelScore]
    kind: ProviderKind = field(default=ProviderKind.SENTIMENT, init=False)


@dataclass
class EmotionPayload:
    scores: List[LabelScore]
    kind: ProviderKind = field(default=ProviderKind.EMOTION, init=False)


@dataclass
class ToxicityPayload:
    scores: List[LabelScore]
    kind: ProviderKind = field(default=ProviderKind.TOXICITY, init=False)


@dataclass
class StructuredPayload:
    topics: List[str]
    summary: Optional[str] = None
    category: Optional[str] = None
    factuality: Optional[str] = None
    kind: ProviderKind = field(default=ProviderKind.STRUCTURED, init=False)


RawProviderResponse = Union[SentimentPayload, EmotionPayload, ToxicityPayload, StructuredPayload]

_LABEL_PAYLOADS = {
    ProviderKind.SENTIMENT: SentimentPayload,
    ProviderKind.EMOTION: EmotionPayload,
    ProviderKind.TOXICITY: ToxicityPayload,
}


class BaseProvider(ABC):
    """Abstract base class for all analysis providers."""

    kind: ProviderKind

    @abstractmethod
    def analyze(self, text: str) -> RawProviderResponse:
        """Run one analysis call for the given text."""
        pass


class HTTPProvider(BaseProvider):
    """Shared request handling for providers reached over HTTP."""

    def __init__(self, timeout_seconds: float = 30.0, session: Optional[requests.Session] = None):
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "RelevanceEngine/1.0"
        })

    def _post_json(self, url: str, **kwargs) -> Any:
        """POST and decode a JSON body, mapping every failure to ProviderError."""
        try:
            response = self.session.post(url, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(self.kind.value, ProviderError.UNREACHABLE, str(e)) from e

        if not response.ok:
            raise ProviderError(
                self.kind.value,
                ProviderError.NON_2XX,
                f"{self.kind.value} provider returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.kind.value, ProviderError.MALFORMED, "response body is not JSON") from e


def parse_label_scores(provider: str, data: Any) -> List[LabelScore]:
    """
    Parse a classifier payload of the form [[{label, score}, ...]] or
    [{label, score}, ...] into label/score pairs, keeping provider order.
    """
    if isinstance(data, list) and data and isinstance(data[0], list):
        data = data[0]
    if not isinstance(data, list):
        raise ProviderError(provider, ProviderError.MALFORMED, f"unexpected {provider} payload: {data!r:.200}")

    scores: List[LabelScore] = []
    for item in data:
        if not isinstance(item, dict):
            raise ProviderError(provider, ProviderError.MALFORMED, f"unexpected {provider} entry: {item!r:.200}")
        label = item.get("label")
        score = item.get("score")
        if not isinstance(label, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ProviderError(provider, ProviderError.MALFORMED, f"unexpected {provider} entry: {item!r:.200}")
        scores.append(LabelScore(label=label, score=float(score)))
    return scores


class HuggingFaceProvider(HTTPProvider):
    """
    Hugging Face Inference API text classifier.
    One instance serves one model and one provider kind.
    """

    def __init__(
        self,
        kind: ProviderKind,
        model_id: str,
        api_token: str,
        base_url: str = "https://api-inference.huggingface.co/models/",
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if kind not in _LABEL_PAYLOADS:
            raise ValueError(f"Hugging Face provider cannot serve {kind.value}")
        self.kind = kind
        super().__init__(timeout_seconds=timeout_seconds, session=session)
        self.model_id = model_id
        self.url = f"{base_url.rstrip('/')}/{model_id}"
        self.session.headers.update({
            "Authorization": f"Bearer {api_token}",
        })

    def analyze(self, text: str) -> RawProviderResponse:
        data = self._post_json(
            self.url,
            json={"inputs": text, "options": {"wait_for_model": True}},
        )
        return _LABEL_PAYLOADS[self.kind](scores=parse_label_scores(self.kind.value, data))


class VaderSentimentProvider(BaseProvider):
    """Local VADER sentiment, shaped like the 3-way classifier distribution."""

    kind = ProviderKind.SENTIMENT

    def __init__(self, analyzer: Optional[SentimentIntensityAnalyzer] = None):
        self.analyzer = analyzer or SentimentIntensityAnalyzer()

    def analyze(self, text: str) -> RawProviderResponse:
        comp = self.analyzer.polarity_scores(text)["compound"]
        return SentimentPayload(scores=compound_distribution(comp))


VADER_THRESHOLD = 0.05


def compound_distribution(comp: float) -> List[LabelScore]:
    """
    Map a VADER compound score in [-1, 1] to a negative/neutral/positive
    distribution. The top entry is the compound label: positive at
    >= 0.05, negative at <= -0.05, neutral in between.
    """
    lean = (1.0 + comp) / 2.0
    if comp >= VADER_THRESHOLD:
        neg, neu, pos = 0.0, 1.0 - lean, lean
    elif comp <= -VADER_THRESHOLD:
        neg, neu, pos = 1.0 - lean, lean, 0.0
    else:
        neg, neu, pos = max(-comp, 0.0), 1.0 - abs(comp), max(comp, 0.0)
    return [
        LabelScore("negative", round(neg, 4)),
        LabelScore("neutral", round(neu, 4)),
        LabelScore("positive", round(pos, 4)),
    ]


STRUCTURED_PROMPT = """Analyze the following social media post.
1. Extract 3-5 distinct, key topics/keywords mentioned in the post.
2. Provide a concise summary of the post (max 50 words).
3. Classify the post into ONE of the following categories: {categories}. If none fit well, use "Other".
4. Judge whether the post's factual claims are supported by common knowledge: "support", "neutral" or "oppose".

Provide the output in JSON format:
{{
  "topics": ["topic1", "topic2", "topic3"],
  "summary": "Concise summary.",
  "category": "CategoryName",
  "factuality": "neutral"
}}

Post: "{content}"
"""


class GeminiProvider(HTTPProvider):
    """Gemini structured call returning topics, summary, category and factuality."""

    kind = ProviderKind.STRUCTURED

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/models/",
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds, session=session)
        self.session.headers.update({
            "x-goog-api-key": api_key,
        })
        self.url = f"{base_url.rstrip('/')}/{model}:generateContent"

    def build_request(self, text: str) -> Dict[str, Any]:
        prompt = STRUCTURED_PROMPT.format(categories=", ".join(CATEGORIES), content=text)
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": {
                    "type": "OBJECT",
                    "properties": {
                        "topics": {"type": "ARRAY", "items": {"type": "STRING"}},
                        "summary": {"type": "STRING"},
                        "category": {"type": "STRING", "enum": CATEGORIES},
                        "factuality": {
                            "type": "STRING",
                            "enum": [f.value for f in Factuality if f != Factuality.UNKNOWN],
                        },
                    },
                    "required": ["topics", "summary", "category"],
                },
            },
        }

    def analyze(self, text: str) -> RawProviderResponse:
        data = self._post_json(self.url, json=self.build_request(text))
        return self.parse_response(data)

    def parse_response(self, data: Any) -> StructuredPayload:
        try:
            raw_text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.kind.value, ProviderError.MALFORMED, "no valid Gemini candidate") from e

        try:
            result = json.loads(raw_text)
        except (TypeError, ValueError) as e:
            raise ProviderError(self.kind.value, ProviderError.MALFORMED, "Gemini text is not JSON") from e

        if not isinstance(result, dict):
            raise ProviderError(self.kind.value, ProviderError.MALFORMED, "Gemini JSON is not an object")

        topics = result.get("topics") or []
        if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
            raise ProviderError(self.kind.value, ProviderError.MALFORMED, "Gemini topics is not a list of strings")

        return StructuredPayload(
            topics=topics,
            summary=_optional_str(result.get("summary")),
            category=_optional_str(result.get("category")),
            factuality=_optional_str(result.get("factuality")),
        )


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def build_providers(settings: Settings) -> Dict[ProviderKind, BaseProvider]:
    """
    Build one provider per analysis dimension from settings.

    Raises:
        ConfigurationError: if Hugging Face or Gemini credentials are missing
    """
    if not settings.hf_api_token:
        logger.error("Hugging Face API token is not configured")
        raise ConfigurationError("Hugging Face API token missing.")
    if not settings.gemini_api_key:
        logger.error("Gemini API key is not configured")
        raise ConfigurationError("Gemini API key missing.")

    def hf(kind: ProviderKind, model_id: str) -> HuggingFaceProvider:
        return HuggingFaceProvider(
            kind,
            model_id,
            settings.hf_api_token,
            base_url=settings.hf_inference_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
        )

    if settings.sentiment_backend == "vader":
        sentiment: BaseProvider = VaderSentimentProvider()
    else:
        sentiment = hf(ProviderKind.SENTIMENT, settings.hf_sentiment_model)

    return {
        ProviderKind.SENTIMENT: sentiment,
        ProviderKind.EMOTION: hf(ProviderKind.EMOTION, settings.hf_emotion_model),
        ProviderKind.TOXICITY: hf(ProviderKind.TOXICITY, settings.hf_toxicity_model),
        ProviderKind.STRUCTURED: GeminiProvider(
            settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_api_base_url,
            timeout_seconds=settings.provider_timeout_seconds,
        ),
    }
