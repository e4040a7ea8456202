from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Union


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"
    MIXED = "Mixed"  # forced when toxicity is detected
    UNKNOWN = "Unknown"
    ERROR = "Error"


class Factuality(str, Enum):
    SUPPORT = "support"
    NEUTRAL = "neutral"
    OPPOSE = "oppose"
    UNKNOWN = "unknown"


CATEGORIES: List[str] = [
    "News", "Sports", "Technology", "Entertainment", "Politics", "Art",
    "Science", "Education", "Lifestyle", "Travel", "Food", "Health",
    "Personal Update", "Opinion", "Humor", "Other",
]

# Sentinel values
NOT_AVAILABLE = "N/A"
UNCATEGORIZED = "Uncategorized"
CATEGORY_OTHER = "Other"
CATEGORY_ERROR = "Error"
TOPIC_ERROR = "AI Error"
SUMMARY_UNAVAILABLE = "AI summary unavailable."

SENTINEL_CATEGORIES = frozenset({UNCATEGORIZED, CATEGORY_ERROR})
SENTINEL_TOPICS = frozenset({TOPIC_ERROR})


class EmotionScore(BaseModel):
    emotion: str
    score: Union[float, str]  # float in [0, 1], or "N/A" on the error sentinel


class ToxicityResult(BaseModel):
    detected: bool = False
    details: Dict[str, Union[float, str]] = Field(default_factory=dict)


class AnalysisRecord(BaseModel):
    sentiment: Sentiment = Sentiment.UNKNOWN
    emotions: List[EmotionScore] = Field(default_factory=list)
    toxicity: ToxicityResult = Field(default_factory=ToxicityResult)
    topics: List[str] = Field(default_factory=list)
    summary: str = ""
    category: str = UNCATEGORIZED
    factuality: Factuality = Factuality.UNKNOWN


class AnalysisResponse(BaseModel):
    post_id: str
    content: str
    analysis: AnalysisRecord
    message: str = "Post analyzed successfully."
