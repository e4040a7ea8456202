from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    app_name: str = "Content Relevance Engine"
    # If ALLOWED_ORIGINS env is provided, it should be a JSON array.
    # Example: ["http://localhost:8501", "http://127.0.0.1:8501"]
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Hugging Face inference (sentiment, emotion, toxicity)
    hf_api_token: Optional[str] = None
    hf_inference_base_url: str = "https://api-inference.huggingface.co/models/"
    hf_sentiment_model: str = "cardiffnlp/twitter-roberta-base-sentiment"
    hf_emotion_model: str = "j-hartmann/emotion-english-distilroberta-base"
    hf_toxicity_model: str = "cardiffnlp/twitter-roberta-base-offensive"

    # Gemini (topics, summary, category)
    gemini_api_key: Optional[str] = None
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models/"
    gemini_model: str = "gemini-2.0-flash"

    # "vader" runs sentiment locally and needs no credentials
    sentiment_backend: Literal["huggingface", "vader"] = "huggingface"

    provider_timeout_seconds: float = 30.0

    # Normalizer thresholds
    emotion_threshold: float = 0.4
    toxicity_threshold: float = 0.5

    # Feed scoring weights
    score_follow_bonus: float = 100.0
    score_category_weight: float = 10.0
    score_topic_weight: float = 5.0
    score_recency_max: float = 5.0
    score_recency_decay_days: float = 5.0
    score_toxicity_penalty: float = 50.0

    # Whether "Uncategorized"/"Error"/"AI Error" count towards liked preferences
    count_sentinel_preferences: bool = False

    # Storage backend
    storage_backend: Literal["memory", "neo4j"] = "memory"

    # Neo4j configuration
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "password"
    neo4j_database: str = "neo4j"


settings = Settings()
