"""
Error taxonomy shared by the analysis, preference and feed services.
"""
from typing import Optional


class RelevanceEngineError(Exception):
    """Base class for every error raised by the engine."""


class ProviderError(RelevanceEngineError):
    """
    A single analysis provider call failed.

    Always absorbed by the aggregator into sentinel values; never reaches
    the caller of an analysis.
    """

    UNREACHABLE = "unreachable"
    NON_2XX = "non2xx"
    MALFORMED = "malformed"

    def __init__(self, provider: str, reason: str, message: str = "",
                 status_code: Optional[int] = None):
        self.provider = provider
        self.reason = reason
        self.status_code = status_code
        super().__init__(message or f"{provider} provider failed: {reason}")


class ConfigurationError(RelevanceEngineError):
    """Required provider credentials are absent."""


class NotFoundError(RelevanceEngineError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")


class StateError(RelevanceEngineError):
    """A like/unlike transition that has already happened was requested again."""
