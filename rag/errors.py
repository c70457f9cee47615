"""
Retrieval error taxonomy plus classification used for diagnostics logging
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RetrievalServiceError(Exception):
    """Base error for the retrieval engine"""

    def __init__(self, message: str, code: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}


class EmbeddingError(RetrievalServiceError):
    """Raised when the embedding provider fails or returns no values"""

    def __init__(self, text: str, error_message: str):
        text = text or ""
        self.text = text[:100]
        self.text_length = len(text)
        self.error_message = error_message
        super().__init__(
            f"Embedding generation failed for text ({self.text_length} chars): {error_message}",
            "EMBEDDING_ERROR",
            {"text": self.text, "text_length": self.text_length},
        )


class StoreError(RetrievalServiceError):
    """Raised when a store query or connection fails"""

    def __init__(self, message: str, strategy: Optional[str] = None):
        self.strategy = strategy
        super().__init__(message, "DATABASE_ERROR", {"strategy": strategy})


class TranslationError(RetrievalServiceError):
    """Raised by translation providers; absorbed by the cross-language step"""

    def __init__(self, message: str, target_language: Optional[str] = None):
        self.target_language = target_language
        super().__init__(message, "TRANSLATION_ERROR", {"target_language": target_language})


class SearchError(RetrievalServiceError):
    """Raised by RetrievalEngine.search when a cascade step fails"""

    def __init__(
        self,
        query: str,
        limit: int,
        threshold: float,
        strategy: Optional[str],
        reason: str,
    ):
        self.query = query
        self.limit = limit
        self.threshold = threshold
        self.strategy = strategy
        super().__init__(
            f'Search failed for query "{query}" during {strategy or "setup"}: {reason}',
            "VECTOR_SEARCH_ERROR",
            {"query": query, "limit": limit, "threshold": threshold, "strategy": strategy},
        )


class ToolContextError(RetrievalServiceError):
    """Raised when a tool invocation context has no recognised shape"""

    def __init__(self, message: str, keys: Optional[list] = None):
        super().__init__(message, "TOOL_CONTEXT_ERROR", {"keys": keys or []})


class ErrorType(str, Enum):
    VALIDATION = "validation_error"
    NETWORK = "network_error"
    DATABASE = "database_error"
    EXTERNAL_API = "external_api_error"
    TIMEOUT = "timeout_error"
    UNKNOWN = "unknown_error"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


def classify_error(error: Exception) -> Tuple[ErrorType, Severity, bool]:
    """Classify error and report whether a caller-side retry makes sense.

    Returns: (error_type, severity, is_retryable)
    """
    if isinstance(error, StoreError):
        return (ErrorType.DATABASE, Severity.CRITICAL, True)
    if isinstance(error, EmbeddingError):
        return (ErrorType.EXTERNAL_API, Severity.WARNING, True)

    message = str(error).lower()

    if any(k in message for k in ["timeout", "timed out", "deadline"]):
        return (ErrorType.TIMEOUT, Severity.WARNING, True)

    if any(k in message for k in ["connection", "network", "dns", "socket"]):
        return (ErrorType.NETWORK, Severity.WARNING, True)

    if any(k in message for k in ["database", "sqlalchemy", "deadlock", "connection pool"]):
        return (ErrorType.DATABASE, Severity.CRITICAL, True)

    if any(k in message for k in ["api", "rate limit", "quota", "service unavailable", "429", "503"]):
        return (ErrorType.EXTERNAL_API, Severity.WARNING, True)

    if any(k in message for k in ["validation", "invalid", "missing required", "schema"]):
        return (ErrorType.VALIDATION, Severity.INFO, False)

    return (ErrorType.UNKNOWN, Severity.WARNING, False)
