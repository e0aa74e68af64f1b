"""Exception hierarchy for the knowledge and memory services.

Every error carries a human-readable ``message`` and an optional
``provider_name`` naming the external service that caused it:

    KnowledgeBaseError
    +-- UnsupportedFormat        (text extraction)
    +-- ProviderError            (embedding / LLM provider unavailable, rate-limited, malformed)
    +-- NotFoundOrForbidden      (entity missing or owned by another user)
    +-- PersistenceError         (store unavailable)
    +-- ConfigurationError       (startup / settings)
        +-- EmbeddingDimensionError
"""

from typing import Optional


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge base errors."""

    def __init__(self, message: str = "An unexpected error occurred", provider_name: Optional[str] = None):
        self.message = message
        self.provider_name = provider_name
        super().__init__(message)

    def __str__(self) -> str:
        if self.provider_name:
            return f"[{self.provider_name}] {self.message}"
        return self.message


class UnsupportedFormat(KnowledgeBaseError):
    """Raised when no text extractor is registered for a file's type."""

    def __init__(self, content_type: Optional[str], filename: Optional[str] = None):
        self.content_type = content_type
        self.filename = filename
        super().__init__(
            f"Unsupported file type: {content_type or 'unknown'}"
            f"{f' ({filename})' if filename else ''}. Supported types: text/plain, application/pdf"
        )


class ProviderError(KnowledgeBaseError):
    """Raised when an embedding or LLM provider call fails."""

    def __init__(self, message: str = "Provider request failed", provider_name: Optional[str] = None,
                 retryable: bool = False):
        self.retryable = retryable
        super().__init__(message=message, provider_name=provider_name)


class NotFoundOrForbidden(KnowledgeBaseError):
    """Raised when an entity does not exist or belongs to another user.

    The two cases are deliberately indistinguishable to the caller.
    """

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found or you do not have permission to access it")


class PersistenceError(KnowledgeBaseError):
    """Raised when the database cannot be reached or a statement fails at the driver level."""


class ConfigurationError(KnowledgeBaseError):
    """Raised when settings are missing or inconsistent."""


class EmbeddingDimensionError(ConfigurationError):
    """Raised when a vector's length does not match the configured dimensionality."""

    def __init__(self, expected: int, actual: int, source: str = "embedding"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{source} has {actual} dimensions, expected {expected}")
