"""Typed errors raised across the recipe pipeline.

Provider and classification errors are caught by the component that issued the
call. Only RequestValidationError and NotFoundOrForbidden cross the service
boundary, where the HTTP layer maps them to 422 and 404/403 respectively.
"""

from typing import Any, Optional


class RecipeServiceError(Exception):
    """Base exception for the recipe service"""
    pass


class ClassificationError(RecipeServiceError):
    """Raised when the classifier fallback model call fails or returns garbage"""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(f"Classification failed: {message}")


class GenerationError(RecipeServiceError):
    """Raised when a provider call fails after retries or its output cannot be repaired"""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)

    @property
    def is_quota(self) -> bool:
        return isinstance(self.cause, ProviderError) and self.cause.is_quota


class NotFoundOrForbidden(RecipeServiceError):
    """Raised when a row does not exist or belongs to another owner"""
    def __init__(self, resource: str, resource_id: Any, owner_id: str, reason: str = "not_found"):
        self.resource = resource
        self.resource_id = resource_id
        self.owner_id = owner_id
        self.reason = reason
        if reason == "forbidden":
            message = f"{resource} {resource_id} is not owned by {owner_id}"
        else:
            message = f"{resource} {resource_id} not found"
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return 403 if self.reason == "forbidden" else 404


class RequestValidationError(RecipeServiceError):
    """Raised when an incoming request has a malformed shape"""
    def __init__(self, errors: list):
        self.errors = errors
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) or "request" for err in errors)
        super().__init__(f"Invalid request: {fields}")


class ProviderError(RecipeServiceError):
    """Raised by provider adapters, normalising SDK-specific exceptions.

    Attributes:
        status: HTTP status returned by the provider, if any.
        code: provider error code (e.g. "insufficient_quota", "RESOURCE_EXHAUSTED").
        is_timeout: True when the call never got a response in time.
        is_connection: True for network-level failures.
    """

    QUOTA_MARKERS = ("insufficient_quota", "quota", "billing")
    # Gemini reports both per-minute rate limits and spent daily quota as RESOURCE_EXHAUSTED
    RATE_LIMIT_CODES = ("RESOURCE_EXHAUSTED",)
    DAILY_QUOTA_MARKERS = ("perday", "per day", "billing")

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        is_timeout: bool = False,
        is_connection: bool = False,
    ):
        self.status = status
        self.code = code
        self.is_timeout = is_timeout
        self.is_connection = is_connection
        super().__init__(message)

    @property
    def is_quota(self) -> bool:
        message = str(self).lower()
        if self.code in self.RATE_LIMIT_CODES:
            return any(marker in message for marker in self.DAILY_QUOTA_MARKERS)
        haystack = f"{self.code or ''} {message}".lower()
        return any(marker in haystack for marker in self.QUOTA_MARKERS)

    @property
    def is_rate_limit(self) -> bool:
        return self.status == 429 and not self.is_quota

    @property
    def transient(self) -> bool:
        """Transport-level failures worth retrying: timeout, connection, 408, 429 (not quota), 5xx."""
        if self.is_timeout or self.is_connection:
            return True
        if self.status is None:
            return False
        return self.status == 408 or self.is_rate_limit or self.status >= 500
