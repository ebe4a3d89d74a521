"""Translate provider errors into HTTP responses."""

from fastapi import HTTPException

from services.llm_errors import (
    AuthenticationError,
    ContentSafetyError,
    LLMError,
    ProviderConfigurationError,
    RateLimitError,
    UnsupportedCapabilityError,
    ValidationError,
    error_message,
)

STATUS_BY_ERROR: list[tuple[type[LLMError], int]] = [
    (AuthenticationError, 401),
    (RateLimitError, 429),
    (ValidationError, 422),
    (ContentSafetyError, 422),
    (ProviderConfigurationError, 400),
    (UnsupportedCapabilityError, 400),
]
DEFAULT_ERROR_STATUS = 502


def status_for(error: LLMError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return DEFAULT_ERROR_STATUS


def to_http_exception(error: LLMError) -> HTTPException:
    return HTTPException(status_code=status_for(error), detail=error_message(error))
