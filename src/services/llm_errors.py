"""Typed failures raised by LLM providers.

Each error is classified where it originates (HTTP status, SDK exception
type), so retry and failover never have to inspect message text.
Cancellation is not an error: it travels as ``asyncio.CancelledError``.
"""

from typing import Optional

from models.domain import LLMProvider


class LLMError(Exception):
    retryable = False

    def __init__(self, message: str, provider: Optional[LLMProvider] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class AuthenticationError(LLMError):
    """Credential missing or rejected."""


class BadRequestError(LLMError):
    """The backend rejected the request as malformed."""


class ContentSafetyError(LLMError):
    """The backend refused the request on policy grounds."""


class ValidationError(LLMError):
    """The backend answered with an unparsable or structurally invalid payload."""


class ProviderConfigurationError(LLMError):
    pass


class UnsupportedCapabilityError(LLMError):
    pass


class RateLimitError(LLMError):
    retryable = True


class ServerError(LLMError):
    retryable = True


class NetworkError(LLMError):
    retryable = True


class FailoverError(LLMError):
    def __init__(
        self,
        primary_provider: LLMProvider,
        primary_error: BaseException,
        backup_provider: LLMProvider,
        backup_error: BaseException,
    ):
        message = (
            f"Primary provider ({primary_provider.value}) failed: {error_message(primary_error)}\n"
            f"Backup provider ({backup_provider.value}) also failed: {error_message(backup_error)}"
        )
        super().__init__(message, provider=backup_provider)
        self.primary_provider = primary_provider
        self.primary_error = primary_error
        self.backup_provider = backup_provider
        self.backup_error = backup_error


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, LLMError):
        return error.retryable
    return True


def error_message(error: BaseException) -> str:
    if isinstance(error, LLMError):
        return error.message
    return str(error) or error.__class__.__name__
