import logging
from typing import Optional

import httpx
import openai
from openai import AsyncOpenAI

from models.domain import GenerationSettings, ProviderEndpointConfig
from services.base_llm import CONNECTION_TEST_TIMEOUT, BaseLLMService, to_data_url
from services.llm_errors import (
    AuthenticationError,
    BadRequestError,
    ContentSafetyError,
    LLMError,
    NetworkError,
    ProviderConfigurationError,
    RateLimitError,
    ServerError,
)
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)

CONTENT_FILTER_CODES = {"content_filter", "content_policy_violation"}
PLACEHOLDER_API_KEY = "not-needed"


def chat_completions_url(api_base: str) -> str:
    return f"{api_base.rstrip('/')}/chat/completions"


class OpenAIClientService(BaseLLMService):
    """Provider speaking the OpenAI chat-completions contract via the official client."""

    default_api_base: Optional[str] = None
    requires_api_key: bool = False
    generation_max_tokens: int = 2048
    generation_temperature: float = 0.5
    explanation_max_tokens: int = 300
    explanation_temperature: float = 0.6

    def __init__(self, endpoint: ProviderEndpointConfig, retry_policy: Optional[RetryPolicy] = None):
        super().__init__(endpoint, retry_policy)
        api_base = endpoint.base_url or self.default_api_base
        if not api_base:
            raise ProviderConfigurationError(
                f"{self.provider.value} provider requires a base URL.", provider=self.provider
            )
        self.api_base = api_base.rstrip("/")
        if self.requires_api_key:
            self._get_api_key()

    def _build_messages(self, prompt: str, image: bytes, mime_type: str) -> list[dict]:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": to_data_url(image, mime_type)}},
                ],
            }
        ]

    def _client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self._get_api_key() or PLACEHOLDER_API_KEY,
            base_url=self.api_base,
            max_retries=0,
        )

    async def _create_completion(self, **request_kwargs) -> str:
        try:
            async with self._client() as client:
                response = await client.chat.completions.create(model=self.model_name, **request_kwargs)
        except openai.APIError as e:
            logger.error(f"{self.provider.value} API error: {e}")
            raise self._map_error(e) from e

        if not response.choices:
            return ""
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentSafetyError(
                "The request was blocked by the provider's safety filter.", provider=self.provider
            )
        return (choice.message.content or "").strip()

    def _map_error(self, error: openai.APIError) -> LLMError:
        if isinstance(error, openai.APIConnectionError):
            return NetworkError(
                f"Cannot reach the AI service at {self.api_base}. Check that the server is running, "
                "the URL is correct, and cross-origin access is allowed.",
                provider=self.provider,
            )
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AuthenticationError(f"Authentication failed: {error.message}", provider=self.provider)
        if isinstance(error, openai.RateLimitError):
            return RateLimitError(f"Rate limit exceeded (429): {error.message}", provider=self.provider)
        if getattr(error, "code", None) in CONTENT_FILTER_CODES:
            return ContentSafetyError(
                f"Blocked by the provider's safety filter: {error.message}", provider=self.provider
            )
        if isinstance(error, openai.InternalServerError):
            return ServerError(
                f"Server error ({error.status_code}): {error.message}", provider=self.provider
            )
        if isinstance(error, openai.APIStatusError):
            if error.status_code >= 500:
                return ServerError(
                    f"Server error ({error.status_code}): {error.message}", provider=self.provider
                )
            return BadRequestError(
                f"API request failed ({error.status_code}): {error.message}", provider=self.provider
            )
        return ServerError(str(error), provider=self.provider)

    async def _complete_tags(
        self, image: bytes, mime_type: str, prompt: str, settings: GenerationSettings
    ) -> Optional[str]:
        return await self._create_completion(
            messages=self._build_messages(prompt, image, mime_type),
            max_tokens=self.generation_max_tokens,
            temperature=self.generation_temperature,
            response_format={"type": "json_object"},
        )

    async def _complete_explanation(self, image: bytes, mime_type: str, prompt: str) -> Optional[str]:
        return await self._create_completion(
            messages=self._build_messages(prompt, image, mime_type),
            max_tokens=self.explanation_max_tokens,
            temperature=self.explanation_temperature,
        )

    def _build_headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        api_key = self.endpoint.api_key
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def test_connection(self, timeout: float = CONNECTION_TEST_TIMEOUT) -> None:
        """Send a tiny completion with a short timeout.

        A 404 or a complaint about the model still proves the server is
        reachable, so both count as success.
        """
        url = chat_completions_url(self.api_base)
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": 'Respond with only the word "OK".'}],
            "max_tokens": 5,
        }
        async with httpx.AsyncClient(timeout=timeout) as client:
            try:
                response = await client.post(url, json=payload, headers=self._build_headers())
            except httpx.TimeoutException as e:
                raise NetworkError(
                    "Connection timed out. The server is unresponsive.", provider=self.provider
                ) from e
            except httpx.HTTPError as e:
                raise NetworkError(
                    f"Connection failed. Check if the server is running at {self.api_base} "
                    "and CORS is configured.",
                    provider=self.provider,
                ) from e

        if response.is_success:
            return
        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. The API key is invalid or missing.", provider=self.provider
            )
        if response.status_code == 404 or "model" in _error_message(response).lower():
            return
        if response.status_code >= 500:
            raise ServerError(
                f"Server responded with status {response.status_code}.", provider=self.provider
            )
        raise BadRequestError(
            f"Server responded with status {response.status_code}.", provider=self.provider
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "")
        return str(body.get("message") or "")
    return ""
