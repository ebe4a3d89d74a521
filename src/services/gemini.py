"""Cloud-native multimodal provider backed by the Google Gen AI SDK."""

import asyncio
import logging
from typing import Optional, Sequence

import httpx
from google import genai
from google.genai import errors, types

from models.domain import (
    ASPECT_RATIOS,
    ChatMessage,
    GenerationSettings,
    LLMProvider,
    ProviderEndpointConfig,
)
from services.base_llm import CONNECTION_TEST_TIMEOUT, BaseLLMService
from services.cancellation import CancellationToken
from services.llm_errors import (
    AuthenticationError,
    BadRequestError,
    ContentSafetyError,
    LLMError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from services.prompts import chat_system_instruction
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)

CHAT_FALLBACK = "I didn't get that."


def _is_invalid_key(error: errors.APIError) -> bool:
    # Gemini reports a bad key as 400 INVALID_ARGUMENT with reason API_KEY_INVALID.
    return "API_KEY_INVALID" in str(error.details) or "API key not valid" in (error.message or "")


class GeminiService(BaseLLMService):
    provider = LLMProvider.GEMINI
    default_model = "gemini-2.5-flash"
    thinking_model = "gemini-3-pro-preview"
    thinking_budget = 32768
    chat_model = "gemini-3-pro-preview"
    image_model = "imagen-4.0-generate-001"
    supports_image_generation = True
    supports_chat = True

    def __init__(self, endpoint: ProviderEndpointConfig, retry_policy: Optional[RetryPolicy] = None):
        super().__init__(endpoint, retry_policy)
        self.client = genai.Client(api_key=self._get_api_key())

    async def aclose(self) -> None:
        await self.client.aio.aclose()

    def _image_part(self, image: bytes, mime_type: str) -> types.Part:
        return types.Part.from_bytes(data=image, mime_type=mime_type)

    def _map_error(self, error: errors.APIError) -> LLMError:
        code = error.code or 0
        message = error.message or str(error)
        if code in (401, 403) or (code == 400 and _is_invalid_key(error)):
            return AuthenticationError(
                "Authentication failed: the Gemini API key is invalid or missing.", provider=self.provider
            )
        if code == 429:
            return RateLimitError(f"Rate limit exceeded (429): {message}", provider=self.provider)
        if code >= 500:
            return ServerError(f"Server error ({code}): {message}", provider=self.provider)
        return BadRequestError(f"API request failed ({code}): {message}", provider=self.provider)

    async def _generate_content(self, model: str, contents, config=None) -> types.GenerateContentResponse:
        try:
            response = await self.client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
        except errors.APIError as e:
            logger.error(f"Gemini API error: {e}")
            raise self._map_error(e) from e
        except httpx.TransportError as e:
            logger.error(f"Gemini transport error: {e}")
            raise NetworkError(
                "Cannot reach the Gemini API. Check your network connection.", provider=self.provider
            ) from e

        self._raise_if_blocked(response)
        return response

    def _raise_if_blocked(self, response: types.GenerateContentResponse) -> None:
        feedback = response.prompt_feedback
        if feedback is not None and feedback.block_reason:
            raise ContentSafetyError(
                f"The request was blocked by the AI safety filter ({feedback.block_reason}).",
                provider=self.provider,
            )
        for candidate in response.candidates or []:
            if candidate.finish_reason == types.FinishReason.SAFETY:
                raise ContentSafetyError(
                    "The response was blocked by the AI safety filter.", provider=self.provider
                )

    def _generation_target(self, settings: GenerationSettings) -> tuple[str, types.GenerateContentConfig]:
        if settings.use_thinking:
            return self.thinking_model, types.GenerateContentConfig(
                response_mime_type="application/json",
                thinking_config=types.ThinkingConfig(thinking_budget=self.thinking_budget),
            )
        return self.model_name, types.GenerateContentConfig(response_mime_type="application/json")

    async def _complete_tags(
        self, image: bytes, mime_type: str, prompt: str, settings: GenerationSettings
    ) -> Optional[str]:
        model, config = self._generation_target(settings)
        response = await self._generate_content(
            model,
            [self._image_part(image, mime_type), types.Part.from_text(text=prompt)],
            config,
        )
        return response.text

    async def _complete_explanation(self, image: bytes, mime_type: str, prompt: str) -> Optional[str]:
        response = await self._generate_content(
            self.model_name,
            [self._image_part(image, mime_type), types.Part.from_text(text=prompt)],
        )
        return response.text

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        token: Optional[CancellationToken] = None,
    ) -> bytes:
        if aspect_ratio not in ASPECT_RATIOS:
            raise BadRequestError(f"Unsupported aspect ratio: {aspect_ratio}", provider=self.provider)
        if token is not None:
            token.raise_if_cancelled()

        try:
            response = await self.client.aio.models.generate_images(
                model=self.image_model,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=aspect_ratio,
                    output_mime_type="image/jpeg",
                ),
            )
        except errors.APIError as e:
            logger.error(f"Gemini image generation error: {e}")
            raise self._map_error(e) from e

        generated = response.generated_images or []
        if not generated or generated[0].image is None or not generated[0].image.image_bytes:
            raise ValidationError("No image generated.", provider=self.provider)
        return generated[0].image.image_bytes

    async def chat(
        self,
        history: Sequence[ChatMessage],
        message: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        if token is not None:
            token.raise_if_cancelled()

        contents = [
            types.Content(role=entry.role.value, parts=[types.Part.from_text(text=entry.text)])
            for entry in history
        ]
        parts = [types.Part.from_text(text=message)]
        if image and mime_type:
            parts.append(self._image_part(image, mime_type))
        contents.append(types.Content(role="user", parts=parts))

        response = await self._generate_content(
            self.chat_model,
            contents,
            types.GenerateContentConfig(system_instruction=chat_system_instruction()),
        )
        return response.text or CHAT_FALLBACK

    async def test_connection(self, timeout: float = CONNECTION_TEST_TIMEOUT) -> None:
        try:
            response = await asyncio.wait_for(
                self._generate_content(self.default_model, 'In one word, respond with "OK".'), timeout
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                "Connection timed out. The Gemini API is unresponsive.", provider=self.provider
            ) from e
        except AuthenticationError as e:
            raise AuthenticationError("The provided Gemini API key is invalid.", provider=self.provider) from e
        except LLMError as e:
            raise NetworkError(
                "Connection failed. Please check your network status and API key.", provider=self.provider
            ) from e

        if "OK" not in (response.text or ""):
            raise ValidationError("Received an unexpected response from the model.", provider=self.provider)
