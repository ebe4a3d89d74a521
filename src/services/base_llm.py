import base64
import json
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from models.domain import (
    ChatMessage,
    GeneratedTag,
    GenerationResult,
    GenerationSettings,
    LLMProvider,
    MarketingCopy,
    ProviderEndpointConfig,
)
from services.cancellation import CancellationToken
from services.llm_errors import AuthenticationError, UnsupportedCapabilityError, ValidationError
from services.prompts import build_explanation_prompt, build_generation_prompt
from services.retry import RetryPolicy
from services.tag_library import normalize_tags
from services.text_utils import extract_json_object, truncate

logger = logging.getLogger(__name__)

EXPLANATION_FALLBACK = "無法生成解釋。"
CONNECTION_TEST_TIMEOUT = 5.0


def to_data_url(image: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def _coerce_score(value: Any) -> int:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(score):
        return 0
    return max(0, min(100, int(round(score))))


def _coerce_tags(raw_tags: list) -> list[GeneratedTag]:
    tags = []
    for raw in raw_tags:
        if isinstance(raw, str):
            tags.append(GeneratedTag(name=raw, score=0))
        elif isinstance(raw, dict) and isinstance(raw.get("name"), str):
            tags.append(GeneratedTag(name=raw["name"], score=_coerce_score(raw.get("score"))))
    return tags


def _parse_marketing_copy(raw: Any) -> Optional[MarketingCopy]:
    if not isinstance(raw, dict) or not isinstance(raw.get("logline"), str):
        return None
    catchphrases = raw.get("catchphrases") or []
    return MarketingCopy(
        logline=raw["logline"],
        catchphrases=[str(c) for c in catchphrases] if isinstance(catchphrases, list) else [],
        dialogue_snippet=str(raw.get("dialogueSnippet") or raw.get("dialogue_snippet") or ""),
    )


class BaseLLMService(ABC):
    provider: LLMProvider
    default_model: str
    requires_api_key: bool = True
    supports_image_generation: bool = False
    supports_chat: bool = False

    def __init__(self, endpoint: ProviderEndpointConfig, retry_policy: Optional[RetryPolicy] = None):
        self.endpoint = endpoint
        self.model_name = endpoint.model_name or self.default_model
        self.retry_policy = retry_policy or RetryPolicy()

    def _get_api_key(self) -> Optional[str]:
        if self.endpoint.api_key:
            return self.endpoint.api_key
        if self.requires_api_key:
            raise AuthenticationError(
                f"{self.provider.value} provider requires an API key.", provider=self.provider
            )
        return None

    @abstractmethod
    async def _complete_tags(
        self, image: bytes, mime_type: str, prompt: str, settings: GenerationSettings
    ) -> Optional[str]:
        pass

    @abstractmethod
    async def _complete_explanation(self, image: bytes, mime_type: str, prompt: str) -> Optional[str]:
        pass

    @abstractmethod
    async def test_connection(self, timeout: float = CONNECTION_TEST_TIMEOUT) -> None:
        pass

    async def aclose(self) -> None:
        """Release long-lived SDK clients. Providers that open a client per call keep nothing."""
        pass

    async def generate_tags(
        self,
        image: bytes,
        mime_type: str,
        tag_library_csv: str,
        settings: GenerationSettings,
        pinned_tags: Optional[Sequence[str]] = None,
        excluded_tags: Optional[Sequence[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResult:
        prompt = build_generation_prompt(tag_library_csv, settings, pinned_tags, excluded_tags)
        raw_text = await self.retry_policy.run(
            lambda: self._complete_tags(image, mime_type, prompt, settings), token=token
        )
        return self._parse_generation(raw_text, tag_library_csv, settings)

    def _parse_generation(
        self, raw_text: Optional[str], tag_library_csv: str, settings: GenerationSettings
    ) -> GenerationResult:
        if not raw_text or not raw_text.strip():
            raise ValidationError("Model returned an empty response.", provider=self.provider)

        try:
            parsed = json.loads(extract_json_object(raw_text))
        except json.JSONDecodeError as e:
            logger.error(f"{self.provider.value} JSON parse error: {e}. Raw: {truncate(raw_text)}")
            raise ValidationError(
                "Failed to parse valid JSON from model response.", provider=self.provider
            ) from e

        if not isinstance(parsed, dict):
            raise ValidationError("Invalid JSON structure: expected an object.", provider=self.provider)
        description = parsed.get("description")
        raw_tags = parsed.get("tags")
        if not isinstance(description, str) or not description.strip() or not isinstance(raw_tags, list):
            raise ValidationError("Invalid JSON structure: missing core fields.", provider=self.provider)

        raw = _coerce_tags(raw_tags)
        tags = normalize_tags(raw, tag_library_csv, settings.tag_language)
        if len(tags) < len(raw):
            logger.info(
                f"{self.provider.value}: kept {len(tags)} of {len(raw)} tags after library validation"
            )
        return GenerationResult(
            description=description,
            tags=tags,
            marketing_copy=_parse_marketing_copy(parsed.get("marketingCopy")),
        )

    async def explain_tag(
        self,
        image: bytes,
        mime_type: str,
        tag_name: str,
        tag_description: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        prompt = build_explanation_prompt(tag_name, tag_description)
        text = await self.retry_policy.run(
            lambda: self._complete_explanation(image, mime_type, prompt), token=token
        )
        return (text or "").strip() or EXPLANATION_FALLBACK

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        token: Optional[CancellationToken] = None,
    ) -> bytes:
        raise UnsupportedCapabilityError(
            f"{self.provider.value} provider does not support image generation.", provider=self.provider
        )

    async def chat(
        self,
        history: Sequence[ChatMessage],
        message: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        raise UnsupportedCapabilityError(
            f"{self.provider.value} provider does not support chat.", provider=self.provider
        )
