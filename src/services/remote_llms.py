import logging
from typing import Optional

from models.domain import LLMProvider, ProviderEndpointConfig
from services.base_llm import BaseLLMService
from services.gemini import GeminiService
from services.openai_client import OpenAIClientService
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)

LOCAL_DEFAULT_MODEL = "llava"


class OpenAIService(OpenAIClientService):
    provider = LLMProvider.OPENAI
    default_model = "gpt-4o"
    default_api_base = "https://api.openai.com/v1"
    requires_api_key = True


class GrokService(OpenAIClientService):
    provider = LLMProvider.GROK
    default_model = "grok-beta"
    default_api_base = "https://api.x.ai/v1"
    requires_api_key = True


class OllamaService(OpenAIClientService):
    provider = LLMProvider.OLLAMA
    default_model = LOCAL_DEFAULT_MODEL
    default_api_base = "http://localhost:11434/v1"


class LMStudioService(OpenAIClientService):
    provider = LLMProvider.LMSTUDIO
    default_model = LOCAL_DEFAULT_MODEL
    default_api_base = "http://localhost:1234/v1"


class CustomEndpointService(OpenAIClientService):
    provider = LLMProvider.CUSTOM
    default_model = LOCAL_DEFAULT_MODEL


SERVICES: dict[LLMProvider, type[BaseLLMService]] = {
    LLMProvider.GEMINI: GeminiService,
    LLMProvider.OPENAI: OpenAIService,
    LLMProvider.GROK: GrokService,
    LLMProvider.OLLAMA: OllamaService,
    LLMProvider.LMSTUDIO: LMStudioService,
    LLMProvider.CUSTOM: CustomEndpointService,
}


def create_provider(
    endpoint: ProviderEndpointConfig,
    retry_policy: Optional[RetryPolicy] = None,
) -> BaseLLMService:
    service_cls = SERVICES.get(LLMProvider(endpoint.provider))
    if service_cls is None:
        raise ValueError(f"No service for provider: {endpoint.provider}")
    logger.debug(f"Creating {endpoint.provider.value} provider (model={endpoint.model_name or service_cls.default_model})")
    return service_cls(endpoint, retry_policy)
