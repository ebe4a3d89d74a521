import pytest

from models.domain import LLMProvider, ProviderEndpointConfig
from services.base_llm import BaseLLMService
from services.gemini import GeminiService
from services.llm_errors import AuthenticationError, ProviderConfigurationError
from services.openai_client import OpenAIClientService
from services.remote_llms import (
    SERVICES,
    CustomEndpointService,
    GrokService,
    LMStudioService,
    OllamaService,
    OpenAIService,
    create_provider,
)


class TestOpenAIService:
    def test_defaults(self):
        service = OpenAIService(ProviderEndpointConfig(LLMProvider.OPENAI, api_key="sk-test"))

        assert service.provider == LLMProvider.OPENAI
        assert service.model_name == "gpt-4o"
        assert service.api_base == "https://api.openai.com/v1"

    def test_requires_key(self):
        with pytest.raises(AuthenticationError):
            OpenAIService(ProviderEndpointConfig(LLMProvider.OPENAI))

    def test_inherits_openai_client_service(self):
        assert issubclass(OpenAIService, OpenAIClientService)
        assert issubclass(OpenAIService, BaseLLMService)


class TestGrokService:
    def test_defaults(self):
        service = GrokService(ProviderEndpointConfig(LLMProvider.GROK, api_key="xai-test"))

        assert service.model_name == "grok-beta"
        assert service.api_base == "https://api.x.ai/v1"


class TestLocalServices:
    @pytest.mark.parametrize(
        "cls,provider,base",
        [
            (OllamaService, LLMProvider.OLLAMA, "http://localhost:11434/v1"),
            (LMStudioService, LLMProvider.LMSTUDIO, "http://localhost:1234/v1"),
        ],
    )
    def test_work_without_key(self, cls, provider, base):
        service = cls(ProviderEndpointConfig(provider))

        assert service.api_base == base
        assert service.model_name == "llava"

    def test_base_url_override_drops_trailing_slash(self):
        service = OllamaService(ProviderEndpointConfig(LLMProvider.OLLAMA, base_url="http://gpu-box:11434/v1/"))

        assert service.api_base == "http://gpu-box:11434/v1"

    def test_local_services_do_not_chat_or_draw(self):
        service = LMStudioService(ProviderEndpointConfig(LLMProvider.LMSTUDIO))

        assert not service.supports_chat
        assert not service.supports_image_generation


class TestCustomEndpointService:
    def test_requires_base_url(self):
        with pytest.raises(ProviderConfigurationError):
            CustomEndpointService(ProviderEndpointConfig(LLMProvider.CUSTOM))

    def test_uses_configured_endpoint(self):
        service = CustomEndpointService(
            ProviderEndpointConfig(LLMProvider.CUSTOM, base_url="https://llm.internal/v1", model_name="qwen-vl")
        )

        assert service.api_base == "https://llm.internal/v1"
        assert service.model_name == "qwen-vl"


class TestCreateProvider:
    def test_every_provider_has_a_service(self):
        assert set(SERVICES) == set(LLMProvider)

    def test_builds_matching_service(self):
        service = create_provider(ProviderEndpointConfig(LLMProvider.OLLAMA))

        assert isinstance(service, OllamaService)

    def test_builds_gemini(self):
        service = create_provider(ProviderEndpointConfig(LLMProvider.GEMINI, api_key="gemini-key"))

        assert isinstance(service, GeminiService)
        assert service.supports_chat
        assert service.supports_image_generation

    def test_gemini_without_key_fails(self):
        with pytest.raises(AuthenticationError):
            create_provider(ProviderEndpointConfig(LLMProvider.GEMINI))
