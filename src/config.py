import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from models.domain import LLMConfig, LLMProvider, ProviderEndpointConfig
from services.retry import RetryPolicy

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "CoverTagger"
    debug: bool = False
    log_level: str = "INFO"

    llm_provider: LLMProvider = LLMProvider.GEMINI

    gemini_api_key: Optional[str] = None
    gemini_backup_api_key: Optional[str] = None
    gemini_model: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: Optional[str] = None

    grok_api_key: Optional[str] = None
    grok_api_base: str = "https://api.x.ai/v1"
    grok_model: Optional[str] = None

    ollama_api_base: str = "http://localhost:11434/v1"
    ollama_model: Optional[str] = None

    lmstudio_api_base: str = "http://localhost:1234/v1"
    lmstudio_model: Optional[str] = None

    custom_api_key: Optional[str] = None
    custom_api_base: Optional[str] = None
    custom_model: Optional[str] = None

    enable_failover: bool = False
    failover_provider: Optional[LLMProvider] = None

    retry_max_attempts: int = 4
    retry_base_delay: float = 1.0
    retry_backoff_factor: float = 2.0

    connection_test_timeout: float = 5.0

    tag_library_path: Optional[str] = None

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False

    def endpoints(self) -> dict[LLMProvider, ProviderEndpointConfig]:
        return {
            LLMProvider.GEMINI: ProviderEndpointConfig(
                LLMProvider.GEMINI, api_key=self.gemini_api_key, model_name=self.gemini_model
            ),
            LLMProvider.OPENAI: ProviderEndpointConfig(
                LLMProvider.OPENAI, self.openai_api_key, self.openai_api_base, self.openai_model
            ),
            LLMProvider.GROK: ProviderEndpointConfig(
                LLMProvider.GROK, self.grok_api_key, self.grok_api_base, self.grok_model
            ),
            LLMProvider.OLLAMA: ProviderEndpointConfig(
                LLMProvider.OLLAMA, base_url=self.ollama_api_base, model_name=self.ollama_model
            ),
            LLMProvider.LMSTUDIO: ProviderEndpointConfig(
                LLMProvider.LMSTUDIO, base_url=self.lmstudio_api_base, model_name=self.lmstudio_model
            ),
            LLMProvider.CUSTOM: ProviderEndpointConfig(
                LLMProvider.CUSTOM, self.custom_api_key, self.custom_api_base, self.custom_model
            ),
        }

    def to_llm_config(self) -> LLMConfig:
        return LLMConfig(
            provider=self.llm_provider,
            endpoints=self.endpoints(),
            enable_failover=self.enable_failover,
            failover_provider=self.failover_provider,
            gemini_backup_api_key=self.gemini_backup_api_key,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            backoff_factor=self.retry_backoff_factor,
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


settings = Settings()
