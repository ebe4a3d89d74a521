"""
Provider orchestration with failover.

The orchestrator owns the active provider, built lazily from an immutable
configuration snapshot. A configuration change produces a new orchestrator
through ``reconfigure`` instead of mutating this one.

On a failed primary call (anything but cancellation) the request is replayed
once against the configured backup provider, which may be the same provider
identity with a dedicated backup key.
"""

import dataclasses
import logging
from typing import Callable, Optional, Sequence

from models.domain import (
    ChatMessage,
    GenerationRequest,
    GenerationResponse,
    GenerationResult,
    LLMConfig,
    LLMProvider,
    ProviderEndpointConfig,
)
from services.base_llm import CONNECTION_TEST_TIMEOUT, BaseLLMService
from services.cancellation import CancellationToken
from services.llm_errors import FailoverError, error_message
from services.remote_llms import create_provider
from services.retry import RetryPolicy

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderEndpointConfig, Optional[RetryPolicy]], BaseLLMService]


class GenerationOrchestrator:
    def __init__(
        self,
        config: LLMConfig,
        provider_factory: ProviderFactory = create_provider,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.config = config
        self._provider_factory = provider_factory
        self._retry_policy = retry_policy
        self._provider: Optional[BaseLLMService] = None
        self._backups: dict[ProviderEndpointConfig, BaseLLMService] = {}

    @property
    def provider(self) -> BaseLLMService:
        if self._provider is None:
            logger.info(f"Initializing active provider: {self.config.provider.value}")
            self._provider = self._provider_factory(
                self.config.endpoint(self.config.provider), self._retry_policy
            )
        return self._provider

    def reconfigure(self, config: LLMConfig) -> "GenerationOrchestrator":
        return GenerationOrchestrator(config, self._provider_factory, self._retry_policy)

    def _backup_endpoint(self) -> Optional[ProviderEndpointConfig]:
        backup = self.config.failover_provider
        if not self.config.enable_failover or backup is None:
            return None
        endpoint = self.config.endpoint(backup)
        if backup == LLMProvider.GEMINI and self.config.gemini_backup_api_key:
            logger.info("Using dedicated backup Gemini API key.")
            endpoint = dataclasses.replace(endpoint, api_key=self.config.gemini_backup_api_key)
        return endpoint

    def _get_backup(self, endpoint: ProviderEndpointConfig, token: Optional[CancellationToken]) -> BaseLLMService:
        if token is not None:
            token.raise_if_cancelled()
        logger.info(f"Attempting failover to {endpoint.provider.value}...")
        if endpoint not in self._backups:
            self._backups[endpoint] = self._provider_factory(endpoint, self._retry_policy)
        return self._backups[endpoint]

    async def generate_tags(
        self,
        request: GenerationRequest,
        token: Optional[CancellationToken] = None,
    ) -> GenerationResponse:
        primary = self.config.provider
        try:
            result = await self._generate_with(self.provider, request, token)
            return GenerationResponse(result=result, used_failover=False, provider=primary)
        except Exception as primary_error:
            logger.error(f"Primary provider ({primary.value}) failed: {error_message(primary_error)}")
            backup_endpoint = self._backup_endpoint()
            if backup_endpoint is None:
                raise
            return await self._failover_generate(request, primary_error, backup_endpoint, token)

    async def _failover_generate(
        self,
        request: GenerationRequest,
        primary_error: Exception,
        backup_endpoint: ProviderEndpointConfig,
        token: Optional[CancellationToken],
    ) -> GenerationResponse:
        try:
            backup = self._get_backup(backup_endpoint, token)
            result = await self._generate_with(backup, request, token)
        except Exception as backup_error:
            logger.error(
                f"Failover provider ({backup_endpoint.provider.value}) also failed: "
                f"{error_message(backup_error)}"
            )
            raise FailoverError(
                self.config.provider, primary_error, backup_endpoint.provider, backup_error
            ) from backup_error

        logger.info("Failover successful.")
        return GenerationResponse(result=result, used_failover=True, provider=backup_endpoint.provider)

    async def _generate_with(
        self,
        provider: BaseLLMService,
        request: GenerationRequest,
        token: Optional[CancellationToken],
    ) -> GenerationResult:
        return await provider.generate_tags(
            request.image,
            request.mime_type,
            request.tag_library_csv,
            request.settings,
            request.pinned_tags,
            request.excluded_tags,
            token=token,
        )

    async def explain_tag(
        self,
        image: bytes,
        mime_type: str,
        tag_name: str,
        tag_description: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        try:
            return await self.provider.explain_tag(image, mime_type, tag_name, tag_description, token=token)
        except Exception as primary_error:
            logger.error(f"Error explaining tag with active provider: {error_message(primary_error)}")
            backup_endpoint = self._backup_endpoint()
            if backup_endpoint is None:
                raise
            try:
                backup = self._get_backup(backup_endpoint, token)
                return await backup.explain_tag(image, mime_type, tag_name, tag_description, token=token)
            except Exception as backup_error:
                logger.error(f"Failover explanation failed: {error_message(backup_error)}")
            raise primary_error

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        token: Optional[CancellationToken] = None,
    ) -> bytes:
        return await self.provider.generate_image(prompt, aspect_ratio, token=token)

    async def chat(
        self,
        history: Sequence[ChatMessage],
        message: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        return await self.provider.chat(history, message, image, mime_type, token=token)

    async def test_connection(
        self, endpoint: ProviderEndpointConfig, timeout: float = CONNECTION_TEST_TIMEOUT
    ) -> None:
        provider = self._provider_factory(endpoint, self._retry_policy)
        try:
            await provider.test_connection(timeout)
        finally:
            await provider.aclose()

    async def aclose(self) -> None:
        providers = list(self._backups.values())
        if self._provider is not None:
            providers.append(self._provider)
        self._provider = None
        self._backups = {}
        for provider in providers:
            await provider.aclose()
