"""API router for provider connectivity checks."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator
from config import settings
from models.domain import ProviderEndpointConfig
from models.schemas import ProviderTestRequest, ProviderTestResponse
from services.llm_errors import LLMError
from services.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/test", response_model=ProviderTestResponse)
async def test_provider(
    payload: ProviderTestRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> ProviderTestResponse:
    endpoint = ProviderEndpointConfig(
        provider=payload.provider,
        api_key=payload.api_key,
        base_url=payload.base_url,
        model_name=payload.model_name,
    )
    try:
        await orchestrator.test_connection(endpoint, timeout=settings.connection_test_timeout)
    except LLMError as e:
        logger.warning(f"Connection test for {payload.provider.value} failed: {e.message}")
        return ProviderTestResponse(ok=False, message=e.message)

    return ProviderTestResponse(ok=True, message="Connection successful.")
