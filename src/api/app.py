import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from api.routers import generation, providers
from config import configure_logging, settings
from services.orchestrator import GenerationOrchestrator
from services.tag_library import build_prompt_library, load_tag_library_csv

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    configure_logging(settings.log_level)
    app.state.tag_library = build_prompt_library(load_tag_library_csv(settings.tag_library_path))
    if not app.state.tag_library.is_loaded:
        logger.warning("No tag library loaded; set TAG_LIBRARY_PATH to enable generation.")
    app.state.orchestrator = GenerationOrchestrator(
        settings.to_llm_config(), retry_policy=settings.retry_policy()
    )
    logger.info(f"Active provider: {settings.llm_provider.value}")
    yield
    await app.state.orchestrator.aclose()

app = FastAPI(
    title=settings.app_name,
    description="Generate library-constrained tags and copy for cover images",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(generation.router, prefix="/api/v1/generation", tags=["generation"])
app.include_router(providers.router, prefix="/api/v1/providers", tags=["providers"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health(request: Request):
    tag_library = getattr(request.app.state, "tag_library", None)
    return {
        "status": "healthy",
        "provider": settings.llm_provider.value,
        "tag_library_loaded": bool(tag_library and tag_library.is_loaded),
    }
