from fastapi import Request

from services.orchestrator import GenerationOrchestrator
from services.tag_library import TagLibrary


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.orchestrator


def get_tag_library(request: Request) -> TagLibrary:
    return getattr(request.app.state, "tag_library", None) or TagLibrary()
