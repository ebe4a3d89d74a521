"""Shared fixtures for unit and API tests."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import pytest


def ensure_src_on_path() -> None:
    root = Path(__file__).resolve().parent.parent
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.append(str(src_path))


ensure_src_on_path()

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import get_orchestrator
from llm_fakes import FakeOrchestrator
from api.routers import generation, providers
from services.tag_library import build_prompt_library

MULTILINGUAL_CSV = """原始标签,名称,台灣翻譯,備註,描述
action,动作,動作,,戰鬥場景
romance,恋爱,戀愛,,浪漫關係
,==校園==,,,
school,校园,校園,,學園生活
isekai,异世界,異世界,,轉生到另一個世界
"""

SIMPLE_CSV = """標籤,標籤定義
Action,動作場面
Romance,戀愛故事
"""


@pytest.fixture
def multilingual_csv() -> str:
    return MULTILINGUAL_CSV


@pytest.fixture
def simple_csv() -> str:
    return SIMPLE_CSV


@pytest.fixture(scope="function")
def test_app():
    @asynccontextmanager
    async def test_lifespan(app: FastAPI) -> AsyncGenerator:
        yield

    app = FastAPI(
        title="CoverTagger Test",
        description="Generate library-constrained tags and copy for cover images",
        version="0.1.0",
        lifespan=test_lifespan,
    )

    app.include_router(generation.router, prefix="/api/v1/generation", tags=["generation"])
    app.include_router(providers.router, prefix="/api/v1/providers", tags=["providers"])
    app.state.tag_library = build_prompt_library(MULTILINGUAL_CSV)

    @app.get("/")
    async def root():
        return {
            "name": "CoverTagger",
            "version": "0.1.0",
            "status": "running",
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


@pytest.fixture(scope="function")
def fake_orchestrator():
    return FakeOrchestrator()


@pytest.fixture(scope="function")
def client(test_app: FastAPI, fake_orchestrator):
    test_app.dependency_overrides[get_orchestrator] = lambda: fake_orchestrator
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()
