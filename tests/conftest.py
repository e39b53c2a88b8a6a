"""Shared pytest fixtures.

- temporary prompt directories
- a fake LLM client (MagicMock with ``invoke``)
- a Backend wired with the packaged prompt templates
- a FastAPI TestClient over that Backend
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from server import create_app
from vibe_assistant.ai_service import AIService
from vibe_assistant.backend import Backend
from vibe_assistant.prompt_loader import PromptStore
from vibe_assistant.settings import DEFAULT_PROMPTS_DIR, Settings


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    """Small template directory with one plain and one conditional template."""
    directory = tmp_path / "prompts"
    directory.mkdir()
    (directory / "greeting.txt").write_text("Hello, {{name}}!", encoding="utf-8")
    (directory / "deploy.txt").write_text(
        'Deploy {{app}}{{#if target == "docker"}} with Docker{{/if}}.',
        encoding="utf-8",
    )
    (directory / "notes.md").write_text("not a template", encoding="utf-8")
    return directory


@pytest.fixture
def store(prompts_dir: Path) -> PromptStore:
    return PromptStore(prompts_dir)


@pytest.fixture
def packaged_store() -> PromptStore:
    return PromptStore(DEFAULT_PROMPTS_DIR)


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_llm() -> MagicMock:
    llm = MagicMock()
    llm.invoke.return_value = ""
    return llm


@pytest.fixture
def ai_service(packaged_store: PromptStore, fake_llm: MagicMock) -> AIService:
    return AIService(packaged_store, fake_llm, confidence_threshold=0.7)


# ---------------------------------------------------------------------------
# Backend / HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        openai_api_key="sk-test",
        prompt_hot_reload=False,
    )


@pytest.fixture
def backend(packaged_store: PromptStore, ai_service: AIService) -> Backend:
    return Backend(prompts=packaged_store, ai=ai_service)


@pytest.fixture
def client(backend: Backend, settings: Settings) -> TestClient:
    return TestClient(create_app(backend=backend, settings=settings))
