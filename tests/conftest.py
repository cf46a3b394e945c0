from __future__ import annotations

import asyncio
import io
from collections.abc import Generator
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from dal.asset_store import AssetStore
from main import create_app
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


def make_image(width: int = 100, height: int = 100, color=(40, 80, 120), fmt: str = "PNG") -> bytes:
    """Return encoded bytes of a solid-color image."""
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format=fmt)
    return out.getvalue()


class FakeCompletions:
    def __init__(self, content: Optional[str], prompt_tokens: int, completion_tokens: int, error: Optional[Exception]):
        self.content = content
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.error = error
        self.delay = 0.0
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=self.prompt_tokens, completion_tokens=self.completion_tokens),
        )


class FakeOpenAI:
    """Stand-in for `AsyncOpenAI` exposing `chat.completions.create`."""

    def __init__(
        self,
        content: Optional[str] = "Hairline crack visible on the beam soffit",
        prompt_tokens: int = 1000,
        completion_tokens: int = 1000,
        error: Optional[Exception] = None,
    ) -> None:
        self.completions = FakeCompletions(content, prompt_tokens, completion_tokens, error)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture()
def store(tmp_path) -> AssetStore:
    return AssetStore(AsyncDatabaseInitializer(tmp_path / "data"))


@pytest.fixture()
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture()
def client(tmp_path, fake_openai) -> Generator[TestClient, None, None]:
    app = create_app(
        settings=Settings(auth_disabled=True, analysis_rate_seconds=0.0),
        db_initializer=AsyncDatabaseInitializer(tmp_path / "data"),
        openai_client=fake_openai,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_client(tmp_path, fake_openai) -> Generator[TestClient, None, None]:
    app = create_app(
        settings=Settings(admin_user="inspector@example.com", admin_pass="s3cret"),
        db_initializer=AsyncDatabaseInitializer(tmp_path / "data"),
        openai_client=fake_openai,
    )
    with TestClient(app) as test_client:
        yield test_client
