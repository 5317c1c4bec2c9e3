"""Pytest configuration and fixtures."""

import io
import json
from types import SimpleNamespace
from typing import Any, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from pypdf import PdfWriter

from app.docparse.config import Settings
from app.docparse.main import app
from app.docparse.models import ModelInfo, Provider
from app.docparse.services.ai import ExtractionPipeline, ModelCatalog


def completion(content: str | None) -> SimpleNamespace:
    """A chat completion shaped like the OpenAI SDK's response object."""
    message = SimpleNamespace(content=content, refusal=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeProvider:
    """
    Client factory handing out one scripted OpenAI-compatible client.

    Replies are consumed in order; an Exception instance is raised instead
    of being returned.
    """

    def __init__(self):
        self.client = MagicMock()
        self.client.chat.completions.create = AsyncMock()
        self.calls: list[tuple[Provider, str]] = []

    def reply(self, *replies: Any) -> None:
        side_effect = []
        for reply in replies:
            if isinstance(reply, Exception):
                side_effect.append(reply)
            elif isinstance(reply, str):
                side_effect.append(completion(reply))
            else:
                side_effect.append(completion(json.dumps(reply)))
        self.client.chat.completions.create.side_effect = side_effect

    @property
    def requests(self) -> list[dict[str, Any]]:
        return [call.kwargs for call in self.client.chat.completions.create.call_args_list]

    def __call__(self, provider: Provider, api_key: str, settings: Settings) -> MagicMock:
        self.calls.append((provider, api_key))
        return self.client


class FakeModelFetcher:
    """Model-list fetcher returning a fixed list and counting calls."""

    def __init__(self, models: list[ModelInfo] | None = None):
        self.models = models or [ModelInfo(id="openai/gpt-4o", name="OpenAI: GPT-4o")]
        self.calls: list[str] = []

    async def __call__(self, api_key: str, settings: Settings) -> list[ModelInfo]:
        self.calls.append(api_key)
        return self.models


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, openrouter_api_key="server-key")


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_fetcher() -> FakeModelFetcher:
    return FakeModelFetcher()


@pytest.fixture
def pipeline(settings: Settings, fake_provider: FakeProvider) -> ExtractionPipeline:
    return ExtractionPipeline(settings=settings, client_factory=fake_provider)


@pytest.fixture
def client(
    settings: Settings,
    pipeline: ExtractionPipeline,
    fake_fetcher: FakeModelFetcher,
) -> Generator[TestClient, None, None]:
    """Create a test client whose services never touch the network."""
    with TestClient(app) as test_client:
        app.state.pipeline = pipeline
        app.state.model_catalog = ModelCatalog(
            settings=settings, fetchers={Provider.OPENROUTER: fake_fetcher}
        )
        yield test_client


def build_pdf(pages: int = 3, password: str | None = None) -> bytes:
    """Create a PDF of blank pages, optionally encrypted with ``password``."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    if password:
        writer.encrypt(password)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A valid three-page PDF."""
    return build_pdf(pages=3)


@pytest.fixture
def encrypted_pdf_bytes() -> bytes:
    """A three-page PDF protected with the user password ``secret``."""
    return build_pdf(pages=3, password="secret")


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def sample_png_bytes() -> bytes:
    """A small PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def csv_schema_json() -> str:
    """A CSV schema definition as sent in the ``schema`` form field."""
    return json.dumps(
        {
            "format": "csv",
            "columns": [
                {"name": "n", "type": "string", "required": True},
                {"name": "q", "type": "number", "required": False},
            ],
        }
    )
