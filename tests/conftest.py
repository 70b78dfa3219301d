"""Shared pytest fixtures for imagepipe tests."""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from imagepipe.config import Settings
from imagepipe.core import ImagePipeline
from imagepipe.models import GeneratedImage
from imagepipe.providers.base_provider import BaseImageProvider

TEST_API_KEY = "sk-test-key"


class FakeProvider(BaseImageProvider):
    """Records every call and answers with canned images or a canned error."""

    def __init__(
        self,
        images: Optional[List[GeneratedImage]] = None,
        error: Optional[Exception] = None,
    ):
        self.images = images
        self.error = error
        self.calls = []

    async def _respond(self, operation, request, credential):
        self.calls.append((operation, request, credential))
        if self.error is not None:
            raise self.error
        if self.images is not None:
            return list(self.images)
        return [
            GeneratedImage(url=f"https://images.example/{len(self.calls)}.png")
            for _ in range(request.n or 1)
        ]

    async def generate(self, request, credential):
        return await self._respond("generate", request, credential)

    async def edit(self, request, credential):
        return await self._respond("edit", request, credential)

    async def create_variation(self, request, credential):
        return await self._respond("variation", request, credential)


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("IMAGEPIPE__OPENAI_API_KEY", raising=False)
    return Settings(_env_file=None, OPENAI_API_KEY=TEST_API_KEY)


@pytest.fixture
def unconfigured_settings(monkeypatch) -> Settings:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("IMAGEPIPE__OPENAI_API_KEY", raising=False)
    return Settings(_env_file=None)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def pipeline(fake_provider, settings) -> ImagePipeline:
    return ImagePipeline(fake_provider, settings)
