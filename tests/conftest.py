import asyncio
import os

import pytest

from archetype_geo.config import ENV_PREFIX, get_settings
from archetype_geo.utils.errors import MetadataFetchFailure
from archetype_geo.utils.extents import ImageExtent, reset_extent_cache


class FakeFetcher:
    """Extent fetcher that records calls and can be held open with a gate."""

    def __init__(self, extent: ImageExtent | None = None, fail: bool = False, gated: bool = False) -> None:
        self.extent = extent or ImageExtent.square(1000)
        self.fail = fail
        self.gated = gated
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def __call__(self, base_uri: str) -> ImageExtent:
        self.calls.append(base_uri)
        if self.gated:
            if self.gate is None:
                self.gate = asyncio.Event()
            await self.gate.wait()
        if self.fail:
            raise MetadataFetchFailure(base_uri, "HTTP 503")
        return self.extent

    def release(self) -> None:
        if self.gate is None:
            self.gate = asyncio.Event()
        self.gate.set()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch):
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    reset_extent_cache()
    yield
    reset_extent_cache()
    get_settings.cache_clear()
