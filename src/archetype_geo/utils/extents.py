"""
Image extents and the per-image cache that fetches them.

Each distinct image base URI gets one cache entry. The first request for a
base URI starts the only info-document fetch for it; concurrent requests wait
on that same fetch. A failed fetch settles the entry as DEGRADED with a
default square extent, so image display continues in best-effort mode. Settled
entries are never changed or retried for the life of the cache.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from typing import Any, NamedTuple, Self

import aiohttp
from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError

from ..config import get_settings
from .errors import MetadataFetchFailure
from .iiif import iiif_base_url, info_url
from .schemas import ImageInfo

log = logging.getLogger(__name__)


class ImageExtent(BaseModel):
    """
    Pixel dimensions of a source image and the server's delivery cap.

    `max_width`/`max_height` bound every region and size request; they never
    exceed the raw `width`/`height`.
    """
    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt
    max_width: PositiveInt
    max_height: PositiveInt

    @classmethod
    def from_info(cls, info: ImageInfo) -> Self:
        """Build an extent from an info document; a missing cap defaults to the raw size."""
        return cls(
            width=info.width,
            height=info.height,
            max_width=min(info.max_width or info.width, info.width),
            max_height=min(info.max_height or info.height, info.height),
        )

    @classmethod
    def square(cls, size: int) -> Self:
        return cls(width=size, height=size, max_width=size, max_height=size)


def parse_info_document(document: Mapping[str, Any], base_uri: str = "") -> ImageExtent:
    """
    Read the extent out of a IIIF info document.

    Raises:
        MetadataFetchFailure: If `width`/`height` are missing or not positive integers.
    """
    try:
        info = ImageInfo.model_validate(document)
    except ValidationError as exc:
        raise MetadataFetchFailure(base_uri, f"invalid info document ({exc.error_count()} errors)") from exc
    return ImageExtent.from_info(info)


type extent_fetcher = Callable[[str], Awaitable[ImageExtent]]


class IIIFInfoFetcher:
    """
    Fetches `<base>/info.json` with aiohttp.

    Attributes:
        timeout: Total seconds for the request; None keeps aiohttp's default.
        session: Shared client session; when None a session is opened per fetch.
    """

    def __init__(self, timeout: float | None = None, session: aiohttp.ClientSession | None = None) -> None:
        self.timeout = timeout
        self.session = session

    async def __call__(self, base_uri: str) -> ImageExtent:
        url = info_url(base_uri)
        log.debug("Fetching IIIF info document %s", url)
        try:
            if self.session is not None:
                document = await self._get_json(self.session, url)
            else:
                async with aiohttp.ClientSession() as session:
                    document = await self._get_json(session, url)
        except aiohttp.ClientResponseError as exc:
            raise MetadataFetchFailure(base_uri, f"HTTP {exc.status}") from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise MetadataFetchFailure(base_uri, f"connection error: {exc!r}") from exc
        except ValueError as exc:
            raise MetadataFetchFailure(base_uri, f"response is not JSON: {exc}") from exc

        if not isinstance(document, Mapping):
            raise MetadataFetchFailure(base_uri, "info document is not a JSON object")
        return parse_info_document(document, base_uri)

    async def _get_json(self, session: aiohttp.ClientSession, url: str) -> Any:
        kwargs = {}
        if self.timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(url, **kwargs) as response:
            response.raise_for_status()
            # info.json is often served as application/ld+json
            return await response.json(content_type=None)


class ExtentState(StrEnum):
    UNINITIALIZED = "uninitialized"
    FETCHING = "fetching"
    READY = "ready"
    DEGRADED = "degraded"


class ExtentEntry(NamedTuple):
    state: ExtentState
    extent: ImageExtent


class ExtentCache:
    """
    Write-once cache of image extents keyed by normalized base URI.

    Args:
        fetcher: Coroutine function returning the extent for a base URI and
            raising `MetadataFetchFailure` on failure. Defaults to `IIIFInfoFetcher`.
        default_extent: Extent used for DEGRADED entries and caller timeouts.
    """

    def __init__(self, fetcher: extent_fetcher | None = None, default_extent: ImageExtent | None = None) -> None:
        self._fetcher = fetcher if fetcher is not None else IIIFInfoFetcher()
        self.default_extent = default_extent or ImageExtent.square(get_settings().default_extent)
        self._settled: dict[str, ExtentEntry] = {}
        self._inflight: dict[str, asyncio.Task[ImageExtent]] = {}

    @staticmethod
    def key_for(base_uri: str) -> str:
        """Absolute, normalized base URI; relative info URLs resolve against the API URL."""
        return iiif_base_url(base_uri)

    def state(self, base_uri: str) -> ExtentState:
        key = self.key_for(base_uri)
        if key in self._settled:
            return self._settled[key].state
        if key in self._inflight:
            return ExtentState.FETCHING
        return ExtentState.UNINITIALIZED

    def peek(self, base_uri: str) -> ImageExtent | None:
        """Settled extent for `base_uri`, without fetching."""
        entry = self._settled.get(self.key_for(base_uri))
        return entry.extent if entry is not None else None

    async def get(self, base_uri: str, timeout: float | None = None) -> ImageExtent:
        """
        Extent for `base_uri`, fetching it on first use.

        Args:
            base_uri: Image base URI or info URL.
            timeout: Seconds this caller is willing to wait. On expiry the
                default extent is returned; the shared fetch keeps running
                and settles the entry for later callers.
        """
        key = self.key_for(base_uri)
        entry = self._settled.get(key)
        if entry is not None:
            return entry.extent

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._settle(key))
            self._inflight[key] = task

        try:
            # shield: a caller giving up must not cancel the shared fetch
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except TimeoutError:
            log.warning("Timed out after %ss waiting for extent of %s; using default extent", timeout, key)
            return self.default_extent

    async def _settle(self, key: str) -> ImageExtent:
        try:
            try:
                entry = ExtentEntry(ExtentState.READY, await self._fetcher(key))
            except MetadataFetchFailure as exc:
                log.warning("%s; using default %dx%d extent", exc, self.default_extent.width, self.default_extent.height)
                entry = ExtentEntry(ExtentState.DEGRADED, self.default_extent)
            self._settled[key] = entry
        finally:
            self._inflight.pop(key, None)
        return entry.extent

    def clear(self) -> None:
        """Drop every entry. Meant for tests; in-flight fetches are cancelled."""
        for task in self._inflight.values():
            if not task.done():
                task.cancel()
        self._inflight.clear()
        self._settled.clear()


_extent_cache: ExtentCache | None = None


def get_extent_cache() -> ExtentCache:
    """The process-wide extent cache, created from settings on first use."""
    global _extent_cache
    if _extent_cache is None:
        settings = get_settings()
        _extent_cache = ExtentCache(
            IIIFInfoFetcher(timeout=settings.info_timeout),
            ImageExtent.square(settings.default_extent),
        )
    return _extent_cache


def reset_extent_cache() -> None:
    """Discard the process-wide extent cache. Test-only hook."""
    global _extent_cache
    if _extent_cache is not None:
        _extent_cache.clear()
    _extent_cache = None
