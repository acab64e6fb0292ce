from collections.abc import Mapping
from typing import Any

from ..config import get_settings
from .extents import ExtentCache, ImageExtent, get_extent_cache
from .iiif import coordinates_from_geojson, full_url, iiif_base_url, region_url, scaled_url
from .selectors import parse_selector


def _positive_size(size: int) -> int:
    if size <= 0:
        raise ValueError(f"thumbnail size must be a positive number of pixels, got {size}")
    return size


class ImageAddressBuilder:
    """
    Builds IIIF image-derivative URLs bounded by each image's extent.

    The extent of an image is fetched once through the extent cache (the
    process-wide one by default) and every URL is then composed from it
    without further I/O. Regions are clamped to the extent's delivery cap and
    sizes are chosen so the server is never asked to upscale.

    Relative info URLs are resolved against the configured API URL before
    the extent lookup, so every URL built here is absolute.

    Attributes:
        cache: Extent cache consulted for every bounded URL.
        thumbnail_size: Default thumbnail width in pixels.
        timeout: Seconds to wait for an extent before falling back to the
            cache's default extent; None waits for the fetch to settle.
    """

    def __init__(
        self,
        cache: ExtentCache | None = None,
        thumbnail_size: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.cache = cache if cache is not None else get_extent_cache()
        if thumbnail_size is None:
            thumbnail_size = get_settings().thumbnail_size
        self.thumbnail_size = _positive_size(thumbnail_size)
        self.timeout = timeout

    async def extent_for(self, base_uri: str) -> ImageExtent:
        return await self.cache.get(base_uri, timeout=self.timeout)

    async def build_region_url(
        self,
        base_uri: str,
        selector_value: str,
        desired_thumbnail_size: int | None = None,
    ) -> str:
        """
        Thumbnail URL of the region named by a fragment selector.

        The selector is parsed before any fetch, so an invalid selector fails
        without touching the network.

        Raises:
            InvalidSelector: If `selector_value` is not an `xywh=pixel:` selector.
            ValueError: If `desired_thumbnail_size` is not positive.
        """
        rect = parse_selector(selector_value)
        if desired_thumbnail_size is None:
            desired_thumbnail_size = self.thumbnail_size
        size = _positive_size(desired_thumbnail_size)

        base = iiif_base_url(base_uri)
        extent = await self.extent_for(base)
        return region_url(base, rect, size, extent)

    async def build_scaled_url(self, base_uri: str, scale: float) -> str:
        """URL of the whole image scaled by `scale`, never above the delivery cap."""
        base = iiif_base_url(base_uri)
        extent = await self.extent_for(base)
        return scaled_url(base, scale, extent)

    async def build_thumbnail_url(
        self,
        base_uri: str,
        geojson: str | Mapping[str, Any] | None = None,
    ) -> str:
        """
        Thumbnail URL for a stored graph, given its GeoJSON geometry.

        Without usable geometry the whole image is requested at the
        thumbnail width. The stored coordinates are used unflipped.
        """
        base = iiif_base_url(base_uri)
        region = coordinates_from_geojson(geojson)
        if region is None:
            return full_url(base, size=f"{self.thumbnail_size},")

        extent = await self.extent_for(base)
        return region_url(base, region, self.thumbnail_size, extent)

    def build_full_url(self, base_uri: str, **params: Any) -> str:
        """
        `{base}/{region}/{size}/{rotation}/{quality}.{format}` with the IIIF
        defaults `full`, `max`, `0`, `default`, `jpg` for omitted parameters.
        """
        return full_url(iiif_base_url(base_uri), **params)
