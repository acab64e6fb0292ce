import asyncio
import json

import pytest

from archetype_geo.utils.addresses import ImageAddressBuilder
from archetype_geo.utils.errors import InvalidSelector
from archetype_geo.utils.extents import ExtentCache, ImageExtent, get_extent_cache

BASE = "https://img.example/iiif/2/ms1%2Ff1r.jp2"
INFO = BASE + "/info.json"
GEOJSON = {
    "type": "Feature",
    "geometry": {"type": "Polygon", "coordinates": [[[10, 60], [10, 400], [400, 400], [400, 60], [10, 60]]]},
}


def _builder(fetcher, **kwargs) -> ImageAddressBuilder:
    return ImageAddressBuilder(ExtentCache(fetcher, ImageExtent.square(2000)), **kwargs)


def test_scenario_b_region_url(fake_fetcher):
    builder = _builder(fake_fetcher())
    url = asyncio.run(builder.build_region_url(INFO, "xywh=pixel:950,10,100,50"))
    assert url == BASE + "/950,10,50,50/max/0/default.jpg"


@pytest.mark.parametrize(
    "selector, size",
    [("xywh=pixel:0,0,150,150", "max"), ("xywh=pixel:0,0,600,400", "200,"), ("xywh=pixel:0,0,200,10", "200,")],
)
def test_region_url_never_requests_upscaled_thumbnail(fake_fetcher, selector, size):
    url = asyncio.run(_builder(fake_fetcher()).build_region_url(BASE, selector))
    assert url.split("/")[-3] == size


def test_region_url_honours_requested_thumbnail_size(fake_fetcher):
    url = asyncio.run(_builder(fake_fetcher()).build_region_url(BASE, "xywh=pixel:0,0,600,400", 64))
    assert url == BASE + "/0,0,600,400/64,/0/default.jpg"


def test_invalid_selector_fails_before_fetching(fake_fetcher):
    fetcher = fake_fetcher()
    with pytest.raises(InvalidSelector):
        asyncio.run(_builder(fetcher).build_region_url(BASE, "xywh=pixel:0,0,600"))
    assert fetcher.calls == []


@pytest.mark.parametrize("scale, size", [(1.5, "max"), (1, "max"), (0.25, "250,"), (0.001, "1,")])
def test_scaled_url(fake_fetcher, scale, size):
    url = asyncio.run(_builder(fake_fetcher()).build_scaled_url(BASE, scale))
    assert url == f"{BASE}/full/{size}/0/default.jpg"


def test_scaled_url_rejects_non_positive_scale(fake_fetcher):
    with pytest.raises(ValueError):
        asyncio.run(_builder(fake_fetcher()).build_scaled_url(BASE, 0))


def test_build_full_url(fake_fetcher):
    builder = _builder(fake_fetcher())
    assert builder.build_full_url(INFO) == BASE + "/full/max/0/default.jpg"
    assert builder.build_full_url(BASE, size="!100,100", quality="gray") == BASE + "/full/!100,100/0/gray.jpg"


def test_thumbnail_url_for_stored_graph(fake_fetcher):
    builder = _builder(fake_fetcher(), thumbnail_size=100)
    url = asyncio.run(builder.build_thumbnail_url(BASE, json.dumps(GEOJSON)))
    assert url == BASE + "/10,60,390,340/100,/0/default.jpg"


def test_thumbnail_url_without_geometry_skips_fetch(fake_fetcher):
    fetcher = fake_fetcher()
    builder = _builder(fetcher)
    assert asyncio.run(builder.build_thumbnail_url(BASE)) == BASE + "/full/200,/0/default.jpg"
    assert asyncio.run(builder.build_thumbnail_url(BASE, "not json")) == BASE + "/full/200,/0/default.jpg"
    assert fetcher.calls == []


def test_degraded_image_is_clamped_to_default_extent(fake_fetcher):
    builder = _builder(fake_fetcher(fail=True))
    url = asyncio.run(builder.build_region_url(BASE, "xywh=pixel:1900,2500,400,400"))
    assert url == BASE + "/1900,1999,100,1/max/0/default.jpg"


def test_region_url_clamps_to_delivery_cap(fake_fetcher):
    extent = ImageExtent(width=8000, height=6000, max_width=1000, max_height=750)
    url = asyncio.run(_builder(fake_fetcher(extent)).build_region_url(BASE, "xywh=pixel:500,500,800,800"))
    assert url == BASE + "/500,500,500,250/200,/0/default.jpg"


def test_builder_timeout_falls_back_to_default_extent(fake_fetcher):
    builder = _builder(fake_fetcher(gated=True), timeout=0.01)
    url = asyncio.run(builder.build_region_url(BASE, "xywh=pixel:1900,0,400,400"))
    assert url == BASE + "/1900,0,100,400/max/0/default.jpg"


def test_builder_defaults_to_process_wide_cache_and_settings(monkeypatch):
    monkeypatch.setenv("ARCHETYPE_THUMBNAIL_SIZE", "150")
    builder = ImageAddressBuilder()
    assert builder.cache is get_extent_cache()
    assert builder.thumbnail_size == 150


def test_relative_info_url_resolves_against_api_url(monkeypatch, fake_fetcher):
    monkeypatch.setenv("ARCHETYPE_API_URL", "http://archetype.local:9000/")
    fetcher = fake_fetcher()
    builder = _builder(fetcher)
    relative = "/iiif/2/ms1/f1r.jp2/info.json"
    absolute = "http://archetype.local:9000/iiif/2/ms1%2Ff1r.jp2"

    async def scenario():
        return (
            await builder.build_region_url(relative, "xywh=pixel:0,0,10,10"),
            await builder.build_scaled_url(absolute + "/info.json", 0.5),
            await builder.build_thumbnail_url(relative),
        )

    region, scaled, thumbnail = asyncio.run(scenario())
    assert region == absolute + "/0,0,10,10/max/0/default.jpg"
    assert scaled == absolute + "/full/500,/0/default.jpg"
    assert thumbnail == absolute + "/full/200,/0/default.jpg"
    assert builder.build_full_url(relative) == absolute + "/full/max/0/default.jpg"
    assert fetcher.calls == [absolute]


@pytest.mark.parametrize("size", [0, -200])
def test_non_positive_thumbnail_size_is_rejected(fake_fetcher, size):
    fetcher = fake_fetcher()
    with pytest.raises(ValueError):
        _builder(fetcher, thumbnail_size=size)
    with pytest.raises(ValueError):
        asyncio.run(_builder(fetcher).build_region_url(BASE, "xywh=pixel:0,0,600,400", size))
    assert fetcher.calls == []
