"""모자 이미지 캐시 테스트 - 성공은 영구 보관, 실패는 재시도 없이 재현"""
import traceback

import httpx
import pytest

from conftest import make_png
from hat_agent.config import get_settings
from hat_agent.errors import AssetUnavailable
from hat_agent.utils.asset_cache import get_overlay_asset, reset_overlay_cache


@pytest.mark.asyncio
async def test_success_is_fetched_once(asset_server):
    first = await get_overlay_asset()
    for _ in range(5):
        again = await get_overlay_asset()
        assert again is first

    assert len(asset_server.requests) == 1
    assert str(asset_server.requests[0].url) == "https://assets.test/hat.png"
    assert (first.width, first.height) == (40, 20)
    assert first.mime_type == "image/png"


@pytest.mark.asyncio
async def test_failure_is_replayed_without_refetch(asset_server):
    asset_server.respond_text("not found", status=404)

    with pytest.raises(AssetUnavailable) as first:
        await get_overlay_asset()
    assert "404" in first.value.detail
    assert first.value.to_dict()["error"] == "hat_unavailable"

    asset_server.respond_bytes(make_png())
    with pytest.raises(AssetUnavailable) as second:
        await get_overlay_asset()

    assert second.value.detail == first.value.detail
    assert second.value.to_dict() == first.value.to_dict()
    assert len(asset_server.requests) == 1


@pytest.mark.asyncio
async def test_replayed_failure_does_not_accumulate_frames(asset_server):
    asset_server.respond_text("not found", status=404)
    with pytest.raises(AssetUnavailable):
        await get_overlay_asset()

    depths = []
    for _ in range(50):
        with pytest.raises(AssetUnavailable) as exc_info:
            await get_overlay_asset()
        depths.append(len(traceback.extract_tb(exc_info.value.__traceback__)))
        assert exc_info.value.__cause__ is None

    assert len(set(depths)) == 1
    assert len(asset_server.requests) == 1


@pytest.mark.asyncio
async def test_reset_allows_recovery(asset_server):
    asset_server.respond_text("unavailable", status=503)
    with pytest.raises(AssetUnavailable):
        await get_overlay_asset()

    asset_server.respond_bytes(make_png((10, 8)))
    reset_overlay_cache()
    asset = await get_overlay_asset()

    assert (asset.width, asset.height) == (10, 8)
    assert len(asset_server.requests) == 2


@pytest.mark.asyncio
async def test_network_error_is_cached(asset_server):
    asset_server.fail_with(httpx.ConnectTimeout("timed out"))

    with pytest.raises(AssetUnavailable) as exc_info:
        await get_overlay_asset()
    assert "ConnectTimeout" in exc_info.value.detail

    with pytest.raises(AssetUnavailable):
        await get_overlay_asset()
    assert len(asset_server.requests) == 1


@pytest.mark.asyncio
async def test_undecodable_bytes_are_a_failure(asset_server):
    asset_server.respond_bytes(b"<html>login page</html>", content_type="text/html")

    with pytest.raises(AssetUnavailable):
        await get_overlay_asset()


@pytest.mark.asyncio
async def test_local_path_takes_precedence(asset_server, tmp_path, monkeypatch):
    hat = tmp_path / "hat.png"
    hat.write_bytes(make_png((64, 32)))
    monkeypatch.setenv("HAT_PATH", str(hat))
    get_settings.cache_clear()

    asset = await get_overlay_asset()

    assert (asset.width, asset.height) == (64, 32)
    assert asset_server.requests == []


@pytest.mark.asyncio
async def test_missing_local_file_is_a_failure(tmp_path, monkeypatch):
    monkeypatch.setenv("HAT_PATH", str(tmp_path / "missing.png"))
    get_settings.cache_clear()

    with pytest.raises(AssetUnavailable):
        await get_overlay_asset()
