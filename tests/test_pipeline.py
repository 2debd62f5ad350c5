"""합성 파이프라인 테스트 - 모자 로드 ‖ 위치 추정 후 합성"""
import asyncio
import io
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from conftest import make_jpeg, make_png
from hat_agent.errors import AssetUnavailable, InvalidImage
from hat_agent.models.composite import CompositeRequest, OverlayAsset
from hat_agent.models.placement import PlacementDescriptor, PlacementSource


def _request(size=(200, 150)):
    return CompositeRequest(photo_bytes=make_jpeg(size), mime_type="image/jpeg", width=size[0], height=size[1])


def _placement():
    return PlacementDescriptor(
        center_x=100,
        center_y=60,
        target_width=80,
        rotation_degrees=-5,
        confidence=0.8,
        source=PlacementSource.MODEL,
    )


def _hat():
    return OverlayAsset(data=make_png(), width=40, height=20)


@pytest.mark.asyncio
async def test_compose_renders_hat():
    with (
        patch("hat_agent.pipeline.get_overlay_asset", new=AsyncMock(return_value=_hat())),
        patch("hat_agent.pipeline.estimate_placement", new=AsyncMock(return_value=_placement())) as mock_estimate,
    ):
        from hat_agent.pipeline import compose_hat
        result = await compose_hat(_request())

    assert result.image.size == (200, 150)
    assert result.placement == _placement()
    assert result.status == "done (mode: model, confidence: 0.80)"
    assert result.png_bytes.startswith(b"\x89PNG")
    r, g, b, _ = result.image.getpixel((100, 55))
    assert r > 200 and g < 60
    mock_estimate.assert_awaited_once()
    assert mock_estimate.await_args.args[1:] == ("image/jpeg", 200, 150)


@pytest.mark.asyncio
async def test_asset_and_placement_run_concurrently():
    """두 작업이 동시에 진행되는지 확인합니다 (서로를 기다리는 이벤트로 검증)."""
    asset_started = asyncio.Event()
    placement_started = asyncio.Event()

    async def slow_asset():
        asset_started.set()
        await asyncio.wait_for(placement_started.wait(), timeout=1)
        return _hat()

    async def slow_placement(*args):
        placement_started.set()
        await asyncio.wait_for(asset_started.wait(), timeout=1)
        return _placement()

    with (
        patch("hat_agent.pipeline.get_overlay_asset", new=slow_asset),
        patch("hat_agent.pipeline.estimate_placement", new=slow_placement),
    ):
        from hat_agent.pipeline import compose_hat
        result = await compose_hat(_request())

    assert result.placement == _placement()


@pytest.mark.asyncio
async def test_missing_hat_returns_unmodified_photo():
    with (
        patch(
            "hat_agent.pipeline.get_overlay_asset",
            new=AsyncMock(side_effect=AssetUnavailable("fetch failed: 404")),
        ),
        patch("hat_agent.pipeline.estimate_placement", new=AsyncMock(return_value=_placement())),
    ):
        from hat_agent.pipeline import compose_hat
        request = _request()
        result = await compose_hat(request)

    original = Image.open(io.BytesIO(request.photo_bytes)).convert("RGBA")
    assert result.image.tobytes() == original.tobytes()
    assert "hat image unavailable" in result.status
    assert "404" in result.status


@pytest.mark.asyncio
async def test_undecodable_photo_raises():
    with pytest.raises(InvalidImage):
        from hat_agent.pipeline import compose_hat
        await compose_hat(CompositeRequest(photo_bytes=b"nope", width=10, height=10))


@pytest.mark.asyncio
async def test_compose_without_key_uses_fallback(asset_server):
    from hat_agent.pipeline import compose_hat
    result = await compose_hat(_request((400, 300)))

    assert result.placement.source == PlacementSource.FALLBACK
    assert result.status == "done (mode: fallback, confidence: 0.20)"
    assert len(asset_server.requests) == 1


@pytest.mark.asyncio
async def test_predecoded_photo_is_not_decoded_again():
    photo = Image.new("RGBA", (200, 150), (255, 255, 255, 255))
    request = CompositeRequest(photo_bytes=b"not an image", mime_type="image/jpeg", width=200, height=150)
    with (
        patch("hat_agent.pipeline.get_overlay_asset", new=AsyncMock(return_value=_hat())),
        patch("hat_agent.pipeline.estimate_placement", new=AsyncMock(return_value=_placement())),
    ):
        from hat_agent.pipeline import compose_hat
        result = await compose_hat(request, photo=photo)

    assert result.image.size == (200, 150)
    assert result.status.startswith("done")
