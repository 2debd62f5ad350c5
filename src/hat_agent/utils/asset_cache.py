"""
모자 이미지(overlay asset) 프로세스 캐시

- 성공: 프로세스 수명 동안 영구 보관, 이후 재요청 없음
- 실패: 에러 내용을 보관하고 이후 호출에서 네트워크 없이 같은 에러를 재발생
  (느린 실패 반복 방지 - 일시 장애 복구에는 reset_overlay_cache() 또는 재시작 필요)

락을 사용하지 않습니다. 동시 첫 호출은 각자 가져올 수 있으며,
내용이 동일하므로 먼저 성공한 쪽이 저장됩니다.
"""
from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path

import httpx
from PIL import Image, UnidentifiedImageError

from hat_agent.config import get_settings
from hat_agent.errors import AssetUnavailable
from hat_agent.models.composite import OverlayAsset
from hat_agent.utils.http_client import create_asset_client

logger = logging.getLogger(__name__)

# 다운스트림 HTTP 캐시도 보관하도록 (1년)
CACHE_CONTROL = "public, max-age=31536000, immutable"

_asset: OverlayAsset | None = None
_error_detail: str | None = None


def reset_overlay_cache() -> None:
    """캐시된 asset/에러를 모두 비웁니다. 다음 호출에서 다시 가져옵니다."""
    global _asset, _error_detail
    _asset = None
    _error_detail = None


def _to_asset(data: bytes, mime_type: str) -> OverlayAsset:
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError) as exc:
        raise AssetUnavailable(f"hat image is not decodable: {exc}") from exc
    return OverlayAsset(data=data, width=width, height=height, mime_type=mime_type)


async def _fetch_remote(url: str) -> OverlayAsset:
    try:
        async with create_asset_client() as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        raise AssetUnavailable(f"fetch failed: {type(exc).__name__}: {exc}") from exc

    if not response.is_success:
        raise AssetUnavailable(f"fetch failed: {response.status_code}")

    mime = response.headers.get("content-type", "image/png").split(";")[0].strip()
    return _to_asset(response.content, mime or "image/png")


async def _read_local(path: Path) -> OverlayAsset:
    try:
        data = await asyncio.to_thread(path.read_bytes)
    except OSError as exc:
        raise AssetUnavailable(f"cannot read {path}: {exc.strerror}") from exc
    return _to_asset(data, "image/png")


async def fetch_overlay_asset() -> OverlayAsset:
    """설정된 원본(로컬 경로 우선, 없으면 URL)에서 모자 이미지를 가져옵니다."""
    settings = get_settings()
    if settings.hat_path:
        return await _read_local(Path(settings.hat_path))
    return await _fetch_remote(settings.hat_url)


async def get_overlay_asset() -> OverlayAsset:
    """캐시된 모자 이미지를 반환합니다.

    Raises:
        AssetUnavailable: 가져오기 실패 (캐시된 실패 포함)
    """
    global _asset, _error_detail
    if _asset is not None:
        return _asset
    if _error_detail is not None:
        # 매 호출마다 새 예외: 이전 요청의 traceback/프레임을 붙잡지 않음
        raise AssetUnavailable(_error_detail)

    try:
        asset = await fetch_overlay_asset()
    except AssetUnavailable as exc:
        logger.error("Overlay asset unavailable: %s", exc.detail)
        # 다른 호출이 이미 성공했다면 그 결과를 유지
        if _asset is not None:
            return _asset
        _error_detail = exc.detail
        raise

    if _asset is None:
        _asset = asset
        _error_detail = None
        logger.info("Overlay asset cached (%dx%d, %d bytes)", asset.width, asset.height, len(asset.data))
    return _asset
