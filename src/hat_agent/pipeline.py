"""
합성 파이프라인 오케스트레이터

(모자 이미지 로드 ‖ 머리 위치 추정) → 로컬 합성

두 작업은 서로 독립이라 동시에 실행하고, 둘 다 끝난 뒤에만 합성합니다.
모자 이미지를 못 가져오면 원본 사진을 그대로 돌려주고 상태 메시지로 알립니다.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from PIL import Image

from hat_agent.agents.placement_estimator import estimate_placement
from hat_agent.errors import AssetUnavailable
from hat_agent.models.composite import CompositeRequest
from hat_agent.models.placement import PlacementDescriptor
from hat_agent.utils.asset_cache import get_overlay_asset
from hat_agent.utils.image_utils import decode_image, image_to_bytes, render_composite

logger = logging.getLogger(__name__)


@dataclass
class ComposeResult:
    image: Image.Image
    png_bytes: bytes
    placement: PlacementDescriptor | None
    status: str


async def compose_hat(request: CompositeRequest, photo: Image.Image | None = None) -> ComposeResult:
    """사진 한 장에 모자를 합성합니다.

    호출자가 이미 디코딩한 사진이 있으면 photo로 넘겨 재디코딩을 생략합니다.

    Raises:
        InvalidImage: 사진 bytes를 디코딩할 수 없을 때
    """
    if photo is None:
        photo = decode_image(request.photo_bytes)

    asset_result, placement = await asyncio.gather(
        get_overlay_asset(),
        estimate_placement(request.photo_bytes, request.mime_type, request.width, request.height),
        return_exceptions=True,
    )
    # estimate_placement는 업스트림 실패를 흡수하므로 여기서는 예상 밖 오류만 남음
    if isinstance(placement, BaseException):
        raise placement

    if isinstance(asset_result, AssetUnavailable):
        logger.warning("Returning unmodified photo: %s", asset_result.detail)
        return ComposeResult(
            image=photo,
            png_bytes=image_to_bytes(photo),
            placement=placement,
            status=f"hat image unavailable ({asset_result.detail})",
        )
    if isinstance(asset_result, BaseException):
        raise asset_result

    overlay = decode_image(asset_result.data)
    composed = render_composite(photo, overlay, placement)
    status = f"done (mode: {placement.source.value}, confidence: {placement.confidence:.2f})"
    logger.info("Composite rendered: %s", status)
    return ComposeResult(
        image=composed,
        png_bytes=image_to_bytes(composed),
        placement=placement,
        status=status,
    )
