"""편집 파이프라인 - Gemini 이미지 모델로 합성 결과를 통째로 재렌더링

로컬 기하 합성(render_composite)을 완전히 대체하는 대안 경로입니다.
제어 가능성 대신 사실감을 얻습니다.
"""
from __future__ import annotations

import logging
from pathlib import Path

from hat_agent.config import get_settings
from hat_agent.errors import NoImageProduced
from hat_agent.models.edit import EditResult, PlacementHint
from hat_agent.utils.gemini import find_inline_image, generate_content, inline_part, text_part

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent.parent / "utils/prompt_templates"


def _placement_section(hint: PlacementHint | None) -> str:
    if hint is None:
        return ""
    return (
        "\nPlacement hint (normalized to image 1, 0..1 from the top-left):\n"
        f"- brim center: x={hint.x:.3f}, y={hint.y:.3f}\n"
        f"- cap width: {hint.scale:.3f} of the image width\n"
        f"- rotation: {hint.rotation:.1f} degrees clockwise\n"
    )


def build_instructions(two_image: bool, hint: PlacementHint | None = None) -> str:
    """모드별 기본 지시문을 만듭니다."""
    if not two_image:
        return (_TEMPLATE_DIR / "edit_single.txt").read_text(encoding="utf-8") + _placement_section(hint)
    template = (_TEMPLATE_DIR / "edit_two_image.txt").read_text(encoding="utf-8")
    return template.format(placement_section=_placement_section(hint))


async def edit_composite(
    photo_bytes: bytes,
    mime_type: str,
    instruction_text: str | None = None,
    overlay_bytes: bytes | None = None,
    placement_hint: PlacementHint | None = None,
    overlay_mime_type: str = "image/png",
) -> EditResult:
    """사진(+모자 이미지, 배치 힌트)을 편집 모델에 보내 합성 이미지를 받습니다.

    이미지 전용 출력, temperature 0 (결정성). 재시도 없음.

    Raises:
        UpstreamUnavailable: API 키 미설정 또는 네트워크 실패
        UpstreamRejected: 2xx가 아닌 응답
        NoImageProduced: 응답에 이미지 파트 없음
    """
    settings = get_settings()
    two_image = overlay_bytes is not None
    if instruction_text:
        prompt = instruction_text + _placement_section(placement_hint)
    else:
        prompt = build_instructions(two_image, placement_hint)

    parts = [text_part(prompt), inline_part(photo_bytes, mime_type)]
    if two_image:
        parts.append(inline_part(overlay_bytes, overlay_mime_type))

    logger.info(
        "Requesting edit from %s (mode=%s, hint=%s)",
        settings.gemini_image_model,
        "two-image" if two_image else "single-image",
        placement_hint is not None,
    )
    result = await generate_content(
        settings.gemini_image_model,
        parts,
        generation_config={"responseModalities": ["IMAGE"], "temperature": 0},
    )

    image = find_inline_image(result)
    if image is None:
        logger.error("Edit response contained no image: %s", str(result)[:500])
        raise NoImageProduced(raw_response=result)

    image_bytes, image_mime = image
    logger.info("Edit succeeded (%d bytes, %s)", len(image_bytes), image_mime)
    return EditResult(success=True, image_bytes=image_bytes, mime_type=image_mime)
