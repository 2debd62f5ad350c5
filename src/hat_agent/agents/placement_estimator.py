"""머리 위치 추정기

Vision 모델에게 사진을 보여주고 모자 기준점·너비·기울기를 받아옵니다.
위치 추정은 best-effort이므로 어떤 실패도 밖으로 던지지 않고
결정적인 fallback 배치로 대체합니다.
"""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path

from pydantic import ValidationError as ModelValidationError

from hat_agent.config import Settings, get_settings
from hat_agent.errors import HatAgentError
from hat_agent.models.placement import PlacementDescriptor, PlacementSource, RawPlacement
from hat_agent.utils.gemini import extract_text, generate_content, inline_part, text_part

logger = logging.getLogger(__name__)

_TEMPLATE_PATH = Path(__file__).parent.parent / "utils/prompt_templates/placement.txt"

MIN_WIDTH_RATIO = 0.15
MAX_WIDTH_RATIO = 0.95
MAX_ROTATION = 45.0


class PlacementDecodeError(ValueError):
    """모델 응답에서 배치 정보를 읽을 수 없음."""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def fallback_placement(width: float, height: float, settings: Settings | None = None) -> PlacementDescriptor:
    """얼굴 위치와 무관한 기본 배치: 상단 중앙, 사진 너비의 60%."""
    settings = settings or get_settings()
    return PlacementDescriptor(
        center_x=width * settings.fallback_center_x_ratio,
        center_y=height * settings.fallback_center_y_ratio,
        target_width=width * settings.fallback_width_ratio,
        rotation_degrees=0.0,
        confidence=settings.fallback_confidence,
        source=PlacementSource.FALLBACK,
    )


def decode_placement(text: str) -> RawPlacement:
    """모델 텍스트에서 첫 '{' ~ 마지막 '}' 구간을 JSON으로 파싱합니다.

    모델이 JSON 앞뒤에 설명 문장을 붙이는 경우가 있어 구간만 잘라냅니다.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise PlacementDecodeError("no JSON object in model response")

    try:
        raw = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise PlacementDecodeError(f"malformed JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise PlacementDecodeError("JSON is not an object")

    try:
        return RawPlacement.model_validate(raw)
    except ModelValidationError as exc:
        raise PlacementDecodeError(f"invalid placement fields: {exc.error_count()} errors") from exc


def clamp_placement(raw: RawPlacement, width: float, height: float) -> PlacementDescriptor:
    """모델 값을 그대로 믿지 않고 모든 필드를 유효 범위로 클램핑합니다."""
    values = (raw.center_x, raw.center_y, raw.hat_width, raw.angle_deg, raw.confidence)
    if not all(math.isfinite(v) for v in values):
        raise PlacementDecodeError("non-finite placement value")

    return PlacementDescriptor(
        center_x=_clamp(raw.center_x, 0, width),
        center_y=_clamp(raw.center_y, 0, height),
        target_width=_clamp(raw.hat_width, width * MIN_WIDTH_RATIO, width * MAX_WIDTH_RATIO),
        rotation_degrees=_clamp(raw.angle_deg, -MAX_ROTATION, MAX_ROTATION),
        confidence=_clamp(raw.confidence, 0, 1),
        source=PlacementSource.MODEL,
    )


async def _ask_model(
    photo_bytes: bytes, mime_type: str, width: float, height: float, settings: Settings
) -> PlacementDescriptor:
    template = _TEMPLATE_PATH.read_text(encoding="utf-8")
    prompt = template.format(width=round(width), height=round(height))

    result = await generate_content(
        settings.gemini_model,
        [text_part(prompt), inline_part(photo_bytes, mime_type)],
        generation_config={"temperature": 0},
    )
    raw = decode_placement(extract_text(result))
    return clamp_placement(raw, width, height)


async def estimate_placement(
    photo_bytes: bytes,
    mime_type: str,
    width: float,
    height: float,
) -> PlacementDescriptor:
    """사진에서 모자 배치 정보를 추정합니다. 실패하지 않습니다.

    width/height 검증(양수·유한)은 호출하는 HTTP 경계에서 끝난 상태여야 합니다.

    Returns:
        PlacementDescriptor - source=model 또는 source=fallback
    """
    settings = get_settings()

    if not settings.gemini_api_key:
        logger.info("No Gemini API key configured, using fallback placement")
        return fallback_placement(width, height, settings)

    try:
        placement = await _ask_model(photo_bytes, mime_type, width, height, settings)
    except (HatAgentError, ValueError) as exc:
        logger.warning("Placement estimation failed, using fallback: %s", exc)
        return fallback_placement(width, height, settings)

    logger.info(
        "Placement: center=(%.1f, %.1f) width=%.1f angle=%.1f confidence=%.2f",
        placement.center_x,
        placement.center_y,
        placement.target_width,
        placement.rotation_degrees,
        placement.confidence,
    )
    return placement
