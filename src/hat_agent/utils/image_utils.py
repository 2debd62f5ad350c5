from __future__ import annotations

import base64
import binascii
import io
import math

from PIL import Image, UnidentifiedImageError

from hat_agent.config import get_settings
from hat_agent.errors import InvalidImage, ValidationError
from hat_agent.models.placement import PlacementDescriptor


def decode_image(data: bytes) -> Image.Image:
    """이미지 bytes를 RGBA PIL Image로 디코딩합니다. 실패 시 InvalidImage."""
    if not data:
        raise InvalidImage("empty image payload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImage(f"cannot decode image: {exc}") from exc
    return image.convert("RGBA")


def decode_base64_image(payload: str, field: str = "image") -> tuple[bytes, str | None]:
    """raw base64 또는 data URL을 (bytes, data URL의 mime)으로 변환합니다."""
    mime = None
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        mime = header[5:].split(";")[0] or None
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError(f"{field} must be base64") from exc
    if not data:
        raise ValidationError(f"{field} is empty")
    return data, mime


def image_to_bytes(image: Image.Image, format: str = "PNG") -> bytes:
    """PIL Image를 bytes로 변환합니다. PNG는 알파 채널을 유지합니다."""
    buffer = io.BytesIO()
    if format.upper() == "PNG":
        image.save(buffer, format=format)
    else:
        image.convert("RGB").save(buffer, format=format)
    return buffer.getvalue()


def _check_image(image: object, name: str) -> Image.Image:
    if not isinstance(image, Image.Image):
        raise InvalidImage(f"{name} is not an image")
    if image.width <= 0 or image.height <= 0:
        raise InvalidImage(f"{name} has zero size")
    return image


def render_composite(
    photo: Image.Image,
    overlay: Image.Image,
    placement: PlacementDescriptor,
    anchor_ratio: float | None = None,
) -> Image.Image:
    """사진 위에 모자를 배치 정보대로 합성합니다.

    - 사진은 원본 크기 그대로 (스케일 없음)
    - 모자 스케일 = target_width / 모자 원본 너비 (비율 유지)
    - 기준점 (center_x, center_y)에서 모자 가로 중앙 정렬,
      모자 높이의 anchor_ratio 만큼을 기준점 위에 둠
    - 기준점을 중심으로 rotation_degrees 만큼 시계 방향 회전

    네트워크 접근이 없는 순수 함수이며, 같은 입력에 항상 같은 픽셀을 반환합니다.
    """
    photo = _check_image(photo, "photo")
    overlay = _check_image(overlay, "overlay")
    if anchor_ratio is None:
        anchor_ratio = get_settings().hat_anchor_ratio

    canvas = photo.convert("RGBA")

    scale = placement.target_width / overlay.width
    hat_w = max(1, round(placement.target_width))
    hat_h = max(1, round(overlay.height * scale))
    hat = overlay.convert("RGBA").resize((hat_w, hat_h), Image.LANCZOS)

    # 모자 좌상단의 기준점 대비 오프셋 (회전 전), 가로는 정수 픽셀 기준 중앙
    offset_x = -(hat_w // 2)
    offset_y = -overlay.height * scale * anchor_ratio

    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))

    if placement.rotation_degrees == 0:
        layer.paste(
            hat,
            (round(placement.center_x) + offset_x, round(placement.center_y + offset_y)),
            mask=hat,
        )
        return Image.alpha_composite(canvas, layer)

    # 기준점을 중심으로 하는 정사각 패드에 모자를 올린 뒤 회전 (모서리 잘림 방지)
    radius = math.ceil(
        max(
            math.hypot(x, y)
            for x in (offset_x, offset_x + hat_w)
            for y in (offset_y, offset_y + hat_h)
        )
    )
    pad = Image.new("RGBA", (radius * 2, radius * 2), (0, 0, 0, 0))
    pad.paste(hat, (radius + offset_x, round(radius + offset_y)), mask=hat)
    # PIL 회전은 반시계 방향이 양수
    rotated = pad.rotate(
        -placement.rotation_degrees,
        resample=Image.BICUBIC,
        center=(radius, radius),
    )

    layer.paste(
        rotated,
        (round(placement.center_x) - radius, round(placement.center_y) - radius),
        mask=rotated,
    )
    return Image.alpha_composite(canvas, layer)
