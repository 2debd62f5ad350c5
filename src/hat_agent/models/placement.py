import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlacementSource(str, Enum):
    MODEL = "model"
    FALLBACK = "fallback"


class RawPlacement(BaseModel):
    """Vision 모델이 반환한 JSON을 그대로 디코딩한 값 (클램핑 전).

    키 누락·숫자 아님·NaN/Infinity는 모두 디코딩 실패로 처리합니다.
    """

    center_x: float = Field(alias="centerX")
    center_y: float = Field(alias="centerY")
    hat_width: float = Field(alias="hatWidth")
    angle_deg: float = Field(alias="angleDeg")
    confidence: float

    @field_validator("*")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("non-finite number")
        return value


class PlacementDescriptor(BaseModel):
    """원본 사진 픽셀 좌표계 기준의 모자 배치 정보."""

    model_config = ConfigDict(frozen=True)

    center_x: float = Field(description="기준점 x (px)")
    center_y: float = Field(description="기준점 y (px)")
    target_width: float = Field(gt=0, description="렌더링할 모자 너비 (px)")
    rotation_degrees: float = Field(ge=-45, le=45, description="시계 방향 회전 (도)")
    confidence: float = Field(ge=0, le=1)
    source: PlacementSource

    def to_response(self) -> dict:
        """HTTP 응답 형식. 기존 클라이언트 필드명(hatWidth, angleDeg)도 함께 제공."""
        return {
            "centerX": self.center_x,
            "centerY": self.center_y,
            "hatWidth": self.target_width,
            "angleDeg": self.rotation_degrees,
            "targetWidth": self.target_width,
            "rotationDegrees": self.rotation_degrees,
            "confidence": self.confidence,
            "source": self.source.value,
            "note": self.source.value,
        }
