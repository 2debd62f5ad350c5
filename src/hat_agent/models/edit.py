from pydantic import BaseModel, Field


class PlacementHint(BaseModel):
    """두 장 모드에서 편집 모델에 전달하는 배치 힌트 (0..1 정규화 좌표)."""

    x: float = Field(ge=0, le=1, allow_inf_nan=False)
    y: float = Field(ge=0, le=1, allow_inf_nan=False)
    scale: float = Field(gt=0, allow_inf_nan=False)
    rotation: float = Field(default=0.0, allow_inf_nan=False)


class EditResult(BaseModel):
    """성공한 편집 결과. 실패는 예외(UpstreamRejected, NoImageProduced 등)로 전달됩니다."""

    success: bool = True
    image_bytes: bytes
    mime_type: str
