from pydantic import BaseModel, ConfigDict, Field


class OverlayAsset(BaseModel):
    """프로세스 당 하나만 존재하는 모자 이미지."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    mime_type: str = "image/png"


class CompositeRequest(BaseModel):
    """한 요청 동안만 유지되는 입력 묶음. 저장하지 않습니다."""

    photo_bytes: bytes = Field(min_length=1)
    mime_type: str = "image/jpeg"
    width: float = Field(gt=0, allow_inf_nan=False)
    height: float = Field(gt=0, allow_inf_nan=False)
