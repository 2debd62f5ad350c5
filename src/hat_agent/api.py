"""
HTTP 경계 (FastAPI)

  GET  /asset       모자 이미지 (장기 캐시 헤더)
  POST /placement   multipart: image, width, height, mimeType? → 배치 정보 JSON
  POST /edit        JSON: 한 장 모드 {image, mimeType?, prompt?}
                          두 장 모드 {photo, hat?, placement?}
  POST /composite   multipart: image, mimeType? → 합성 PNG
  GET  /health

기존 클라이언트 경로(/assets/hat.png, /api/hat-placement, /api/generate)도 유지합니다.
"""
from __future__ import annotations

import base64
import logging
import math

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from hat_agent.agents.editor import edit_composite
from hat_agent.agents.placement_estimator import estimate_placement
from hat_agent.config import get_settings
from hat_agent.errors import HatAgentError, ValidationError
from hat_agent.models.composite import CompositeRequest
from hat_agent.models.edit import PlacementHint
from hat_agent.pipeline import compose_hat
from hat_agent.utils.asset_cache import CACHE_CONTROL, get_overlay_asset
from hat_agent.utils.image_utils import decode_base64_image, decode_image

logger = logging.getLogger(__name__)

DEFAULT_MIME = "image/jpeg"

app = FastAPI(
    title="MPGA Hat Generator API",
    description="Places a hat on the person in a photo, locally or via an image model.",
    version="1.0.0",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class EditBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    prompt: str | None = None
    photo: str | None = None
    hat: str | None = None
    placement: PlacementHint | None = None


@app.exception_handler(HatAgentError)
async def hat_agent_error_handler(request: Request, exc: HatAgentError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "invalid request", "detail": fields or "malformed body"},
    )


def _parse_dimension(value: str | None) -> float:
    try:
        number = float(value) if value is not None else math.nan
    except ValueError:
        number = math.nan
    if not math.isfinite(number) or number <= 0:
        raise ValidationError("width/height are required")
    return number


async def _read_upload(image: UploadFile | None) -> bytes:
    if image is None:
        raise ValidationError("image is required")
    data = await image.read()
    if not data:
        raise ValidationError("image is required")
    if len(data) > get_settings().max_upload_bytes:
        raise ValidationError("image is too large")
    return data


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "model_enabled": bool(get_settings().gemini_api_key)}


@app.get("/asset")
@app.get("/assets/hat.png", include_in_schema=False)
async def get_asset() -> Response:
    asset = await get_overlay_asset()
    return Response(
        content=asset.data,
        media_type=asset.mime_type,
        headers={"Cache-Control": CACHE_CONTROL},
    )


@app.post("/placement")
@app.post("/api/hat-placement", include_in_schema=False)
async def post_placement(
    image: UploadFile | None = File(None),
    width: str | None = Form(None),
    height: str | None = Form(None),
    mime_type: str | None = Form(None, alias="mimeType"),
) -> dict:
    data = await _read_upload(image)
    w = _parse_dimension(width)
    h = _parse_dimension(height)
    mime = mime_type or image.content_type or DEFAULT_MIME

    placement = await estimate_placement(data, mime, w, h)
    return placement.to_response()


@app.post("/edit")
@app.post("/api/generate", include_in_schema=False)
async def post_edit(body: EditBody) -> dict:
    if body.photo:
        photo, data_mime = decode_base64_image(body.photo, "photo")
        if body.hat:
            hat, hat_mime = decode_base64_image(body.hat, "hat")
        else:
            asset = await get_overlay_asset()
            hat, hat_mime = asset.data, asset.mime_type
        result = await edit_composite(
            photo,
            body.mime_type or data_mime or DEFAULT_MIME,
            instruction_text=body.prompt,
            overlay_bytes=hat,
            placement_hint=body.placement,
            overlay_mime_type=hat_mime or "image/png",
        )
    elif body.image:
        photo, data_mime = decode_base64_image(body.image, "image")
        result = await edit_composite(
            photo,
            body.mime_type or data_mime or DEFAULT_MIME,
            instruction_text=body.prompt,
            placement_hint=body.placement,
        )
    else:
        raise ValidationError("image is required")

    return {
        "success": result.success,
        "image": base64.b64encode(result.image_bytes).decode("utf-8"),
        "mimeType": result.mime_type,
    }


@app.post("/composite")
async def post_composite(
    image: UploadFile | None = File(None),
    mime_type: str | None = Form(None, alias="mimeType"),
) -> Response:
    data = await _read_upload(image)
    photo = decode_image(data)
    request = CompositeRequest(
        photo_bytes=data,
        mime_type=mime_type or image.content_type or DEFAULT_MIME,
        width=photo.width,
        height=photo.height,
    )
    result = await compose_hat(request, photo=photo)

    headers = {"X-Composite-Status": result.status}
    if result.placement is not None:
        headers["X-Placement-Source"] = result.placement.source.value
        headers["X-Placement-Confidence"] = f"{result.placement.confidence:.2f}"
    return Response(content=result.png_bytes, media_type="image/png", headers=headers)
