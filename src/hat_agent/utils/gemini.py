"""Gemini generateContent REST 호출 헬퍼."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from hat_agent.config import get_settings
from hat_agent.errors import UpstreamRejected, UpstreamUnavailable
from hat_agent.utils.http_client import create_gemini_client

logger = logging.getLogger(__name__)

# 업스트림 에러 본문은 로그/응답에 이 길이까지만 포함
_MAX_ERROR_TEXT = 2000


def inline_part(data: bytes, mime_type: str) -> dict[str, Any]:
    return {
        "inlineData": {
            "mimeType": mime_type,
            "data": base64.b64encode(data).decode("utf-8"),
        }
    }


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


async def generate_content(
    model: str,
    parts: list[dict[str, Any]],
    generation_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """단일 generateContent 요청을 보내고 JSON 응답을 반환합니다.

    재시도하지 않습니다. 타임아웃은 settings.upstream_timeout.

    Raises:
        UpstreamUnavailable: API 키 미설정, 네트워크 오류, 타임아웃
        UpstreamRejected: 2xx가 아닌 응답
    """
    settings = get_settings()
    if not settings.gemini_api_key:
        raise UpstreamUnavailable.missing_credential()

    body: dict[str, Any] = {"contents": [{"parts": parts}]}
    if generation_config:
        body["generationConfig"] = generation_config

    try:
        async with create_gemini_client() as client:
            response = await client.post(f"/models/{model}:generateContent", json=body)
    except httpx.HTTPError as exc:
        logger.error("Gemini request failed (%s): %s", model, type(exc).__name__)
        raise UpstreamUnavailable(f"Gemini request failed: {type(exc).__name__}") from exc

    if not response.is_success:
        err_text = response.text[:_MAX_ERROR_TEXT]
        logger.error("Gemini API error (%d): %s", response.status_code, err_text)
        raise UpstreamRejected(response.status_code, err_text)

    return response.json()


def _first_candidate_parts(result: Any) -> list[dict[str, Any]]:
    candidates = result.get("candidates") if isinstance(result, dict) else None
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]


def extract_text(result: Any) -> str:
    """첫 번째 후보의 텍스트 파트를 모두 이어 붙여 반환합니다."""
    return "".join(
        part["text"] for part in _first_candidate_parts(result) if isinstance(part.get("text"), str)
    )


def find_inline_image(result: Any) -> tuple[bytes, str] | None:
    """첫 번째 inlineData 이미지 파트를 (bytes, mime_type)으로 반환합니다."""
    for part in _first_candidate_parts(result):
        inline = part.get("inlineData") or part.get("inline_data")
        if not isinstance(inline, dict) or not inline.get("data"):
            continue
        try:
            data = base64.b64decode(inline["data"])
        except (binascii.Error, TypeError):
            logger.warning("Skipping inline part with undecodable data")
            continue
        mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
        return data, mime
    return None
