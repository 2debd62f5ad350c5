"""
에러 분류 체계

모든 예외는 HTTP 상태 코드와 JSON 응답 형식 {error, detail}을 함께 가집니다.
위치 추정 실패는 여기까지 올라오지 않고 fallback으로 흡수됩니다.
"""
from __future__ import annotations

from typing import Any


class HatAgentError(Exception):
    """모든 애플리케이션 예외의 기반 클래스."""

    code: str = "internal_error"
    status_code: int = 500

    def __init__(self, detail: str = "", **extra: Any) -> None:
        super().__init__(detail or self.code)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code}
        if self.detail:
            body["detail"] = self.detail
        body.update(self.extra)
        return body


class ValidationError(HatAgentError):
    """요청 필드 누락·형식 오류 (항상 클라이언트 책임)."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, detail: str = "") -> None:
        self.code = message
        super().__init__(detail)


class InvalidImage(HatAgentError):
    """디코딩할 수 없거나 크기가 0인 이미지."""

    code = "invalid_image"
    status_code = 400


class UpstreamUnavailable(HatAgentError):
    """API 키 미설정 또는 네트워크 실패. 자동 재시도하지 않습니다."""

    code = "upstream_unavailable"
    status_code = 502

    @classmethod
    def missing_credential(cls) -> UpstreamUnavailable:
        err = cls("GEMINI_API_KEY is not configured")
        err.status_code = 500
        return err


class UpstreamRejected(HatAgentError):
    """Gemini가 2xx가 아닌 상태를 반환."""

    code = "upstream_rejected"
    status_code = 502

    def __init__(self, upstream_status: int, detail: str = "") -> None:
        super().__init__(
            f"Gemini API Error: {upstream_status} {detail}".strip(),
            upstream_status=upstream_status,
        )
        self.upstream_status = upstream_status


class NoImageProduced(HatAgentError):
    """응답은 정상이지만 이미지 파트가 없음."""

    code = "no_image_generated"
    status_code = 500

    def __init__(self, raw_response: Any = None) -> None:
        super().__init__("No image generated in response", raw_response=raw_response)
        self.raw_response = raw_response


class AssetUnavailable(HatAgentError):
    """모자 이미지 가져오기 실패. 캐시되어 재현됩니다."""

    code = "hat_unavailable"
    status_code = 500
