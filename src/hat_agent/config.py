from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Gemini API
    # 비워두면 편집 비활성화 + 위치 추정은 항상 fallback
    gemini_api_key: str = ""
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    # 머리 위치 추정 (Vision → JSON 텍스트)
    gemini_model: str = "gemini-2.5-flash"
    # 합성 이미지 재렌더링 (이미지 출력)
    gemini_image_model: str = "gemini-2.5-flash-image-preview"

    # Overlay asset (모자 PNG)
    hat_url: str = (
        "https://raw.githubusercontent.com/mpga-hat/assets/main/public/assets/hat.png"
    )
    # 로컬 파일 경로가 지정되면 URL 대신 사용
    hat_path: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    # 업로드 허용 크기 (bytes)
    max_upload_bytes: int = 50 * 1024 * 1024

    # Timeouts (seconds)
    upstream_timeout: float = 60.0
    asset_timeout: float = 15.0

    # Placement tuning - 경험적으로 맞춘 값 (물리적 근거 없음)
    # 모자 높이의 80%를 기준점 위로, 20%는 아래로 (챙이 이마선 근처에 오도록)
    hat_anchor_ratio: float = 0.8
    fallback_center_x_ratio: float = 0.5
    fallback_center_y_ratio: float = 0.18
    fallback_width_ratio: float = 0.6
    fallback_confidence: float = 0.2

    # SSL / Proxy Configuration
    # 기업 프록시 환경에서 SSL 검증 오류 발생 시 false로 설정
    ssl_verify: bool = True
    # 커스텀 CA 인증서 경로 (기업 CA 번들 경로, 비워두면 certifi 기본값 사용)
    ca_bundle_path: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
