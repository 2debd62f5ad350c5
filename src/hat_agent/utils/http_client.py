"""
공유 httpx 클라이언트 팩토리

기업 프록시 환경의 SSL 인증서 오류를 처리합니다.
SSL_VERIFY=false 또는 CA_BUNDLE_PATH 설정으로 동작을 제어합니다.
"""
import os
import ssl
import warnings

import certifi
import httpx

from hat_agent.config import get_settings


def configure_ssl_globally() -> None:
    """SSL 설정을 전역으로 적용합니다.

    uvicorn 워커 등 자체 httpx 클라이언트를 만드는 코드에도
    SSL 설정이 적용되도록 Python ssl 모듈을 패치합니다.
    서버 시작 시 가장 먼저 호출해야 합니다.
    """
    settings = get_settings()

    if not settings.ssl_verify:
        warnings.warn(
            "SSL verification disabled globally (SSL_VERIFY=false). "
            "This affects ALL HTTPS connections including the Gemini API. "
            "Use only in development / corporate proxy environments.",
            stacklevel=2,
        )
        # httpx는 ssl.create_default_context()를 직접 호출하므로 이 함수를 패치
        _original_create_default_context = ssl.create_default_context

        def _unverified_create_default_context(*args, **kwargs):
            ctx = _original_create_default_context(*args, **kwargs)
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            return ctx

        ssl.create_default_context = _unverified_create_default_context  # type: ignore[assignment]

        # http.client (urllib 계열) 도 커버
        ssl._create_default_https_context = ssl._create_unverified_context  # noqa: SLF001
        os.environ.setdefault("PYTHONHTTPSVERIFY", "0")

    elif settings.ca_bundle_path:
        # 기업 CA 번들을 환경변수로 지정 → httpx가 인식
        os.environ["SSL_CERT_FILE"] = settings.ca_bundle_path


def _build_ssl_context() -> ssl.SSLContext | bool | str:
    """환경설정에 따라 SSL 컨텍스트를 반환합니다.

    Returns:
        - ssl.SSLContext: 커스텀 CA 번들 사용 시
        - str (certifi 경로): 기본 동작
        - False: SSL 검증 완전 비활성화 (비권장, 프록시 환경 임시 우회용)
    """
    settings = get_settings()

    if not settings.ssl_verify:
        return False

    if settings.ca_bundle_path:
        # 기업 CA 인증서를 certifi 기본 번들과 합쳐서 사용
        ctx = ssl.create_default_context(cafile=certifi.where())
        ctx.load_verify_locations(cafile=settings.ca_bundle_path)
        return ctx

    # 기본값: certifi CA 번들 (시스템 인증서보다 최신 유지)
    return certifi.where()


def create_gemini_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Gemini REST API용 AsyncClient를 생성합니다.

    API 키는 URL 쿼리가 아닌 헤더로 전달합니다 (에러 로그에 키가 남지 않도록).
    """
    settings = get_settings()
    return httpx.AsyncClient(
        base_url=settings.gemini_api_base,
        headers={"x-goog-api-key": settings.gemini_api_key},
        timeout=settings.upstream_timeout,
        verify=_build_ssl_context(),
        transport=transport,
    )


def create_asset_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """모자 이미지 원본 서버용 AsyncClient를 생성합니다."""
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=settings.asset_timeout,
        follow_redirects=True,
        verify=_build_ssl_context(),
        transport=transport,
    )
