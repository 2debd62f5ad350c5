"""공통 픽스처 - 실제 API 호출 없이 Gemini / 모자 원본 서버를 흉내냅니다."""
import io
import json
from functools import partial

import httpx
import pytest
from PIL import Image

from hat_agent.config import get_settings
from hat_agent.utils import http_client
from hat_agent.utils.asset_cache import reset_overlay_cache


def make_png(size=(40, 20), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(size=(800, 600), color=(200, 180, 160)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def text_response(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeUpstream:
    """MockTransport 기반 가짜 서버. 받은 요청을 기록합니다."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(200, json={})

    def respond_json(self, payload: dict, status: int = 200) -> None:
        self.handler = lambda request: httpx.Response(status, json=payload)

    def respond_text(self, text: str, status: int = 200, content_type: str = "text/plain") -> None:
        self.handler = lambda request: httpx.Response(
            status, content=text.encode(), headers={"content-type": content_type}
        )

    def respond_bytes(self, data: bytes, content_type: str = "image/png") -> None:
        self.handler = lambda request: httpx.Response(
            200, content=data, headers={"content-type": content_type}
        )

    def fail_with(self, exc: Exception) -> None:
        def _raise(request):
            raise exc

        self.handler = _raise

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._dispatch)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("HAT_PATH", "")
    monkeypatch.setenv("HAT_URL", "https://assets.test/hat.png")
    monkeypatch.setenv("SSL_VERIFY", "true")
    monkeypatch.setenv("CA_BUNDLE_PATH", "")
    get_settings.cache_clear()
    reset_overlay_cache()
    yield
    get_settings.cache_clear()
    reset_overlay_cache()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    return "test-key"


@pytest.fixture
def gemini(monkeypatch):
    fake = FakeUpstream()
    monkeypatch.setattr(
        "hat_agent.utils.gemini.create_gemini_client",
        lambda: http_client.create_gemini_client(transport=fake.transport),
    )
    return fake


@pytest.fixture
def asset_server(monkeypatch):
    fake = FakeUpstream()
    fake.respond_bytes(make_png())
    monkeypatch.setattr(
        "hat_agent.utils.asset_cache.create_asset_client",
        partial(http_client.create_asset_client, transport=fake.transport),
    )
    return fake
