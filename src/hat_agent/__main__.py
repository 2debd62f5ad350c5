"""
사용법:
  uv run python -m hat_agent serve
  uv run python -m hat_agent compose photo.jpg -o out.png
  uv run python -m hat_agent edit photo.jpg -o out.png [--two-image]

serve: HTTP 서버 실행 / compose: 로컬 합성 / edit: Gemini 재렌더링
"""
import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from hat_agent.utils.http_client import configure_ssl_globally

# SSL 전역 패치 - 반드시 다른 import보다 먼저 실행
configure_ssl_globally()

import uvicorn  # noqa: E402

from hat_agent.agents.editor import edit_composite  # noqa: E402
from hat_agent.config import get_settings  # noqa: E402
from hat_agent.errors import HatAgentError  # noqa: E402
from hat_agent.models.composite import CompositeRequest  # noqa: E402
from hat_agent.pipeline import compose_hat  # noqa: E402
from hat_agent.utils.asset_cache import get_overlay_asset  # noqa: E402
from hat_agent.utils.image_utils import decode_image  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("hat_agent")


def _guess_mime(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or "image/jpeg"


async def _compose(photo_path: Path, output: Path) -> None:
    data = photo_path.read_bytes()
    photo = decode_image(data)
    result = await compose_hat(
        CompositeRequest(
            photo_bytes=data,
            mime_type=_guess_mime(photo_path),
            width=photo.width,
            height=photo.height,
        ),
        photo=photo,
    )
    output.write_bytes(result.png_bytes)
    print(f"\n✓ {result.status}")
    print(f"💾 저장됨: {output}")


async def _edit(photo_path: Path, output: Path, two_image: bool, prompt: str | None) -> None:
    overlay = await get_overlay_asset() if two_image else None
    result = await edit_composite(
        photo_path.read_bytes(),
        _guess_mime(photo_path),
        instruction_text=prompt,
        overlay_bytes=overlay.data if overlay else None,
        overlay_mime_type=overlay.mime_type if overlay else "image/png",
    )
    output.write_bytes(result.image_bytes)
    print(f"\n💾 저장됨: {output} ({result.mime_type})")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="hat_agent", description="MPGA hat generator")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="HTTP 서버 실행")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    compose = sub.add_parser("compose", help="로컬 합성 (위치 추정 + Pillow)")
    compose.add_argument("photo", type=Path)
    compose.add_argument("-o", "--output", type=Path, default=Path("output/mpga.png"))

    edit = sub.add_parser("edit", help="Gemini 이미지 모델로 재렌더링")
    edit.add_argument("photo", type=Path)
    edit.add_argument("-o", "--output", type=Path, default=Path("output/mpga_edit.png"))
    edit.add_argument("--two-image", action="store_true", help="모자 이미지를 함께 전송")
    edit.add_argument("--prompt", default=None)

    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set: editing disabled, placement uses fallback")
        uvicorn.run(
            "hat_agent.api:app",
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0

    args.output.parent.mkdir(parents=True, exist_ok=True)
    try:
        if args.command == "compose":
            asyncio.run(_compose(args.photo, args.output))
        else:
            asyncio.run(_edit(args.photo, args.output, args.two_image, args.prompt))
    except HatAgentError as exc:
        print(f"\n❌ {exc.code}: {exc.detail}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
