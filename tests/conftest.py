"""测试配置文件。

提供测试所需的fixtures和配置：用 Pillow 现场生成的测试图片，
以及基于 httpx.MockTransport 的外部服务模拟。
"""

import tempfile
from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from PIL import Image, ImageDraw

from py_image_toolkit_mcp.config import reset_config


def _encode(img: Image.Image, format_name: str, **params) -> bytes:
    buffer = BytesIO()
    img.save(buffer, format_name, **params)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch):
    """每个测试使用不含真实密钥的全新配置"""
    for name in (
        "ARK_API_KEY",
        "REMOVE_BG_API_KEY",
        "PIT_REMOVE_BG_ENDPOINT",
        "PIT_ARK_BASE_URL",
        "PIT_HTTP_TIMEOUT",
        "PIT_DEFAULT_QUALITY",
        "PIT_MAX_FILE_SIZE_MB",
        "PIT_CREDENTIAL_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir():
    """临时目录fixture"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def transparent_png_bytes() -> bytes:
    """带半透明圆形和完全透明背景的 PNG"""
    img = Image.new("RGBA", (120, 80), color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    for i in range(4):
        draw.ellipse(
            [i * 20, i * 10, i * 20 + 40, i * 10 + 40],
            fill=(255 - i * 40, 80 + i * 30, i * 50, 120 + i * 30),
        )
    return _encode(img, "PNG")


@pytest.fixture
def opaque_png_bytes() -> bytes:
    """不带透明通道的 PNG"""
    img = Image.new("RGB", (64, 48), color="red")
    return _encode(img, "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """带色块的 JPEG"""
    img = Image.new("RGB", (200, 150), color="white")
    draw = ImageDraw.Draw(img)
    for i in range(30):
        x, y = (i * 13) % 200, (i * 7) % 150
        draw.rectangle([x, y, x + 30, y + 20], fill=(i * 8 % 256, i * 5 % 256, 128))
    return _encode(img, "JPEG", quality=95)


@pytest.fixture
def webp_bytes() -> bytes:
    """带透明通道的 WEBP"""
    img = Image.new("RGBA", (50, 40), color=(0, 128, 255, 128))
    return _encode(img, "WEBP", lossless=True)


@pytest.fixture
def rotated_jpeg_bytes() -> bytes:
    """EXIF 方向为 6（顺时针旋转 90 度）的 JPEG，原始像素 80x40"""
    img = Image.new("RGB", (80, 40), color="green")
    exif = Image.Exif()
    exif[0x0112] = 6
    return _encode(img, "JPEG", exif=exif.tobytes())


@pytest.fixture
def corrupt_bytes() -> bytes:
    """无法解码的数据"""
    return b"definitely not an image \x00\x01\x02"


@pytest.fixture
def write_image(temp_dir: Path) -> Callable[[str, bytes], Path]:
    """把字节写入临时目录并返回路径"""

    def _write(name: str, data: bytes) -> Path:
        path = temp_dir / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
async def mock_http_client():
    """根据处理函数创建使用 MockTransport 的 httpx.AsyncClient"""
    clients: list[httpx.AsyncClient] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _factory

    for client in clients:
        await client.aclose()
