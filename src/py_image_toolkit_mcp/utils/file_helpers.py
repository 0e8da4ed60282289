"""工具函数模块。

提供图片文件读取、MIME 识别和 data URI 转换等实用函数。
"""

import base64
import mimetypes
from io import BytesIO
from pathlib import Path

from PIL import Image

from ..models.constants import get_mime_type, is_image_data_url
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter


logger = get_logger()


def detect_image_mime_type(data: bytes) -> str | None:
    """通过 Pillow 识别图片数据的 MIME 类型

    Args:
        data: 图片字节

    Returns:
        str | None: MIME 类型，如 'image/jpeg'，无法识别时返回 None
    """
    try:
        with Image.open(BytesIO(data)) as img:
            if img.format:
                return get_mime_type(img.format)
            return None
    except Exception as e:
        logger.debug(MessageFormatter.operation_failed("识别 MIME 类型", "内存数据", e))
        return None


def guess_mime_type(filename: str, data: bytes | None = None) -> str:
    """优先根据内容识别 MIME 类型，其次根据扩展名"""
    if data is not None and (mime := detect_image_mime_type(data)):
        return mime
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def read_image_file(file_path: str | Path) -> tuple[str, bytes, str]:
    """读取图片文件

    Returns:
        tuple: (文件名, 字节, MIME 类型)

    Raises:
        FileNotFoundError: 文件不存在
    """
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(MessageFormatter.file_not_found(path))
    data = path.read_bytes()
    return path.name, data, guess_mime_type(path.name, data)


def to_data_url(data: bytes, mime_type: str) -> str:
    """把图片字节编码为 data URI"""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def image_file_to_data_url(file_path: str | Path) -> str:
    """读取图片文件并编码为 data URI"""
    _, data, mime_type = read_image_file(file_path)
    return to_data_url(data, mime_type)


def decode_data_url(value: str) -> tuple[bytes, str]:
    """解码 base64 图片 data URI

    Returns:
        tuple: (字节, MIME 类型)

    Raises:
        ValueError: 不是合法的 base64 data URI
    """
    header, sep, payload = value.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError(MessageFormatter.INVALID_DATA_URL)
    mime_type = header[len("data:") : -len(";base64")] or "application/octet-stream"
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except ValueError as e:
        raise ValueError(MessageFormatter.INVALID_DATA_URL) from e
