"""外部服务客户端包。

remove.bg 去除背景、火山引擎 Ark 图片识别与文生图。
"""

from .ark import (
    ArkClient,
    extract_content_blocks,
    normalize_images,
    should_retry_with_base64,
)
from .base import BaseProvider, extract_error_message, parse_body
from .remove_bg import RemovalResult, RemoveBgClient, read_credit_headers


__all__ = [
    "ArkClient",
    "BaseProvider",
    "RemovalResult",
    "RemoveBgClient",
    "extract_content_blocks",
    "extract_error_message",
    "normalize_images",
    "parse_body",
    "read_credit_headers",
    "should_retry_with_base64",
]
