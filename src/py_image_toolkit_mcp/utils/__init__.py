"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

# 从清理助手模块导入
from .cleanup_helpers import HandleRegistry, ImageHandle

# 从文件助手模块导入
from .file_helpers import (
    decode_data_url,
    detect_image_mime_type,
    guess_mime_type,
    image_file_to_data_url,
    is_image_data_url,
    read_image_file,
    to_data_url,
)

# 从日志工具模块导入
from .logging_helpers import configure_logging, get_logger

# 从消息格式化模块导入
from .message_formatter import MessageFormatter

# 从命名助手模块导入
from .naming_helpers import FileNamingStrategy, ItemIdGenerator


__all__ = [
    "FileNamingStrategy",
    "HandleRegistry",
    "ImageHandle",
    "ItemIdGenerator",
    "MessageFormatter",
    "configure_logging",
    "decode_data_url",
    "detect_image_mime_type",
    "get_logger",
    "guess_mime_type",
    "image_file_to_data_url",
    "is_image_data_url",
    "read_image_file",
    "to_data_url",
]
