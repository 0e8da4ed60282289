"""Python 图像工具箱。

图片压缩、批量去除背景、图片识别与文生图，以 MCP 工具的形式提供。
"""

__version__ = "0.1.0"
__author__ = "crper"
__description__ = "图像工具箱：压缩、批量去除背景、识别与生成"

# 核心功能导出
from .compressor import ImageCompressor
from .engine.batch import BackgroundRemovalQueue
from .models.compression import CompressionRequest, CompressionResult
from .providers.ark import ArkClient
from .providers.remove_bg import RemoveBgClient


__all__ = [
    "ArkClient",
    "BackgroundRemovalQueue",
    "CompressionRequest",
    "CompressionResult",
    "ImageCompressor",
    "RemoveBgClient",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
