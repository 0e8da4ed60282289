"""核心模块包。

本地图片压缩流水线：格式策略和压缩引擎。
"""

from .compression_engine import compress
from .formats import FormatProcessor, get_save_parameters, to_encoder_quality


__all__ = [
    "FormatProcessor",
    "compress",
    "get_save_parameters",
    "to_encoder_quality",
]
