"""数据模型包。

定义压缩、队列、识别和生成相关的数据结构和模型。
"""

from .constants import (
    CreditHeaders,
    ImageFormats,
    QualityDefaults,
    ResponseFormats,
    get_extension,
    get_format_alias,
    get_mime_type,
    supports_transparency,
)
from .compression import BaseResult, CompressionRequest, CompressionResult
from .generation import GeneratedImage, GenerationRequest, GenerationResult
from .queue_item import (
    CreditInfo,
    Failed,
    ItemState,
    Pending,
    Processing,
    QueueItem,
    QueueStatus,
    Succeeded,
)
from .vision import ContentBlock, IdentifyRequest, IdentifyResult


__all__ = [
    # 核心模型
    "BaseResult",
    "CompressionRequest",
    "CompressionResult",
    "ContentBlock",
    # 常量和工具
    "CreditHeaders",
    "CreditInfo",
    "Failed",
    "GeneratedImage",
    "GenerationRequest",
    "GenerationResult",
    "IdentifyRequest",
    "IdentifyResult",
    "ImageFormats",
    # 队列状态
    "ItemState",
    "Pending",
    "Processing",
    "QualityDefaults",
    "QueueItem",
    "QueueStatus",
    "ResponseFormats",
    "Succeeded",
    "get_extension",
    "get_format_alias",
    "get_mime_type",
    "supports_transparency",
]
