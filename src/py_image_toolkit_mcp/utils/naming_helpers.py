"""文件命名工具模块。

提供统一的下载文件名策略和队列条目 ID 生成。
"""

import itertools
import time
import uuid
from pathlib import Path

from ..models.constants import get_extension


class FileNamingStrategy:
    """文件命名策略类"""

    COMPRESSED_SUFFIX = "-compressed"
    NO_BACKGROUND_SUFFIX = "-no-bg"
    FALLBACK_COMPRESSED_NAME = "compressed-image"

    @staticmethod
    def strip_extension(filename: str) -> str:
        """去掉最后一个扩展名，保留目录之外的文件名部分"""
        name = Path(filename).name
        stem, dot, _ = name.rpartition(".")
        return stem if dot and stem else name

    @classmethod
    def compressed_name(cls, filename: str | None, format_name: str) -> str:
        """生成压缩结果的下载文件名：<原文件名>-compressed.<扩展名>"""
        ext = get_extension(format_name)
        if not filename:
            return f"{cls.FALLBACK_COMPRESSED_NAME}.{ext}"
        return f"{cls.strip_extension(filename)}{cls.COMPRESSED_SUFFIX}.{ext}"

    @classmethod
    def no_background_name(cls, filename: str) -> str:
        """生成去背景结果的下载文件名（结果固定为 PNG）"""
        return f"{cls.strip_extension(filename)}{cls.NO_BACKGROUND_SUFFIX}.png"

    @staticmethod
    def generated_image_name(image_id: str) -> str:
        """生成 AI 图像的下载文件名"""
        return f"ai-image-{image_id}.png"


class ItemIdGenerator:
    """队列条目 ID 生成器

    ID 由毫秒时间戳、单调序号和随机后缀组成，在同一生成器内唯一且按生成顺序可比较。
    """

    def __init__(self):
        self._counter = itertools.count(1)

    def next_id(self) -> str:
        return f"{int(time.time() * 1000)}-{next(self._counter):06d}-{uuid.uuid4().hex[:8]}"
