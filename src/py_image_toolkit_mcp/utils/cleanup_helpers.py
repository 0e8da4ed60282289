"""资源清理工具模块。

队列条目持有的预览图和结果图都以句柄形式登记，移除条目或拆除队列时
通过唯一的清理路径立即释放，不依赖垃圾回收时机。
"""

import itertools
from io import BytesIO
from typing import Any

from PIL import Image

from .logging_helpers import get_logger


logger = get_logger()


class ImageHandle:
    """图片资源句柄

    持有原始字节和按需解码的 Pillow 预览图，release() 只生效一次。
    """

    _ids = itertools.count(1)

    def __init__(
        self,
        data: bytes,
        mime_type: str | None = None,
        registry: "HandleRegistry | None" = None,
    ):
        self.handle_id = next(self._ids)
        self.mime_type = mime_type
        self._data: bytes | None = data
        self._preview: Image.Image | None = None
        self._registry = registry
        if registry is not None:
            registry.register(self)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise RuntimeError(f"图片句柄 #{self.handle_id} 已释放")
        return self._data

    @property
    def size(self) -> int:
        return len(self._data) if self._data is not None else 0

    def preview(self) -> Image.Image:
        """返回解码后的预览图（首次访问时解码）"""
        if self._preview is None:
            image = Image.open(BytesIO(self.data))
            image.load()
            self._preview = image
        return self._preview

    def release(self) -> bool:
        """释放句柄，返回本次调用是否真正执行了释放"""
        if self._data is None:
            return False

        if self._preview is not None:
            self._preview.close()
            self._preview = None
        self._data = None

        if self._registry is not None:
            self._registry.unregister(self)
        logger.debug(f"已释放图片句柄 #{self.handle_id}")
        return True

    def __repr__(self) -> str:
        state = "released" if self.released else f"{self.size} bytes"
        return f"ImageHandle(#{self.handle_id}, {self.mime_type}, {state})"


class HandleRegistry:
    """图片句柄登记表

    记录所有存活的句柄，用于拆除时统一释放以及在测试中检查泄漏。
    """

    def __init__(self):
        self._live: dict[int, ImageHandle] = {}

    def register(self, handle: ImageHandle) -> None:
        """登记句柄"""
        self._live[handle.handle_id] = handle

    def unregister(self, handle: ImageHandle) -> None:
        """注销句柄"""
        self._live.pop(handle.handle_id, None)

    def create(self, data: bytes, mime_type: str | None = None) -> ImageHandle:
        """创建并登记一个新句柄"""
        return ImageHandle(data, mime_type, registry=self)

    @property
    def live_count(self) -> int:
        return len(self._live)

    def release_all(self) -> int:
        """释放所有存活的句柄"""
        released_count = 0
        for handle in list(self._live.values()):
            if handle.release():
                released_count += 1
        if released_count:
            logger.debug(f"拆除时释放了 {released_count} 个图片句柄")
        return released_count

    def __enter__(self):
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """上下文管理器退出时释放所有句柄"""
        del exc_type, exc_val, exc_tb
        self.release_all()
