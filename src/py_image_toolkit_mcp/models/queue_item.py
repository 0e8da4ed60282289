"""队列条目模型。

每个条目的处理状态是一个带标签的变体：Pending、Processing、Succeeded、Failed。
结果数据只存在于 Succeeded，错误信息只存在于 Failed，两者不会同时出现。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from ..utils.cleanup_helpers import ImageHandle


class QueueStatus(str, Enum):
    """条目状态枚举"""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def label(self) -> str:
        """界面展示用的中文标签"""
        return STATUS_LABELS[self]


STATUS_LABELS: dict[QueueStatus, str] = {
    QueueStatus.PENDING: "待处理",
    QueueStatus.PROCESSING: "处理中",
    QueueStatus.SUCCESS: "完成",
    QueueStatus.ERROR: "失败",
}

# 合法的状态迁移；Success 只能通过移除后重新添加来重新处理
ALLOWED_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.PENDING: frozenset({QueueStatus.PROCESSING}),
    QueueStatus.PROCESSING: frozenset({QueueStatus.SUCCESS, QueueStatus.ERROR}),
    QueueStatus.ERROR: frozenset({QueueStatus.PROCESSING}),
    QueueStatus.SUCCESS: frozenset(),
}

# 批量处理时会被选入工作集的状态
ELIGIBLE_STATUSES: frozenset[QueueStatus] = frozenset(
    {QueueStatus.PENDING, QueueStatus.ERROR}
)


class CreditInfo(BaseModel):
    """remove.bg 返回的积分信息，仅用于展示"""

    remaining: str | None = Field(None, description="剩余积分")
    charged: str | None = Field(None, description="本次消耗积分")
    credit_type: str | None = Field(None, description="积分类型")

    def is_empty(self) -> bool:
        return self.remaining is None and self.charged is None and self.credit_type is None


@dataclass(frozen=True)
class Pending:
    status: ClassVar[QueueStatus] = QueueStatus.PENDING


@dataclass(frozen=True)
class Processing:
    status: ClassVar[QueueStatus] = QueueStatus.PROCESSING


@dataclass(frozen=True)
class Succeeded:
    status: ClassVar[QueueStatus] = QueueStatus.SUCCESS

    result: ImageHandle


@dataclass(frozen=True)
class Failed:
    status: ClassVar[QueueStatus] = QueueStatus.ERROR

    message: str
    code: str | None = None
    details: Any = field(default=None, compare=False)


ItemState = Pending | Processing | Succeeded | Failed


def can_transition(current: QueueStatus, target: QueueStatus) -> bool:
    """检查状态迁移是否合法"""
    return target in ALLOWED_TRANSITIONS[current]


class QueueItem:
    """等待去除背景的单张图片

    条目独占源图句柄（预览）和成功后的结果句柄，由队列负责释放。
    """

    def __init__(self, item_id: str, filename: str, source: ImageHandle):
        self.id = item_id
        self.filename = filename
        self.source = source
        self.state: ItemState = Pending()
        self.credits = CreditInfo()

    @property
    def status(self) -> QueueStatus:
        return self.state.status

    @property
    def source_bytes(self) -> bytes:
        return self.source.data

    @property
    def mime_type(self) -> str | None:
        return self.source.mime_type

    @property
    def result(self) -> ImageHandle | None:
        match self.state:
            case Succeeded(result=result):
                return result
            case _:
                return None

    @property
    def result_bytes(self) -> bytes | None:
        result = self.result
        return result.data if result is not None else None

    @property
    def error_message(self) -> str | None:
        match self.state:
            case Failed(message=message):
                return message
            case _:
                return None

    @property
    def is_eligible(self) -> bool:
        """是否会被下一次批量处理选中"""
        return self.status in ELIGIBLE_STATUSES

    def owned_handles(self) -> list[ImageHandle]:
        """条目当前持有的全部句柄"""
        handles = [self.source]
        if (result := self.result) is not None:
            handles.append(result)
        return handles

    def to_dict(self) -> dict[str, Any]:
        """序列化为展示用字典（不包含图片数据）"""
        data: dict[str, Any] = {
            "id": self.id,
            "filename": self.filename,
            "size": self.source.size,
            "status": self.status.value,
            "status_label": self.status.label,
            "error": self.error_message,
            "result_size": self.result.size if self.result is not None else None,
        }
        if isinstance(self.state, Failed) and self.state.code:
            data["error_code"] = self.state.code
        data.update(
            credits_remaining=self.credits.remaining,
            credits_charged=self.credits.charged,
            credit_type=self.credits.credit_type,
        )
        return data

    def __repr__(self) -> str:
        return f"QueueItem(id={self.id!r}, filename={self.filename!r}, status={self.status.value})"
