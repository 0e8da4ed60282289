"""批量去除背景队列模块。

维护按上传顺序排列的条目，逐个调用外部去背景服务，
跟踪每个条目的状态、结果和积分信息，支持移除和失败后重新处理。
"""

import asyncio
import itertools
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from ..exceptions import (
    EmptyQueueError,
    ExternalServiceError,
    MissingCredentialError,
    NoEligibleItemsError,
    ProviderError,
    QueueStateError,
)
from ..models.queue_item import (
    CreditInfo,
    Failed,
    ItemState,
    Processing,
    QueueItem,
    QueueStatus,
    Succeeded,
    can_transition,
)
from ..providers.remove_bg import RemovalResult, RemoveBgClient
from ..utils.cleanup_helpers import HandleRegistry
from ..utils.file_helpers import guess_mime_type, read_image_file
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import FileNamingStrategy, ItemIdGenerator
from .credentials import CredentialProvider, EnvCredentialProvider
from .executor import SequentialExecutor


logger = get_logger()

# enqueue 接受 (文件名, 字节) 或文件路径
UploadSource = tuple[str, bytes] | str | Path


class BackgroundRemover(Protocol):
    """去背景服务接口"""

    async def remove_background(
        self,
        image: bytes,
        filename: str,
        api_key: str,
        mime_type: str | None = None,
    ) -> RemovalResult: ...


class BackgroundRemovalQueue:
    """批量去除背景队列

    - 插入顺序即处理顺序
    - 每次批量处理只选取调用时处于 待处理 / 失败 的条目
    - 外部服务严格逐个调用，单项失败不影响其他条目
    - 条目移除或队列拆除时立即释放其持有的图片句柄
    """

    def __init__(
        self,
        remover: BackgroundRemover | None = None,
        credential_provider: CredentialProvider | None = None,
        registry: HandleRegistry | None = None,
        id_generator: ItemIdGenerator | None = None,
    ):
        self.remover = remover or RemoveBgClient()
        self.credential_provider = credential_provider or EnvCredentialProvider()
        self.registry = registry or HandleRegistry()
        self.id_generator = id_generator or ItemIdGenerator()

        self._items: list[QueueItem] = []
        self._active_id: str | None = None
        self._processing = False
        self._executor: SequentialExecutor[QueueItem] = SequentialExecutor(
            describe=lambda item: f"{item.filename} [{item.id}]"
        )
        self.last_credit_info: CreditInfo | None = None

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[QueueItem]:
        """条目列表（副本）"""
        return list(self._items)

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active_item(self) -> QueueItem | None:
        if self._active_id is None:
            return None
        return self._find(self._active_id)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self._find(item_id) is not None

    def get(self, item_id: str) -> QueueItem:
        """按 ID 获取条目

        Raises:
            QueueStateError: 条目不存在
        """
        item = self._find(item_id)
        if item is None:
            raise QueueStateError(f"队列中不存在条目: {item_id}")
        return item

    def set_active(self, item_id: str) -> None:
        """切换当前预览的条目"""
        self._active_id = self.get(item_id).id

    def counts(self) -> dict[str, int]:
        """各状态的条目数量"""
        counts = {status.value: 0 for status in QueueStatus}
        for item in self._items:
            counts[item.status.value] += 1
        counts["total"] = len(self._items)
        return counts

    def snapshot(self) -> dict[str, Any]:
        """队列状态快照（不包含图片数据）"""
        return {
            "items": [item.to_dict() for item in self._items],
            "active_id": self._active_id,
            "counts": self.counts(),
            "is_processing": self._processing,
            "last_credit_info": (
                self.last_credit_info.model_dump() if self.last_credit_info else None
            ),
        }

    # ------------------------------------------------------------------
    # 用户操作
    # ------------------------------------------------------------------

    def enqueue(self, files: Iterable[UploadSource]) -> list[QueueItem]:
        """按上传顺序追加条目，全部为待处理状态，不会开始处理

        Args:
            files: (文件名, 字节) 或文件路径

        Returns:
            list[QueueItem]: 新增的条目
        """
        new_items: list[QueueItem] = []
        for source in files:
            if isinstance(source, tuple):
                filename, data = source
                mime_type = guess_mime_type(filename, data)
            else:
                filename, data, mime_type = read_image_file(source)

            handle = self.registry.create(data, mime_type)
            item = QueueItem(self.id_generator.next_id(), filename, handle)
            self._items.append(item)
            new_items.append(item)

        if self._active_id is None and new_items:
            self._active_id = new_items[0].id

        if new_items:
            logger.info(f"已加入 {len(new_items)} 张图片，队列共 {len(self._items)} 张")
        return new_items

    def remove(self, item_id: str) -> QueueItem:
        """移除条目并立即释放其资源，无论当前状态

        正在处理中的条目被移除后，进行中的调用仍会完成，但结果会被丢弃。

        Returns:
            QueueItem: 被移除的条目（句柄已释放）

        Raises:
            QueueStateError: 条目不存在
        """
        item = self.get(item_id)
        self._items.remove(item)
        self._release_item(item)

        if item.status is QueueStatus.PROCESSING:
            logger.warning(f"条目 {item.filename} 正在处理中被移除，结果将被丢弃")

        if self._active_id == item_id:
            self._active_id = self._items[0].id if self._items else None

        logger.debug(f"已移除条目 {item.filename} [{item_id}]")
        return item

    def clear(self) -> None:
        """清空队列，释放所有条目的资源"""
        for item in self._items:
            self._release_item(item)
        self._items.clear()
        self._active_id = None
        logger.debug("队列已清空")

    def close(self) -> None:
        """拆除队列，释放包括进行中调用在内的所有句柄"""
        self.clear()
        self.registry.release_all()

    def __enter__(self):
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        del exc_type, exc_val, exc_tb
        self.close()

    def export_results(self, output_dir: str | Path) -> list[Path]:
        """把成功的结果写入目录，文件名为 <原文件名>-no-bg.png"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        for item in self._items:
            result = item.result
            if result is None:
                continue
            target = _unique_path(output_dir / FileNamingStrategy.no_background_name(item.filename))
            target.write_bytes(result.data)
            written.append(target)

        logger.info(f"已导出 {len(written)} 张去背景结果到 {output_dir}")
        return written

    # ------------------------------------------------------------------
    # 批量处理
    # ------------------------------------------------------------------

    async def run_batch(self, api_key: str | None = None) -> None:
        """逐个处理所有 待处理 / 失败 的条目

        在发起任何网络请求前依次检查密钥、队列和工作集。
        单个条目的失败只体现在该条目的状态上，不会中断批次，也不会汇总报错。

        Args:
            api_key: 本次使用的密钥，优先于密钥提供者

        Raises:
            QueueStateError: 已有批次正在处理
            MissingCredentialError: 没有可用的密钥
            EmptyQueueError: 队列为空
            NoEligibleItemsError: 没有待处理或失败的条目
        """
        if self._processing:
            raise QueueStateError(MessageFormatter.QUEUE_BUSY)

        credential = self._resolve_credential(api_key)
        if not self._items:
            raise EmptyQueueError(MessageFormatter.EMPTY_QUEUE)

        work_set = [item for item in self._items if item.is_eligible]
        if not work_set:
            raise NoEligibleItemsError(MessageFormatter.NO_ELIGIBLE_ITEMS)

        logger.info(f"开始批量去除背景，共 {len(work_set)} 张")
        self._processing = True
        try:
            executed = await self._executor.execute_tasks(
                work_set,
                lambda item: self._process_item(item, credential),
                should_run=self._should_process,
                on_error=self._mark_unexpected_error,
            )
        finally:
            self._processing = False

        counts = self.counts()
        logger.info(
            f"批量处理结束：处理 {executed} 张，"
            f"成功 {counts[QueueStatus.SUCCESS.value]}，失败 {counts[QueueStatus.ERROR.value]}"
        )

    def _resolve_credential(self, api_key: str | None) -> str:
        credential = api_key if api_key and api_key.strip() else None
        if credential is None:
            credential = self.credential_provider.get_credential()
        if not credential or not credential.strip():
            raise MissingCredentialError(MessageFormatter.MISSING_REMOVE_BG_KEY)
        return credential.strip()

    def _should_process(self, item: QueueItem) -> bool:
        """工作集中的条目在轮到它之前可能已被移除"""
        return self._find(item.id) is item and item.is_eligible

    async def _process_item(self, item: QueueItem, credential: str) -> None:
        self._transition(item, Processing())
        # 在挂起前取出数据，移除条目会释放源图句柄
        data, filename, mime_type = item.source_bytes, item.filename, item.mime_type

        try:
            result = await self.remover.remove_background(
                data, filename, credential, mime_type=mime_type
            )
        except ExternalServiceError as e:
            self._apply_failure(item, Failed(e.message, e.code, e.details), e.credits)
            return
        except ProviderError as e:
            self._apply_failure(item, Failed(e.message, None, e.details), None)
            return
        except asyncio.CancelledError:
            # 被取消的条目回到可重试状态
            self._apply_failure(item, Failed(MessageFormatter.REMOVE_BG_CANCELLED), None)
            raise

        self._apply_success(item, result)

    def _apply_success(self, item: QueueItem, result: RemovalResult) -> None:
        if not self._is_live(item):
            logger.info(f"条目 {item.filename} 已被移除，丢弃处理结果")
            return

        handle = self.registry.create(result.data, result.mime_type)
        self._transition(item, Succeeded(handle))
        self._record_credits(item, result.credits)
        logger.info(f"去除背景成功: {item.filename}")

    def _apply_failure(
        self, item: QueueItem, failure: Failed, credits: CreditInfo | None
    ) -> None:
        if not self._is_live(item):
            logger.info(f"条目 {item.filename} 已被移除，忽略失败结果: {failure.message}")
            return

        self._transition(item, failure)
        if credits is not None:
            self._record_credits(item, credits)
        logger.warning(f"去除背景失败: {item.filename} - {failure.message}")

    def _mark_unexpected_error(self, item: QueueItem, error: Exception) -> None:
        if not self._is_live(item) or item.status is not QueueStatus.PROCESSING:
            return
        self._transition(
            item, Failed(str(error) or MessageFormatter.REMOVE_BG_UNKNOWN, None, repr(error))
        )

    def _record_credits(self, item: QueueItem, credits: CreditInfo) -> None:
        item.credits = credits
        self.last_credit_info = credits

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _find(self, item_id: str) -> QueueItem | None:
        return next((item for item in self._items if item.id == item_id), None)

    def _is_live(self, item: QueueItem) -> bool:
        return self._find(item.id) is item

    @staticmethod
    def _transition(item: QueueItem, new_state: ItemState) -> None:
        if not can_transition(item.status, new_state.status):
            raise QueueStateError(
                f"条目 {item.filename} 不能从 {item.status.label} 变为 {new_state.status.label}"
            )
        item.state = new_state

    @staticmethod
    def _release_item(item: QueueItem) -> None:
        for handle in item.owned_handles():
            handle.release()


def _unique_path(path: Path) -> Path:
    """文件已存在时添加数字后缀"""
    if not path.exists():
        return path
    for counter in itertools.count(1):
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
    return path  # pragma: no cover
