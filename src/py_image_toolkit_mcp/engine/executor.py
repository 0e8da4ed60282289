"""顺序执行器模块。

逐个消费工作集：上一项的外部调用结束后才开始下一项，
外部服务不会同时收到两个请求。单项失败不会中断整个工作集。
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

from ..exceptions import ErrorHandler


logger = logging.getLogger(__name__)

T = TypeVar("T")


class SequentialExecutor(Generic[T]):
    """顺序执行器

    Args:
        describe: 生成日志中用于标识任务的名称
    """

    def __init__(self, describe: Callable[[T], str] = repr):
        self.describe = describe

    async def execute_tasks(
        self,
        work_set: Sequence[T],
        task_function: Callable[[T], Awaitable[None]],
        should_run: Callable[[T], bool] | None = None,
        on_error: Callable[[T, Exception], None] | None = None,
    ) -> int:
        """按顺序执行任务

        Args:
            work_set: 调用时确定的工作集
            task_function: 处理单项的协程函数
            should_run: 每项开始前的检查，返回 False 时跳过（例如已被移除）
            on_error: 任务函数抛出未处理异常时的回调

        Returns:
            int: 实际执行的任务数
        """
        executed = 0
        total = len(work_set)

        for position, item in enumerate(work_set, start=1):
            if should_run is not None and not should_run(item):
                logger.debug(f"跳过 {self.describe(item)} ({position}/{total})")
                continue

            logger.debug(f"开始处理 {self.describe(item)} ({position}/{total})")
            executed += 1
            try:
                await task_function(item)
            except Exception as e:
                ErrorHandler.log_error("队列任务处理", self.describe(item), e)
                if on_error is None:
                    raise
                on_error(item, e)

        return executed
