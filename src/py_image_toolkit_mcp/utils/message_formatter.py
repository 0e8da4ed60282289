"""消息格式化工具模块。

提供统一的错误消息、成功消息格式化功能。
"""

from pathlib import Path
from typing import Any


class MessageFormatter:
    """统一的消息格式化器"""

    # 面向用户的固定提示文案
    DECODE_FAILED = "图片加载失败，请使用其他文件。"
    ENCODE_FAILED = "压缩失败，请稍后重试。"
    MISSING_REMOVE_BG_KEY = "请先填写 remove.bg 的 API Key。"
    EMPTY_QUEUE = "请先上传至少一张图片。"
    NO_ELIGIBLE_ITEMS = "队列中暂无待处理的图片。"
    QUEUE_BUSY = "队列正在处理中，请等待当前批次完成。"
    REMOVE_BG_FAILED = "去除背景失败，请稍后重试。"
    REMOVE_BG_QUOTA_HINT = "去除背景失败，请检查 API Key 与配额。"
    REMOVE_BG_UNKNOWN = "去除背景时出现未知错误，请重试。"
    REMOVE_BG_CANCELLED = "去除背景已取消，请重新处理。"
    IDENTIFY_FAILED = "识别失败，请稍后再试。"
    GENERATE_FAILED = "生成失败，请稍后再试。"
    INVALID_DATA_URL = "缺少有效的图片数据，请重新上传。"
    EMPTY_PROMPT = "提示词不能为空。"
    SERVICE_UNAVAILABLE = "服务异常，请稍后重试。"

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        """文件不存在错误消息"""
        return f"文件不存在: {file_path}"

    @staticmethod
    def missing_credential(name: str) -> str:
        """缺少密钥错误消息"""
        return f"服务器未配置 {name}，请联系管理员或填写自定义密钥。"

    @staticmethod
    def with_error_code(message: str, code: str | None) -> str:
        """在错误消息后追加服务端错误码"""
        if not code:
            return message
        separator = "" if message.endswith("。") else "。"
        return f"{message}{separator}错误码：{code}"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def validation_error(field: str, value: Any, reason: str | None = None) -> str:
        """参数验证错误消息"""
        msg = f"参数验证失败 - {field}: {value}"
        if reason:
            msg += f" ({reason})"
        return msg

    @staticmethod
    def format_error(operation: str, target: str | Path, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{target}]: {error}"
