"""图像工具箱异常处理模块。

定义统一的异常类和错误处理机制，包含现代化的异常处理装饰器。
"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from PIL.Image import DecompressionBombError, UnidentifiedImageError

from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()
T = TypeVar("T")


# 统一的异常类型
class ToolkitError(Exception):
    """工具箱错误基类，消息可直接展示给用户"""

    error_type = "general"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ToolkitError):
    """参数验证错误 - 统一的验证错误类型"""

    error_type = "validation"


# 压缩流水线
class CompressionError(ToolkitError):
    """压缩相关错误基类"""

    error_type = "compression"


class DecodeError(CompressionError):
    """图片无法解码（损坏或格式不支持）"""

    pass


class EncodeError(CompressionError):
    """无法编码为目标格式"""

    pass


# 批量队列
class QueueError(ToolkitError):
    """队列相关错误基类"""

    error_type = "queue"


class MissingCredentialError(QueueError):
    """缺少 API Key"""

    error_type = "configuration"


class EmptyQueueError(QueueError):
    """队列为空"""

    pass


class NoEligibleItemsError(QueueError):
    """队列中没有待处理或失败的条目"""

    pass


class QueueStateError(QueueError):
    """非法的状态迁移或队列操作"""

    pass


# 外部服务
class ProviderError(ToolkitError):
    """外部服务调用错误基类"""

    error_type = "provider"


class ExternalServiceError(ProviderError):
    """外部服务返回非 2xx 响应"""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str | None = None,
        details: Any = None,
        credits: Any = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.code = code
        self.credits = credits


class NetworkError(ProviderError):
    """调用外部服务时的传输层错误"""

    pass


class MalformedResponseError(ProviderError):
    """外部服务返回了无法使用的响应体"""

    pass


# 现代化异常处理装饰器
def handle_image_errors(operation_name: str = "图像解码"):
    """统一的图像解码异常处理装饰器

    把 Pillow 和系统层面的异常转换为 DecodeError，保留原始异常链。

    Args:
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except UnidentifiedImageError as e:
                logger.warning(f"{operation_name} - 无法识别图像格式: {e}")
                raise DecodeError(MessageFormatter.DECODE_FAILED, str(e)) from e
            except DecompressionBombError as e:
                logger.warning(f"{operation_name} - 图像过大: {e}")
                raise DecodeError(
                    f"图像文件过大，可能存在安全风险: {e}", str(e)
                ) from e
            except (OSError, SyntaxError, ValueError) as e:
                logger.warning(f"{operation_name} - 图像数据损坏: {e}")
                raise DecodeError(MessageFormatter.DECODE_FAILED, str(e)) from e

        return wrapper

    return decorator


class ErrorHandler:
    """统一错误处理器

    提供标准化的错误日志记录和响应构建。
    """

    @staticmethod
    def log_error(
        operation: str, target: str, error: Exception, level: str = "error"
    ) -> None:
        """标准化的错误日志记录

        Args:
            operation: 操作名称（如"图像压缩"、"去除背景"等）
            target: 相关对象（文件名、队列条目等）
            error: 异常对象
            level: 日志级别 ("error", "warning", "debug")
        """
        log_msg = MessageFormatter.format_error(operation, target, error)
        getattr(logger, level, logger.error)(log_msg)

    @staticmethod
    def to_payload(error: Exception) -> dict[str, Any]:
        """把异常转换为可展示的错误字典，原始诊断信息放在 details 中"""
        match error:
            case ExternalServiceError() as ese:
                payload: dict[str, Any] = {
                    "success": False,
                    "error": ese.message,
                    "error_type": ese.error_type,
                    "status_code": ese.status_code,
                }
                if ese.code:
                    payload["code"] = ese.code
                if ese.details is not None:
                    payload["details"] = ese.details
                return payload
            case ToolkitError() as te:
                payload = {
                    "success": False,
                    "error": te.message,
                    "error_type": te.error_type,
                }
                if te.details is not None:
                    payload["details"] = te.details
                return payload
            case _:
                return {
                    "success": False,
                    "error": MessageFormatter.SERVICE_UNAVAILABLE,
                    "error_type": "general",
                    "details": str(error),
                }
