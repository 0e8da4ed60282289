"""图像工具箱 MCP 服务器。

提供图片压缩、批量去除背景、图片识别和文生图工具。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from .compressor import ImageCompressor
from .config import get_config
from .engine.batch import BackgroundRemovalQueue
from .engine.credentials import (
    ChainedCredentialProvider,
    EnvCredentialProvider,
    StaticCredentialProvider,
    StoredCredentialProvider,
)
from .exceptions import ErrorHandler, ToolkitError
from .models.generation import GeneratedImage, GenerationRequest
from .models.queue_item import QueueItem
from .models.vision import IdentifyRequest
from .providers.ark import ArkClient
from .utils.file_helpers import decode_data_url, image_file_to_data_url
from .utils.logging_helpers import configure_logging, get_logger
from .utils.message_formatter import MessageFormatter
from .utils.naming_helpers import FileNamingStrategy


# MCP 服务器响应类型定义
MCPResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: Any = None,
    ) -> MCPResponse:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result: MCPResponse = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def validation_error(message: str, field: str | None = None) -> MCPResponse:
        """构建验证错误结果。"""
        details = {"field": field} if field else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="validation",
            details=details,
        )

    @staticmethod
    def file_error(message: str, file_path: str | None = None) -> MCPResponse:
        """构建文件相关错误结果。"""
        details = {"file_path": file_path} if file_path else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="file",
            details=details,
        )

    @staticmethod
    def from_exception(error: Exception) -> MCPResponse:
        """把工具箱异常转换为错误结果，原始诊断信息放在 details 中"""
        return ErrorHandler.to_payload(error)

    @staticmethod
    def from_pydantic(error: PydanticValidationError) -> MCPResponse:
        """取第一条校验错误作为展示消息"""
        first = error.errors()[0] if error.errors() else {}
        message = str(first.get("msg", error)).removeprefix("Value error, ")
        field = ".".join(str(loc) for loc in first.get("loc", ())) or None
        return MCPResponseBuilder.validation_error(message, field)


logger = get_logger(__name__)

# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("图像工具箱服务")

# 全局压缩器实例
compressor = ImageCompressor()

# 会话密钥 > 本地保存的密钥 > 环境变量
session_credentials = StaticCredentialProvider()
stored_credentials = StoredCredentialProvider(get_config().providers.CREDENTIAL_FILE)

# 全局去背景队列
removal_queue = BackgroundRemovalQueue(
    credential_provider=ChainedCredentialProvider(
        session_credentials, stored_credentials, EnvCredentialProvider()
    )
)

# 全局 Ark 客户端
ark_client = ArkClient()


# ============================================================================
# 图片压缩
# ============================================================================


@mcp.tool()
def compress_image(
    input_path: str,
    quality: float | None = None,
    output_dir: str | None = None,
    output_path: str | None = None,
) -> MCPResponse:
    """压缩单张图片，尺寸保持不变

    透明图片（PNG / WEBP）输出 WEBP 以保留透明通道，其余输出 JPEG。

    Args:
        input_path: 输入图片路径
        quality: 压缩质量，范围 (0, 1]，默认 0.7
        output_dir: 输出目录，默认与输入文件相同
        output_path: 指定输出文件路径，优先于 output_dir

    Returns:
        dict: 压缩结果，包含输出路径、大小对比和下载文件名
    """
    if not Path(input_path).is_file():
        return MCPResponseBuilder.file_error(
            MessageFormatter.file_not_found(input_path), input_path
        )

    try:
        result = compressor.compress_file(
            input_path, quality=quality, output_dir=output_dir, output_path=output_path
        )
    except ToolkitError as e:
        ErrorHandler.log_error("图像压缩", input_path, e)
        return MCPResponseBuilder.from_exception(e)

    return {
        "success": True,
        "output_path": str(result.output_path),
        "filename": result.filename,
        "mime_type": result.mime_type,
        "format_used": result.format_used,
        "quality_used": result.quality_used,
        "width": result.dimensions[0],
        "height": result.dimensions[1],
        "original_size": result.original_size,
        "compressed_size": result.compressed_size,
        "compression_ratio": result.get_compression_ratio(),
        "size_saved": result.get_size_saved(),
        "summary": result.get_summary(),
    }


# ============================================================================
# 批量去除背景
# ============================================================================


@mcp.tool()
def queue_set_api_key(api_key: str | None = None, remember: bool = False) -> MCPResponse:
    """设置 remove.bg 的 API Key

    Args:
        api_key: 密钥，留空表示清除
        remember: 是否保存到本地文件，下次启动仍然可用

    Returns:
        dict: 当前是否有可用密钥
    """
    credential = api_key.strip() if api_key else None
    session_credentials.set_credential(credential)
    if remember:
        stored_credentials.set_credential(credential)
        logger.info(f"已更新本地保存的 remove.bg 密钥: {stored_credentials.path}")

    has_credential = bool(removal_queue.credential_provider.get_credential())
    return {"success": True, "has_credential": has_credential, "remembered": remember}


@mcp.tool()
def queue_add_images(paths: list[str]) -> MCPResponse:
    """把图片加入去背景队列，不会立即开始处理

    Args:
        paths: 图片文件路径列表，按顺序加入

    Returns:
        dict: 新增条目和当前队列状态
    """
    missing = [path for path in paths if not Path(path).is_file()]
    if missing:
        return MCPResponseBuilder.file_error(
            MessageFormatter.file_not_found(", ".join(missing)), missing[0]
        )

    added = removal_queue.enqueue(paths)
    return {
        "success": True,
        "added": [item.to_dict() for item in added],
        "queue": removal_queue.snapshot(),
    }


@mcp.tool()
def queue_remove_item(item_id: str) -> MCPResponse:
    """从队列中移除条目并释放其资源

    Args:
        item_id: 条目 ID

    Returns:
        dict: 当前队列状态
    """
    try:
        removal_queue.remove(item_id)
    except ToolkitError as e:
        return MCPResponseBuilder.from_exception(e)
    return {"success": True, "queue": removal_queue.snapshot()}


@mcp.tool()
def queue_clear() -> MCPResponse:
    """清空去背景队列"""
    removal_queue.clear()
    return {"success": True, "queue": removal_queue.snapshot()}


@mcp.tool()
def queue_status(active_id: str | None = None) -> MCPResponse:
    """查看队列状态

    Args:
        active_id: 切换当前预览的条目（可选）
    """
    if active_id:
        try:
            removal_queue.set_active(active_id)
        except ToolkitError as e:
            return MCPResponseBuilder.from_exception(e)
    return {
        "success": True,
        "queue": removal_queue.snapshot(),
        "active_preview": _preview_info(removal_queue.active_item),
    }


def _preview_info(item: QueueItem | None) -> dict[str, Any] | None:
    """当前条目的源图与结果尺寸，源图无法解码时返回 None"""
    if item is None:
        return None
    try:
        width, height = item.source.preview().size
    except OSError as e:
        logger.debug(MessageFormatter.operation_failed("解码预览", item.filename, e))
        return None

    info: dict[str, Any] = {"width": width, "height": height}
    if (result := item.result) is not None:
        info["result_mime_type"] = result.mime_type
        info["result_size"] = result.size
    return info


@mcp.tool()
async def queue_run(api_key: str | None = None) -> MCPResponse:
    """逐个处理队列中 待处理 / 失败 的图片

    单张失败只记录在该条目上，不影响其他图片。

    Args:
        api_key: 本次使用的 remove.bg 密钥，留空使用已设置的密钥
    """
    try:
        await removal_queue.run_batch(api_key=api_key)
    except ToolkitError as e:
        logger.warning(f"批量处理未开始: {e.message}")
        return MCPResponseBuilder.from_exception(e)
    return {"success": True, "queue": removal_queue.snapshot()}


@mcp.tool()
def queue_export_results(output_dir: str) -> MCPResponse:
    """把成功去除背景的图片写入目录（<原文件名>-no-bg.png）

    Args:
        output_dir: 输出目录
    """
    try:
        written = removal_queue.export_results(output_dir)
    except OSError as e:
        ErrorHandler.log_error("导出结果", output_dir, e)
        return MCPResponseBuilder.file_error(
            MessageFormatter.operation_failed("导出结果", output_dir, e), output_dir
        )
    return {"success": True, "files": [str(path) for path in written]}


# ============================================================================
# 图片识别与生成
# ============================================================================


@mcp.tool()
async def identify_image(
    input_path: str | None = None,
    image_data_url: str | None = None,
    prompt: str | None = None,
    api_key: str | None = None,
) -> MCPResponse:
    """识别图片内容

    Args:
        input_path: 图片文件路径
        image_data_url: 图片 data URI，未提供 input_path 时使用
        prompt: 识别提示词，默认“识别图片”
        api_key: 自定义火山引擎 API Key

    Returns:
        dict: 归一化后的文本块和服务端原始响应
    """
    try:
        if input_path:
            image_data_url = image_file_to_data_url(input_path)
        request = IdentifyRequest(
            image_data_url=image_data_url, prompt=prompt, api_key=api_key
        )
        result = await ark_client.identify(request)
    except FileNotFoundError as e:
        return MCPResponseBuilder.file_error(str(e), input_path)
    except PydanticValidationError as e:
        return MCPResponseBuilder.from_pydantic(e)
    except ToolkitError as e:
        ErrorHandler.log_error("图片识别", input_path or "data URI", e)
        return MCPResponseBuilder.from_exception(e)

    return {
        "success": True,
        "text": result.text,
        "blocks": [block.model_dump() for block in result.blocks],
        "model": result.model,
        "created": result.created,
        "data": result.data,
    }


@mcp.tool()
async def generate_image(
    prompt: str,
    negative_prompt: str | None = None,
    size: str | None = None,
    sequential: str | None = None,
    watermark: bool | str | None = None,
    response_format: str | None = None,
    api_key: str | None = None,
    output_dir: str | None = None,
) -> MCPResponse:
    """根据提示词生成图像

    Args:
        prompt: 提示词
        negative_prompt: 反向提示词
        size: 输出尺寸，默认 2K
        sequential: 组图模式 enabled / disabled
        watermark: 是否添加水印，默认添加
        response_format: 首选返回格式 url / b64_json
        api_key: 自定义火山引擎 API Key
        output_dir: 把 base64 返回的图片写入该目录（可选）

    Returns:
        dict: 生成的图像列表
    """
    try:
        request = GenerationRequest(
            prompt=prompt,
            negative_prompt=negative_prompt,
            size=size,
            sequential=sequential,
            watermark=True if watermark is None else watermark,
            response_format=response_format,
            api_key=api_key,
        )
        result = await ark_client.generate(request)
    except PydanticValidationError as e:
        return MCPResponseBuilder.from_pydantic(e)
    except ToolkitError as e:
        ErrorHandler.log_error("图像生成", prompt[:40], e)
        return MCPResponseBuilder.from_exception(e)

    images = [image.model_dump() for image in result.images]
    if output_dir:
        try:
            _write_generated_images(images, result.images, Path(output_dir))
        except (OSError, ValueError) as e:
            ErrorHandler.log_error("保存生成图片", output_dir, e)
            return MCPResponseBuilder.file_error(
                MessageFormatter.operation_failed("保存生成图片", output_dir, e), output_dir
            )

    return {
        "success": True,
        "images": images,
        "response_format": result.response_format,
        "raw": result.raw,
    }


def _write_generated_images(
    payloads: list[dict[str, Any]], images: list[GeneratedImage], target_dir: Path
) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    for payload, image in zip(payloads, images):
        if not image.is_data_url:
            continue
        data, _ = decode_data_url(image.url)
        path = target_dir / FileNamingStrategy.generated_image_name(image.id)
        path.write_bytes(data)
        payload["output_path"] = str(path)
        # 已写入文件时不再返回大段 base64
        payload["url"] = None


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    configure_logging()
    logger.info("启动图像工具箱 MCP 服务器")
    try:
        mcp.run()
    finally:
        removal_queue.close()


if __name__ == "__main__":
    main()
