"""压缩引擎模块。

解码源图 → 按原始像素尺寸准备画面 → 以指定质量重新编码，全程不访问网络。
"""

from io import BytesIO

from PIL import Image, ImageOps

from ..exceptions import EncodeError, ValidationError, handle_image_errors
from ..models.compression import CompressionRequest, CompressionResult
from ..models.constants import get_mime_type
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import FileNamingStrategy
from .formats import FormatProcessor, get_save_parameters


logger = get_logger()


def compress(request: CompressionRequest) -> CompressionResult:
    """压缩单张图片。

    Args:
        request: 压缩请求

    Returns:
        CompressionResult: 压缩结果，尺寸与源图一致

    Raises:
        ValidationError: 质量参数不在 (0, 1] 范围内
        DecodeError: 源图无法解码
        EncodeError: 无法编码为目标格式
    """
    if not 0 < request.quality <= 1:
        raise ValidationError(
            MessageFormatter.validation_error("quality", request.quality, "应在 (0, 1] 范围内")
        )

    format_processor = FormatProcessor()
    img = _decode(request.source_bytes)
    opened = [img]
    try:
        if request.source_format is None:
            request = request.model_copy(update={"source_format": img.format})

        target_format = format_processor.select_target_format(request.source_format)
        if request.preserve_alpha and not format_processor.webp_supported:
            raise EncodeError(MessageFormatter.ENCODE_FAILED, "WEBP 编码器不可用")
        oriented = _apply_orientation(img)
        surface = format_processor.prepare_for_format(oriented, target_format)
        opened.extend((oriented, surface))

        data, quality_used = _encode(surface, target_format, request.quality)
        dimensions = surface.size
    finally:
        # 释放解码过程中产生的所有临时画面
        for image in {id(i): i for i in opened}.values():
            image.close()

    result = CompressionResult(
        data=data,
        mime_type=get_mime_type(target_format),
        format_used=target_format,
        filename=FileNamingStrategy.compressed_name(request.filename, target_format),
        quality_used=quality_used,
        original_size=request.original_size,
        dimensions=dimensions,
    )
    logger.info(
        f"压缩完成 {request.filename or '内存图片'} "
        f"[{request.source_format} → {target_format}, q={quality_used}]: {result.get_summary()}"
    )
    return result


@handle_image_errors("图像解码")
def _decode(data: bytes) -> Image.Image:
    """解码源图，动画图片只取第一帧"""
    img = Image.open(BytesIO(data))
    img.load()
    return img


def _apply_orientation(img: Image.Image) -> Image.Image:
    """按 EXIF 方向旋转，得到显示时的自然尺寸"""
    transposed = ImageOps.exif_transpose(img)
    if transposed is None:
        return img
    return transposed


def _encode(surface: Image.Image, target_format: str, quality: float) -> tuple[bytes, int]:
    """把画面编码为目标格式，失败时不返回任何部分输出"""
    save_params, quality_used = get_save_parameters(target_format, quality)
    buffer = BytesIO()
    try:
        surface.save(buffer, **save_params)
    except (OSError, KeyError, ValueError) as e:
        logger.error(MessageFormatter.operation_failed(f"编码 {target_format}", "内存图片", e))
        raise EncodeError(MessageFormatter.ENCODE_FAILED, str(e)) from e
    return buffer.getvalue(), quality_used
