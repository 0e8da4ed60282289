"""图像压缩器接口。

基于核心压缩引擎的简洁用户接口，支持内存数据和磁盘文件两种输入。
"""

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from .config import get_config
from .core.compression_engine import compress
from .exceptions import ValidationError
from .models.compression import CompressionRequest, CompressionResult
from .utils.file_helpers import read_image_file
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()


class ImageCompressor:
    """图像压缩器。

    提供简洁的压缩接口：质量归一化到 (0, 1]，透明图片输出 WEBP，
    其余输出 JPEG，尺寸保持不变。
    """

    def __init__(self, default_quality: float | None = None):
        """初始化压缩器。

        Args:
            default_quality: 未指定质量时使用的默认值，None 使用全局配置
        """
        self.default_quality = (
            default_quality
            if default_quality is not None
            else get_config().compression.DEFAULT_QUALITY
        )
        logger.debug(f"初始化图像压缩器，默认质量 {self.default_quality}")

    def build_request(
        self,
        data: bytes,
        quality: float | None = None,
        filename: str | None = None,
        source_format: str | None = None,
    ) -> CompressionRequest:
        """构建并校验压缩请求

        Raises:
            ValidationError: 参数验证失败或文件超过大小限制
        """
        max_size_mb = get_config().compression.MAX_FILE_SIZE_MB
        if len(data) > max_size_mb * 1024 * 1024:
            raise ValidationError(
                MessageFormatter.validation_error(
                    "文件大小", filename or "内存图片", f"超过 {max_size_mb:g} MB 限制"
                )
            )

        try:
            return CompressionRequest(
                source_bytes=data,
                quality=self.default_quality if quality is None else quality,
                filename=filename,
                source_format=source_format,
            )
        except PydanticValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(
                MessageFormatter.validation_error("压缩参数", filename or "内存图片", errors)
            ) from e

    def compress_bytes(
        self,
        data: bytes,
        quality: float | None = None,
        filename: str | None = None,
        source_format: str | None = None,
    ) -> CompressionResult:
        """压缩内存中的图片数据

        Args:
            data: 源图片字节
            quality: 压缩质量 (0, 1]，None 使用默认值
            filename: 原始文件名，用于生成下载文件名
            source_format: 源格式（如 PNG），None 时从数据中识别

        Returns:
            CompressionResult: 压缩结果
        """
        request = self.build_request(data, quality, filename, source_format)
        return compress(request)

    def compress_file(
        self,
        input_path: str | Path,
        quality: float | None = None,
        output_dir: str | Path | None = None,
        output_path: str | Path | None = None,
    ) -> CompressionResult:
        """压缩磁盘上的图片文件并写出结果

        Args:
            input_path: 输入文件路径
            quality: 压缩质量 (0, 1]
            output_dir: 输出目录，默认与输入文件相同
            output_path: 指定输出文件路径，优先于 output_dir

        Returns:
            CompressionResult: 带 output_path 的压缩结果
        """
        input_path = Path(input_path)
        filename, data, _ = read_image_file(input_path)
        result = self.compress_bytes(data, quality=quality, filename=filename)

        if output_path is not None:
            target = Path(output_path)
        else:
            target = Path(output_dir or input_path.parent) / result.filename
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(result.data)
        logger.info(f"已写出压缩结果: {target}")

        return result.model_copy(update={"output_path": target})
