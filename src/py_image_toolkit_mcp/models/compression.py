"""压缩请求与结果模型。

定义单张图片压缩的输入参数和输出数据结构。
"""

from pathlib import Path

from humanize import naturalsize
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import QualityDefaults, supports_transparency


class BaseResult(BaseModel):
    """结果基类，包含通用字段和方法"""

    success: bool = Field(True, description="是否成功")
    error: str | None = Field(None, description="错误信息")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """格式化文件大小为人类可读格式"""
        return naturalsize(size_bytes, binary=True)


class CompressionRequest(BaseModel):
    """单次压缩请求，使用一次后丢弃"""

    model_config = ConfigDict(frozen=True)

    source_bytes: bytes = Field(repr=False, description="原始图片数据")
    quality: float = Field(
        QualityDefaults.DEFAULT, gt=0, le=1, description="压缩质量 (0, 1]"
    )
    filename: str | None = Field(None, description="原始文件名，用于生成下载文件名")
    source_format: str | None = Field(None, description="源格式，未指定时解码后识别")

    @field_validator("source_format")
    @classmethod
    def normalize_source_format(cls, v: str | None) -> str | None:
        return v.upper() if v else None

    @property
    def preserve_alpha(self) -> bool:
        """源格式支持透明通道（PNG / WEBP）时保留透明度"""
        return supports_transparency(self.source_format)

    @property
    def original_size(self) -> int:
        return len(self.source_bytes)


class CompressionResult(BaseResult):
    """单张图片压缩结果"""

    data: bytes = Field(repr=False, description="压缩后的图片数据")
    mime_type: str = Field(description="输出 MIME 类型")
    format_used: str = Field(description="使用的格式")
    filename: str = Field(description="下载文件名")
    quality_used: int = Field(description="编码器实际使用的质量值 (1-100)")
    original_size: int = Field(description="原始大小（字节）")
    dimensions: tuple[int, int] = Field(description="输出尺寸，与输入一致")
    output_path: Path | None = Field(None, description="写入磁盘时的输出路径")

    @property
    def compressed_size(self) -> int:
        """压缩后大小（字节）"""
        return len(self.data)

    def get_size_saved(self) -> int:
        """节省的字节数"""
        return max(0, self.original_size - self.compressed_size)

    def get_compression_ratio(self) -> float:
        """压缩比例（百分比）"""
        if self.original_size == 0:
            return 0.0
        return (self.get_size_saved() / self.original_size) * 100

    def get_original_size_human(self) -> str:
        """人类可读的原始文件大小"""
        return self.format_size(self.original_size)

    def get_compressed_size_human(self) -> str:
        """人类可读的压缩后文件大小"""
        return self.format_size(self.compressed_size)

    def get_summary(self) -> str:
        """压缩结果摘要"""
        if not self.success:
            return f"失败: {self.error}"

        return (
            f"{self.get_original_size_human()} → {self.get_compressed_size_human()} "
            f"({self.get_compression_ratio():.1f}% 压缩)"
        )
