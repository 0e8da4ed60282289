"""格式处理器模块。

决定压缩输出格式，并把解码后的图片准备成目标格式可以编码的色彩模式。
"""

import logging
from typing import Any

from PIL import Image, features

from ..models.constants import (
    ImageFormats,
    QualityDefaults,
    get_format_alias,
    supports_transparency,
)


logger = logging.getLogger(__name__)


class FormatProcessor:
    """格式处理器

    透明格式（PNG / WEBP）输出 WEBP 并保留透明通道；
    其余格式输出 JPEG，先铺白色底再绘制原图。
    """

    def __init__(self) -> None:
        """初始化格式处理器"""
        self.webp_supported = features.check("webp")
        if not self.webp_supported:
            logger.warning("当前 Pillow 未启用 WEBP 编码器，透明图片将无法压缩")

    @staticmethod
    def select_target_format(source_format: str | None) -> str:
        """根据源格式选择输出格式"""
        if supports_transparency(source_format):
            return ImageFormats.ALPHA_TARGET_FORMAT
        return ImageFormats.OPAQUE_TARGET_FORMAT

    def prepare_for_format(self, img: Image.Image, target_format: str) -> Image.Image:
        """为目标格式准备图片

        Args:
            img: PIL图片对象
            target_format: 目标格式

        Returns:
            Image.Image: 处理后的图片对象，尺寸与输入一致
        """
        match get_format_alias(target_format):
            case "JPEG":
                return self._prepare_for_jpeg(img)
            case "WEBP":
                return self._prepare_for_webp(img)
            case _:
                return img

    def _prepare_for_jpeg(self, img: Image.Image) -> Image.Image:
        """为JPEG格式准备图片：白色不透明底 + 原图叠加"""
        surface = Image.new("RGB", img.size, ImageFormats.OPAQUE_BACKGROUND)

        if self._has_alpha(img):
            rgba = img.convert("RGBA")
            surface.paste(rgba, mask=rgba.getchannel("A"))
            return surface

        # CMYK、灰度、调色板等模式统一转换为RGB后绘制
        surface.paste(img.convert("RGB"))
        return surface

    def _prepare_for_webp(self, img: Image.Image) -> Image.Image:
        """为WebP格式准备图片，保留透明通道"""
        if self._has_alpha(img):
            return img if img.mode == "RGBA" else img.convert("RGBA")
        if img.mode == "RGB":
            return img
        return img.convert("RGB")

    @staticmethod
    def _has_alpha(img: Image.Image) -> bool:
        """检查图片是否带有透明信息"""
        if img.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
            return True
        # 调色板、灰度和RGB模式可能通过 transparency 信息声明透明色
        return "transparency" in img.info


def to_encoder_quality(quality: float) -> int:
    """把 (0, 1] 的质量值映射到 Pillow 编码器的 1~100"""
    return max(
        QualityDefaults.ENCODER_MIN,
        min(QualityDefaults.ENCODER_MAX, round(quality * 100)),
    )


def get_save_parameters(format_name: str, quality: float) -> tuple[dict[str, Any], int]:
    """获取保存参数

    Returns:
        tuple: (保存参数字典, 实际使用的质量值)
    """
    encoder_quality = to_encoder_quality(quality)
    params: dict[str, Any] = {"format": get_format_alias(format_name)}

    match params["format"]:
        case "JPEG":
            params.update(get_jpeg_params(encoder_quality))
        case "WEBP":
            params.update(get_webp_params(encoder_quality))

    return params, encoder_quality


def get_jpeg_params(quality: int) -> dict[str, Any]:
    """获取JPEG压缩参数

    - optimize: 额外处理以找到最优霍夫曼表，不影响画质
    - subsampling: 保持 Pillow 默认的 4:2:0，与浏览器编码器一致
    """
    return {
        "quality": quality,
        "optimize": True,
    }


def get_webp_params(quality: int) -> dict[str, Any]:
    """获取WebP压缩参数

    - quality: 有损压缩质量
    - alpha_quality: 100 表示透明通道无损，完全透明的像素保持透明
    - method: 4 为 Pillow 默认的速度/体积平衡
    """
    return {
        "quality": quality,
        "lossless": False,
        "alpha_quality": 100,
        "method": 4,
    }
