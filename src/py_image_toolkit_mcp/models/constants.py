"""图像处理相关常量定义。

格式策略、质量范围和外部服务协议常量集中在这里，避免硬编码重复。
"""

from typing import Final


class ImageFormats:
    """压缩输出格式策略"""

    # 只定义必要的别名映射（用户友好的别名）
    ALIASES: Final[dict[str, str]] = {
        "JPG": "JPEG",
    }

    # 源格式支持透明通道时，输出固定为同样支持透明通道的 WEBP
    ALPHA_SOURCE_FORMATS: Final[set[str]] = {"PNG", "WEBP"}
    ALPHA_TARGET_FORMAT: Final[str] = "WEBP"
    OPAQUE_TARGET_FORMAT: Final[str] = "JPEG"

    # 不透明输出的底色
    OPAQUE_BACKGROUND: Final[tuple[int, int, int]] = (255, 255, 255)

    MIME_TYPES: Final[dict[str, str]] = {
        "JPEG": "image/jpeg",
        "PNG": "image/png",
        "WEBP": "image/webp",
        "GIF": "image/gif",
        "BMP": "image/bmp",
        "TIFF": "image/tiff",
    }

    @classmethod
    def get_mime_type(cls, format_name: str) -> str:
        """获取 MIME 类型"""
        format_upper = get_format_alias(format_name)
        return cls.MIME_TYPES.get(format_upper, f"image/{format_upper.lower()}")


class QualityDefaults:
    """质量相关默认值（归一化到 0~1）"""

    DEFAULT: Final[float] = 0.7

    # Pillow 编码器使用的整数范围
    ENCODER_MIN: Final[int] = 1
    ENCODER_MAX: Final[int] = 100


class CreditHeaders:
    """remove.bg 返回的积分相关响应头"""

    REMAINING: Final[str] = "X-Credits-Remaining"
    # 旧版接口使用的余额头，作为 REMAINING 的后备
    BALANCE: Final[str] = "X-Credit-Balance"
    CHARGED: Final[str] = "X-Credits-Charged"
    TYPE: Final[str] = "X-Credit-Type"


class ResponseFormats:
    """图像生成接口的返回格式"""

    URL: Final[str] = "url"
    B64_JSON: Final[str] = "b64_json"
    ALL: Final[frozenset[str]] = frozenset({URL, B64_JSON})


# 图片 data URI 前缀
DATA_URL_PREFIX: Final[str] = "data:image/"


# 便捷访问函数
def get_format_alias(format_str: str) -> str:
    """获取格式的标准名称"""
    format_upper = format_str.upper()
    return ImageFormats.ALIASES.get(format_upper, format_upper)


def get_mime_type(format_str: str) -> str:
    """获取格式的MIME类型"""
    return ImageFormats.get_mime_type(format_str)


def get_extension(format_str: str) -> str:
    """获取下载文件名使用的扩展名（取 MIME 子类型，如 jpeg、webp）"""
    return get_mime_type(format_str).split("/")[1]


def supports_transparency(format_str: str | None) -> bool:
    """检查源格式是否按透明格式处理"""
    if not format_str:
        return False
    return get_format_alias(format_str) in ImageFormats.ALPHA_SOURCE_FORMATS


def is_image_data_url(value: object) -> bool:
    """检查是否为图片 data URI"""
    return isinstance(value, str) and value.startswith(DATA_URL_PREFIX)
