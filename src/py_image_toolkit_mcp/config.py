"""统一配置管理模块。

提供应用程序的全局配置管理，包括默认值、环境变量支持等。
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class CompressionDefaults:
    """压缩相关的默认配置"""

    # 质量设置 - 归一化到 0~1，与页面滑块一致
    DEFAULT_QUALITY: float = 0.7
    MIN_QUALITY: float = 0.2
    MAX_QUALITY: float = 1.0

    # 上传限制
    MAX_FILE_SIZE_MB: float = 10.0

    def clamp_quality(self, quality: float) -> float:
        """把质量值限制在界面允许的范围内"""
        return max(self.MIN_QUALITY, min(self.MAX_QUALITY, quality))


@dataclass(frozen=True)
class ProviderDefaults:
    """外部服务相关的默认配置"""

    # remove.bg
    REMOVE_BG_ENDPOINT: str = "https://api.remove.bg/v1.0/removebg"
    REMOVE_BG_API_KEY: str | None = None
    REMOVE_BG_SIZE: str = "auto"

    # 火山引擎 Ark
    ARK_BASE_URL: str = "https://ark.cn-beijing.volces.com/api/v3"
    ARK_API_KEY: str | None = None
    ARK_VISION_MODEL: str = "ep-20251023004013-j2vpb"
    ARK_IMAGE_MODEL: str = "ep-20251023012547-2jjbx"
    DEFAULT_IDENTIFY_PROMPT: str = "识别图片"

    # 本地保存 remove.bg 密钥的文件
    CREDENTIAL_FILE: str = "~/.py-image-toolkit-mcp/credentials.json"

    # HTTP 超时（秒），None 表示不限制
    HTTP_TIMEOUT: float | None = None

    @property
    def ark_chat_endpoint(self) -> str:
        return f"{self.ARK_BASE_URL.rstrip('/')}/chat/completions"

    @property
    def ark_image_endpoint(self) -> str:
        return f"{self.ARK_BASE_URL.rstrip('/')}/images/generations"


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.compression = CompressionDefaults()
        self.providers = ProviderDefaults()
        self.logging = LoggingDefaults()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 压缩配置
        if default_quality := os.getenv("PIT_DEFAULT_QUALITY"):
            object.__setattr__(
                self.compression,
                "DEFAULT_QUALITY",
                self.compression.clamp_quality(float(default_quality)),
            )

        if max_file_size := os.getenv("PIT_MAX_FILE_SIZE_MB"):
            object.__setattr__(self.compression, "MAX_FILE_SIZE_MB", float(max_file_size))

        # 外部服务配置
        if ark_api_key := os.getenv("ARK_API_KEY"):
            object.__setattr__(self.providers, "ARK_API_KEY", ark_api_key.strip())

        if remove_bg_api_key := os.getenv("REMOVE_BG_API_KEY"):
            object.__setattr__(
                self.providers, "REMOVE_BG_API_KEY", remove_bg_api_key.strip()
            )

        if remove_bg_endpoint := os.getenv("PIT_REMOVE_BG_ENDPOINT"):
            object.__setattr__(self.providers, "REMOVE_BG_ENDPOINT", remove_bg_endpoint)

        if ark_base_url := os.getenv("PIT_ARK_BASE_URL"):
            object.__setattr__(self.providers, "ARK_BASE_URL", ark_base_url)

        if credential_file := os.getenv("PIT_CREDENTIAL_FILE"):
            object.__setattr__(self.providers, "CREDENTIAL_FILE", credential_file)

        if http_timeout := os.getenv("PIT_HTTP_TIMEOUT"):
            object.__setattr__(self.providers, "HTTP_TIMEOUT", float(http_timeout))

        # 日志配置
        if log_level := os.getenv("PIT_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())


# 全局配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取全局配置实例"""
    return config


def reset_config():
    """重置配置（主要用于测试）"""
    global config
    config = AppConfig()
