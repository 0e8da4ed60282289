"""图像生成模型。

定义文生图请求参数（带宽松的取值归一化）和归一化后的生成结果。
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from ..utils.message_formatter import MessageFormatter
from .constants import ResponseFormats


ResponseFormat = Literal["url", "b64_json"]
SequentialMode = Literal["enabled", "disabled"]


class GenerationRequest(BaseModel):
    """文生图请求

    非法的可选参数回退为默认值，只有提示词为空时才会校验失败。
    """

    prompt: str = Field(description="提示词，去除首尾空白后不能为空")
    negative_prompt: str | None = Field(None, description="反向提示词")
    api_key: str | None = Field(None, description="自定义 API Key，优先于服务端配置")
    size: str = Field("2K", description="输出尺寸")
    sequential: SequentialMode = Field("disabled", description="组图生成模式")
    watermark: bool = Field(True, description="是否添加水印")
    response_format: ResponseFormat = Field(
        ResponseFormats.URL, description="首次请求使用的返回格式"
    )

    @field_validator("prompt", mode="before")
    @classmethod
    def validate_prompt(cls, v: Any) -> str:
        prompt = v.strip() if isinstance(v, str) else ""
        if not prompt:
            raise ValueError(MessageFormatter.EMPTY_PROMPT)
        return prompt

    @field_validator("negative_prompt", "api_key", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        return v.strip() or None

    @field_validator("size", mode="before")
    @classmethod
    def normalize_size(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return "2K"

    @field_validator("sequential", mode="before")
    @classmethod
    def normalize_sequential(cls, v: Any) -> str:
        return v if v in ("enabled", "disabled") else "disabled"

    @field_validator("watermark", mode="before")
    @classmethod
    def normalize_watermark(cls, v: Any) -> bool:
        if isinstance(v, bool):
            return v
        return v != "false"

    @field_validator("response_format", mode="before")
    @classmethod
    def normalize_response_format(cls, v: Any) -> str:
        return v if v in ResponseFormats.ALL else ResponseFormats.URL

    def build_payload(self, model: str) -> dict[str, Any]:
        """构建不含 response_format 的请求体"""
        payload: dict[str, Any] = {
            "model": model,
            "prompt": self.prompt,
            "size": self.size,
            "stream": False,
            "watermark": self.watermark,
            "sequential_image_generation": self.sequential,
        }
        if self.negative_prompt:
            payload["negative_prompt"] = self.negative_prompt
        return payload


class GeneratedImage(BaseModel):
    """归一化后的单张生成图像"""

    id: str
    url: str = Field(description="图片直链或 data:<mime>;base64,<payload> URI")
    mime_type: str
    size: str | None = None
    prompt: str | None = None
    revised_prompt: str | None = None
    seed: int | None = None
    created: int | None = None

    @property
    def is_data_url(self) -> bool:
        return self.url.startswith("data:")


class GenerationResult(BaseModel):
    """生成结果，raw 保留服务端原始响应"""

    images: list[GeneratedImage] = Field(default_factory=list)
    raw: Any = None
    response_format: ResponseFormat = ResponseFormats.URL
