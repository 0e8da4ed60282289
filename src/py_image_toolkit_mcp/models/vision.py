"""图片识别模型。

定义多模态识别请求、归一化后的文本块和识别结果。
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..utils.message_formatter import MessageFormatter
from .constants import is_image_data_url


class IdentifyRequest(BaseModel):
    """识别请求"""

    image_data_url: str = Field(description="以 data:image/ 开头的图片 data URI")
    api_key: str | None = Field(None, description="自定义 API Key，优先于服务端配置")
    prompt: str | None = Field(None, description="识别提示词")

    @field_validator("image_data_url", mode="before")
    @classmethod
    def validate_data_url(cls, v: Any) -> str:
        if not is_image_data_url(v):
            raise ValueError(MessageFormatter.INVALID_DATA_URL)
        return v

    @field_validator("api_key", "prompt", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        return v.strip() or None

    def resolved_prompt(self, default: str) -> str:
        """未填写提示词时使用默认提示词"""
        return self.prompt or default


class ContentBlock(BaseModel):
    """模型输出中的一段文本"""

    id: str
    text: str


class IdentifyResult(BaseModel):
    """识别结果，data 保留服务端原始响应"""

    data: Any = Field(description="服务端原始响应")
    blocks: list[ContentBlock] = Field(default_factory=list, description="归一化文本块")

    @property
    def text(self) -> str:
        """所有文本块拼接后的结果"""
        return "\n\n".join(block.text for block in self.blocks)

    @property
    def model(self) -> str | None:
        return self.data.get("model") if isinstance(self.data, dict) else None

    @property
    def created(self) -> int | None:
        return self.data.get("created") if isinstance(self.data, dict) else None
