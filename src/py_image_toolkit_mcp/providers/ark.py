"""火山引擎 Ark 客户端。

提供多模态图片识别和文生图两个调用，以及响应的归一化处理。
"""

import re
from typing import Any

import httpx

from ..config import get_config
from ..engine.credentials import resolve_credential
from ..exceptions import ExternalServiceError
from ..models.constants import ResponseFormats
from ..models.generation import GeneratedImage, GenerationRequest, GenerationResult
from ..models.vision import ContentBlock, IdentifyRequest, IdentifyResult
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .base import BaseProvider, extract_error_message, parse_body


logger = get_logger()

ARK_CREDENTIAL_NAME = "火山引擎 API Key (ARK_API_KEY)"

# URL 返回模式不可用时服务端返回的错误消息
_URL_MODE_UNAVAILABLE = re.compile(
    r"endpoint that is currently closed or temporarily unavailable", re.IGNORECASE
)


def extract_content_blocks(data: Any) -> list[ContentBlock]:
    """从 chat completions 响应中提取文本块

    - 字符串内容：去除首尾空白后作为一个文本块，空串跳过
    - 列表内容：每个非空字符串或 {type: "text", text} 元素各为一个文本块
    - 都没有时退回顶层的 output_text 字段
    - 仍然没有则返回空列表，不抛出异常
    """
    if not isinstance(data, dict):
        return []

    choices = data.get("choices")
    blocks: list[ContentBlock] = []

    for index, choice in enumerate(choices if isinstance(choices, list) else []):
        message = choice.get("message") if isinstance(choice, dict) else None
        content = message.get("content") if isinstance(message, dict) else None

        if isinstance(content, str):
            if text := content.strip():
                blocks.append(ContentBlock(id=f"choice-{index}-text-0", text=text))
            continue

        if isinstance(content, list):
            for inner_index, item in enumerate(content):
                text = None
                if isinstance(item, str):
                    text = item.strip()
                elif isinstance(item, dict) and item.get("type") == "text":
                    raw_text = item.get("text")
                    text = raw_text.strip() if isinstance(raw_text, str) else None
                if text:
                    blocks.append(
                        ContentBlock(id=f"choice-{index}-text-{inner_index}", text=text)
                    )

    if blocks:
        return blocks

    if "output_text" in data:
        output_text = data.get("output_text")
        text = str(output_text if output_text is not None else "").strip()
        if text:
            return [ContentBlock(id="fallback-output-text", text=text)]

    return []


def normalize_images(data: Any, fallback_mime: str = "image/png") -> list[GeneratedImage]:
    """把文生图响应中的 data 列表归一化为 GeneratedImage 列表

    没有 url 也没有 b64_json 的条目会被跳过。
    """
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    images: list[GeneratedImage] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            continue

        mime_type = item.get("content_type") or item.get("mime_type") or fallback_mime
        if item.get("url"):
            url = item["url"]
        elif item.get("b64_json"):
            url = f"data:{mime_type};base64,{item['b64_json']}"
        else:
            continue

        item_index = item.get("index")
        images.append(
            GeneratedImage(
                id=f"image-{item_index if item_index is not None else index}",
                url=url,
                mime_type=mime_type,
                size=item.get("size"),
                prompt=item.get("prompt"),
                revised_prompt=item.get("revised_prompt"),
                seed=item.get("seed"),
                created=item.get("created"),
            )
        )
    return images


def should_retry_with_base64(status_code: int, parsed: Any, response_format: str) -> bool:
    """URL 返回模式不可用时，允许用 b64_json 重试一次"""
    if 200 <= status_code < 300:
        return False
    if response_format != ResponseFormats.URL:
        return False
    if status_code == 404:
        return True
    message = extract_error_message(parsed, "")
    return bool(message and _URL_MODE_UNAVAILABLE.search(message))


class ArkClient(BaseProvider):
    """火山引擎 Ark API 客户端"""

    service_name = "火山引擎"

    def __init__(
        self,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self.providers = get_config().providers
        super().__init__(
            client=client,
            timeout=timeout if timeout is not None else self.providers.HTTP_TIMEOUT,
        )
        self.default_api_key = api_key if api_key is not None else self.providers.ARK_API_KEY

    def _resolve_api_key(self, explicit: str | None) -> str:
        return resolve_credential(explicit, self.default_api_key, ARK_CREDENTIAL_NAME)

    async def _call(
        self, url: str, api_key: str, payload: dict[str, Any]
    ) -> tuple[httpx.Response, Any]:
        response = await self._post(
            url,
            headers={"Authorization": f"Bearer {api_key}"},
            json=payload,
        )
        return response, parse_body(response.text)

    async def identify(self, request: IdentifyRequest) -> IdentifyResult:
        """识别图片内容

        Raises:
            MissingCredentialError: 没有可用的 API Key
            ExternalServiceError: 服务返回非 2xx
            NetworkError: 网络请求失败
        """
        api_key = self._resolve_api_key(request.api_key)
        payload = {
            "model": self.providers.ARK_VISION_MODEL,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": request.resolved_prompt(
                                self.providers.DEFAULT_IDENTIFY_PROMPT
                            ),
                        },
                        {
                            "type": "image_url",
                            "image_url": {"url": request.image_data_url},
                        },
                    ],
                }
            ],
        }

        response, parsed = await self._call(self.providers.ark_chat_endpoint, api_key, payload)
        if not response.is_success:
            raise ExternalServiceError(
                extract_error_message(parsed, MessageFormatter.IDENTIFY_FAILED),
                status_code=response.status_code,
                details=parsed,
            )

        blocks = extract_content_blocks(parsed)
        if not blocks:
            logger.info("识别完成，但响应中没有可展示的文本内容")
        return IdentifyResult(data=parsed, blocks=blocks)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """根据提示词生成图像

        首次请求使用 URL 返回模式且该模式不可用时，自动改用 b64_json 重试一次。

        Raises:
            MissingCredentialError: 没有可用的 API Key
            ExternalServiceError: 服务返回非 2xx
            NetworkError: 网络请求失败
        """
        api_key = self._resolve_api_key(request.api_key)
        base_payload = request.build_payload(self.providers.ARK_IMAGE_MODEL)

        response_format: str = request.response_format
        response, parsed = await self._call(
            self.providers.ark_image_endpoint,
            api_key,
            {**base_payload, "response_format": response_format},
        )

        if should_retry_with_base64(response.status_code, parsed, response_format):
            logger.warning(
                f"URL 返回模式不可用 (HTTP {response.status_code})，改用 b64_json 重试"
            )
            response_format = ResponseFormats.B64_JSON
            response, parsed = await self._call(
                self.providers.ark_image_endpoint,
                api_key,
                {**base_payload, "response_format": response_format},
            )

        if not response.is_success:
            raise ExternalServiceError(
                extract_error_message(parsed, MessageFormatter.GENERATE_FAILED),
                status_code=response.status_code,
                details=parsed,
            )

        images = normalize_images(parsed)
        logger.info(f"生成完成，共 {len(images)} 张图像 (response_format={response_format})")
        return GenerationResult(images=images, raw=parsed, response_format=response_format)
