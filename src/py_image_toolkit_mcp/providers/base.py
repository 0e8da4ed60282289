"""外部服务客户端基础模块。

统一 HTTP 发送、响应体解析和错误消息提取。
"""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from ..exceptions import NetworkError
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


def parse_body(text: str) -> Any:
    """尽量把响应体解析为 JSON，失败时原样返回文本，空响应返回 None"""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def extract_error_message(parsed: Any, default: str) -> str:
    """按 error.message > message > 默认文案 的顺序提取错误消息"""
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if parsed.get("message"):
            return str(parsed["message"])
    return default


def is_json_response(response: httpx.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "")


class BaseProvider:
    """外部服务客户端基类

    可以注入共享的 httpx.AsyncClient（测试中配合 MockTransport 使用），
    否则每次调用创建一个临时客户端。
    """

    service_name = "外部服务"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._client = client
        self.timeout = timeout

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        """发送 POST 请求，传输层失败转换为 NetworkError"""
        try:
            async with self._session() as client:
                response = await client.post(url, **kwargs)
                await response.aread()
                return response
        except httpx.TransportError as e:
            logger.error(MessageFormatter.operation_failed(f"调用{self.service_name}", url, e))
            raise NetworkError(
                f"无法连接{self.service_name}，请检查网络后重试。", str(e)
            ) from e

    async def aclose(self) -> None:
        """关闭注入的共享客户端"""
        if self._client is not None:
            await self._client.aclose()
