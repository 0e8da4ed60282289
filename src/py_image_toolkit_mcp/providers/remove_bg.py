"""remove.bg 去除背景客户端。

每次调用上传一张图片，成功时返回透明背景 PNG，
无论成功失败都带回积分响应头中的诊断信息。
"""

from dataclasses import dataclass

import httpx

from ..config import get_config
from ..exceptions import ExternalServiceError, MalformedResponseError
from ..models.constants import CreditHeaders
from ..models.queue_item import CreditInfo
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .base import BaseProvider, is_json_response


logger = get_logger()


@dataclass(frozen=True)
class RemovalResult:
    """一次去背景调用的成功结果"""

    data: bytes
    mime_type: str
    credits: CreditInfo


def read_credit_headers(headers: httpx.Headers) -> CreditInfo:
    """读取积分相关响应头"""
    return CreditInfo(
        remaining=headers.get(CreditHeaders.REMAINING) or headers.get(CreditHeaders.BALANCE),
        charged=headers.get(CreditHeaders.CHARGED),
        credit_type=headers.get(CreditHeaders.TYPE),
    )


class RemoveBgClient(BaseProvider):
    """remove.bg API 客户端"""

    service_name = "remove.bg"

    def __init__(
        self,
        endpoint: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        providers = get_config().providers
        super().__init__(
            client=client,
            timeout=timeout if timeout is not None else providers.HTTP_TIMEOUT,
        )
        self.endpoint = endpoint or providers.REMOVE_BG_ENDPOINT
        self.size = providers.REMOVE_BG_SIZE

    async def remove_background(
        self,
        image: bytes,
        filename: str,
        api_key: str,
        mime_type: str | None = None,
    ) -> RemovalResult:
        """去除单张图片的背景

        Raises:
            ExternalServiceError: 服务返回非 2xx，携带错误码、原始响应和积分信息
            NetworkError: 网络请求失败
            MalformedResponseError: 成功响应中没有图片数据
        """
        response = await self._post(
            self.endpoint,
            headers={"X-API-Key": api_key.strip()},
            files={
                "image_file": (filename, image, mime_type or "application/octet-stream")
            },
            data={"size": self.size},
        )
        credits = read_credit_headers(response.headers)

        if not response.is_success:
            raise self._build_error(response, credits)

        if not response.content:
            raise MalformedResponseError("remove.bg 返回了空的图片数据。")

        logger.debug(
            f"去除背景成功 {filename}: 剩余积分 {credits.remaining}, 消耗 {credits.charged}"
        )
        return RemovalResult(data=response.content, mime_type="image/png", credits=credits)

    @staticmethod
    def _build_error(response: httpx.Response, credits: CreditInfo) -> ExternalServiceError:
        """按 结构化错误 > 文本响应 > 通用文案 的顺序构建错误"""
        if is_json_response(response):
            try:
                body = response.json()
            except ValueError:
                body = response.text
            errors = body.get("errors") if isinstance(body, dict) else None
            first_error = errors[0] if isinstance(errors, list) and errors else {}
            if not isinstance(first_error, dict):
                first_error = {}
            code = first_error.get("code")
            title = first_error.get("title") or MessageFormatter.REMOVE_BG_QUOTA_HINT
            return ExternalServiceError(
                MessageFormatter.with_error_code(title, str(code) if code else None),
                status_code=response.status_code,
                code=str(code) if code else None,
                details=body,
                credits=credits,
            )

        text = response.text
        return ExternalServiceError(
            text or MessageFormatter.REMOVE_BG_FAILED,
            status_code=response.status_code,
            details=text,
            credits=credits,
        )
