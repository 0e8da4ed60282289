"""密钥提供模块。

把“当前会话使用的密钥”抽象为可注入的提供者，便于替换和测试。
"""

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..config import get_config
from ..exceptions import MissingCredentialError
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


def resolve_credential(explicit: str | None, default: str | None, name: str) -> str:
    """解析最终使用的密钥：请求中显式提供的优先，其次是服务端配置

    Raises:
        MissingCredentialError: 两者都没有
    """
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    if isinstance(default, str) and default.strip():
        return default.strip()
    raise MissingCredentialError(MessageFormatter.missing_credential(name))


@runtime_checkable
class CredentialProvider(Protocol):
    """密钥提供者接口"""

    def get_credential(self) -> str | None: ...


class StaticCredentialProvider:
    """内存中的密钥，可随时修改"""

    def __init__(self, credential: str | None = None):
        self._credential = credential

    def get_credential(self) -> str | None:
        return self._credential

    def set_credential(self, credential: str | None) -> None:
        self._credential = credential


class EnvCredentialProvider:
    """从全局配置（环境变量）读取 remove.bg 密钥"""

    def get_credential(self) -> str | None:
        return get_config().providers.REMOVE_BG_API_KEY


class StoredCredentialProvider:
    """保存在本地 JSON 文件中的密钥

    同一个文件可以按名称保存多个密钥；设置为空值时删除对应条目。
    """

    def __init__(self, path: str | Path, key: str = "remove-bg-api-key"):
        self.path = Path(path).expanduser()
        self.key = key

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"读取密钥文件失败 {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_credential(self) -> str | None:
        value = self._load().get(self.key)
        return value if isinstance(value, str) and value else None

    def set_credential(self, credential: str | None) -> None:
        data = self._load()
        if credential:
            data[self.key] = credential
        else:
            data.pop(self.key, None)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        # 只允许当前用户读写
        self.path.chmod(0o600)


class ChainedCredentialProvider:
    """按顺序询问多个提供者，返回第一个非空密钥"""

    def __init__(self, *providers: CredentialProvider):
        self.providers = providers

    def get_credential(self) -> str | None:
        for provider in self.providers:
            credential = provider.get_credential()
            if credential and credential.strip():
                return credential
        return None
