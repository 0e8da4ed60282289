"""批量处理引擎模块。

包含密钥提供、顺序执行和批量去除背景队列。
"""

from .credentials import (
    ChainedCredentialProvider,
    CredentialProvider,
    EnvCredentialProvider,
    StaticCredentialProvider,
    StoredCredentialProvider,
    resolve_credential,
)
from .executor import SequentialExecutor
from .batch import BackgroundRemovalQueue, BackgroundRemover


__all__ = [
    "BackgroundRemovalQueue",
    "BackgroundRemover",
    "ChainedCredentialProvider",
    "CredentialProvider",
    "EnvCredentialProvider",
    "SequentialExecutor",
    "StaticCredentialProvider",
    "StoredCredentialProvider",
    "resolve_credential",
]
