"""集成测试。

测试压缩器接口、密钥提供者和 MCP 工具。
"""

from pathlib import Path

import httpx
import pytest
from PIL import Image

from py_image_toolkit_mcp import ArkClient, ImageCompressor, get_version
from py_image_toolkit_mcp.engine.credentials import (
    ChainedCredentialProvider,
    EnvCredentialProvider,
    StaticCredentialProvider,
    StoredCredentialProvider,
    resolve_credential,
)
from py_image_toolkit_mcp.exceptions import DecodeError, MissingCredentialError
from py_image_toolkit_mcp.config import reset_config


class TestImageCompressor:
    """图像压缩器测试"""

    def test_compress_file_writes_next_to_input(
        self, write_image, jpeg_bytes: bytes
    ):
        """测试默认写到输入文件所在目录"""
        input_path = write_image("holiday.jpg", jpeg_bytes)

        result = ImageCompressor().compress_file(input_path, quality=0.6)

        assert result.output_path == input_path.parent / "holiday-compressed.jpeg"
        assert result.output_path.read_bytes() == result.data
        assert result.original_size == len(jpeg_bytes)
        assert result.get_summary().endswith("压缩)")

    def test_compress_transparent_file_to_output_dir(
        self, write_image, transparent_png_bytes: bytes, temp_dir: Path
    ):
        """测试透明图片写到指定目录"""
        input_path = write_image("logo.png", transparent_png_bytes)

        result = ImageCompressor().compress_file(input_path, output_dir=temp_dir / "out")

        assert result.output_path == temp_dir / "out" / "logo-compressed.webp"
        with Image.open(result.output_path) as img:
            assert img.format == "WEBP"
            assert img.size == (120, 80)

    def test_compress_file_explicit_output_path(
        self, write_image, jpeg_bytes: bytes, temp_dir: Path
    ):
        """测试指定输出文件路径"""
        input_path = write_image("a.jpg", jpeg_bytes)
        target = temp_dir / "nested" / "custom.jpg"

        result = ImageCompressor().compress_file(input_path, output_path=target)

        assert result.output_path == target
        assert target.exists()
        # 下载文件名不受输出路径影响
        assert result.filename == "a-compressed.jpeg"

    def test_compress_missing_file(self, temp_dir: Path):
        """测试文件不存在"""
        with pytest.raises(FileNotFoundError):
            ImageCompressor().compress_file(temp_dir / "missing.png")

    def test_compress_corrupt_file(self, write_image, corrupt_bytes: bytes, temp_dir: Path):
        """测试损坏文件不会写出任何输出"""
        input_path = write_image("broken.png", corrupt_bytes)
        with pytest.raises(DecodeError):
            ImageCompressor().compress_file(input_path)
        assert sorted(p.name for p in temp_dir.iterdir()) == ["broken.png"]


class TestCredentials:
    """密钥提供者测试"""

    def test_resolve_credential_order(self):
        """测试显式密钥优先于默认密钥"""
        assert resolve_credential(" mine ", "server", "X") == "mine"
        assert resolve_credential("  ", "server", "X") == "server"
        with pytest.raises(MissingCredentialError, match="X"):
            resolve_credential(None, "", "X")

    def test_env_provider(self, monkeypatch: pytest.MonkeyPatch):
        """测试从环境变量读取"""
        assert EnvCredentialProvider().get_credential() is None
        monkeypatch.setenv("REMOVE_BG_API_KEY", " env-key ")
        reset_config()
        assert EnvCredentialProvider().get_credential() == "env-key"

    def test_stored_provider_roundtrip(self, temp_dir: Path):
        """测试本地保存、读取和清除"""
        path = temp_dir / "creds" / "keys.json"
        provider = StoredCredentialProvider(path)
        assert provider.get_credential() is None

        provider.set_credential("saved-key")
        assert StoredCredentialProvider(path).get_credential() == "saved-key"
        assert path.stat().st_mode & 0o777 == 0o600

        provider.set_credential("")
        assert provider.get_credential() is None

    def test_stored_provider_ignores_broken_file(self, temp_dir: Path):
        """测试密钥文件损坏时视为没有密钥"""
        path = temp_dir / "keys.json"
        path.write_text("{not json", encoding="utf-8")
        assert StoredCredentialProvider(path).get_credential() is None

    def test_chained_provider(self):
        """测试按顺序返回第一个非空密钥"""
        session = StaticCredentialProvider()
        chained = ChainedCredentialProvider(session, StaticCredentialProvider("fallback"))
        assert chained.get_credential() == "fallback"

        session.set_credential("session")
        assert chained.get_credential() == "session"


class TestMCPServer:
    """MCP服务器功能测试"""

    def test_mcp_server_imports(self):
        """测试MCP服务器模块导入"""
        from py_image_toolkit_mcp.mcp_server import mcp

        assert mcp is not None

    def test_mcp_tools_registered(self):
        """测试 MCP 工具名称"""
        from py_image_toolkit_mcp import mcp_server

        names = [
            "compress_image",
            "queue_set_api_key",
            "queue_add_images",
            "queue_remove_item",
            "queue_clear",
            "queue_status",
            "queue_run",
            "queue_export_results",
            "identify_image",
            "generate_image",
        ]
        for name in names:
            tool = getattr(mcp_server, name)
            assert hasattr(tool, "name")
            assert tool.name == name

    def test_compress_image_tool(self, write_image, jpeg_bytes: bytes):
        """测试压缩工具返回结构"""
        from py_image_toolkit_mcp.mcp_server import compress_image

        input_path = write_image("p.jpg", jpeg_bytes)
        response = compress_image.fn(str(input_path), quality=0.5)

        assert response["success"] is True
        assert response["filename"] == "p-compressed.jpeg"
        assert response["quality_used"] == 50
        assert Path(response["output_path"]).exists()

    def test_compress_image_tool_errors(
        self, write_image, corrupt_bytes: bytes, temp_dir: Path
    ):
        """测试压缩工具的错误响应"""
        from py_image_toolkit_mcp.mcp_server import compress_image

        missing = compress_image.fn(str(temp_dir / "none.png"))
        assert missing["success"] is False
        assert missing["error_type"] == "file"

        broken = compress_image.fn(str(write_image("b.png", corrupt_bytes)))
        assert broken["success"] is False
        assert broken["error_type"] == "compression"
        assert broken["error"] == "图片加载失败，请使用其他文件。"

    async def test_queue_tools(
        self,
        write_image,
        transparent_png_bytes: bytes,
        temp_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """测试队列工具：入队、状态、缺少密钥和清空"""
        from py_image_toolkit_mcp import mcp_server

        monkeypatch.setattr(mcp_server.stored_credentials, "path", temp_dir / "keys.json")
        mcp_server.session_credentials.set_credential(None)
        mcp_server.removal_queue.clear()

        added = mcp_server.queue_add_images.fn([str(write_image("a.png", transparent_png_bytes))])
        assert added["success"] is True
        assert added["queue"]["counts"]["pending"] == 1
        item_id = added["added"][0]["id"]

        status = mcp_server.queue_status.fn(active_id=item_id)
        assert status["queue"]["active_id"] == item_id
        assert status["queue"]["items"][0]["status_label"] == "待处理"
        assert status["active_preview"] == {"width": 120, "height": 80}

        run = await mcp_server.queue_run.fn()
        assert run["success"] is False
        assert run["error_type"] == "configuration"

        removed = mcp_server.queue_remove_item.fn(item_id)
        assert removed["queue"]["counts"]["total"] == 0

        unknown = mcp_server.queue_remove_item.fn("missing")
        assert unknown["success"] is False
        assert unknown["error_type"] == "queue"

        mcp_server.queue_clear.fn()
        assert mcp_server.removal_queue.registry.live_count == 0

    async def test_generate_image_validation(self):
        """测试文生图参数错误的响应"""
        from py_image_toolkit_mcp.mcp_server import generate_image

        response = await generate_image.fn("   ")
        assert response["success"] is False
        assert response["error_type"] == "validation"
        assert response["error"] == "提示词不能为空。"

    async def test_generate_image_returns_raw_payload(
        self, mock_http_client, monkeypatch: pytest.MonkeyPatch
    ):
        """测试文生图结果保留服务端原始响应"""
        from py_image_toolkit_mcp import mcp_server

        body = {
            "data": [{"url": "https://example.com/cat.png"}],
            "usage": {"generated_images": 1},
        }
        client = ArkClient(
            api_key="ark-key",
            client=mock_http_client(lambda request: httpx.Response(200, json=body)),
        )
        monkeypatch.setattr(mcp_server, "ark_client", client)

        response = await mcp_server.generate_image.fn("cat")

        assert response["success"] is True
        assert response["raw"] == body
        assert response["response_format"] == "url"
        assert response["images"][0]["url"] == "https://example.com/cat.png"

    async def test_generate_image_writes_base64_images(
        self, mock_http_client, monkeypatch: pytest.MonkeyPatch, temp_dir: Path
    ):
        """测试 base64 图片写入输出目录"""
        from py_image_toolkit_mcp import mcp_server

        client = ArkClient(
            api_key="ark-key",
            client=mock_http_client(
                lambda request: httpx.Response(200, json={"data": [{"b64_json": "aGVsbG8="}]})
            ),
        )
        monkeypatch.setattr(mcp_server, "ark_client", client)

        response = await mcp_server.generate_image.fn(
            "cat", response_format="b64_json", output_dir=str(temp_dir / "out")
        )

        assert response["success"] is True
        (image,) = response["images"]
        assert image["url"] is None
        assert Path(image["output_path"]).read_bytes() == b"hello"

    async def test_generate_image_bad_base64_is_file_error(
        self, mock_http_client, monkeypatch: pytest.MonkeyPatch, temp_dir: Path
    ):
        """测试无法解码的 base64 图片返回文件错误，而不是抛出异常"""
        from py_image_toolkit_mcp import mcp_server

        client = ArkClient(
            api_key="ark-key",
            client=mock_http_client(
                lambda request: httpx.Response(
                    200, json={"data": [{"b64_json": "aGVsbG8=\n"}]}
                )
            ),
        )
        monkeypatch.setattr(mcp_server, "ark_client", client)

        response = await mcp_server.generate_image.fn(
            "cat", response_format="b64_json", output_dir=str(temp_dir / "out")
        )

        assert response["success"] is False
        assert response["error_type"] == "file"
        assert response["details"] == {"file_path": str(temp_dir / "out")}


class TestPackage:
    """包信息测试"""

    def test_version(self):
        assert get_version() == "0.1.0"
