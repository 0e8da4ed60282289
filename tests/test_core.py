"""核心功能测试。

测试图像压缩流水线：格式选择、透明通道、尺寸保持和错误处理。
"""

from io import BytesIO

import pytest
from PIL import Image

from py_image_toolkit_mcp.core import compression_engine
from py_image_toolkit_mcp.core.compression_engine import compress
from py_image_toolkit_mcp.core.formats import FormatProcessor
from py_image_toolkit_mcp.exceptions import DecodeError, EncodeError
from py_image_toolkit_mcp.models.compression import CompressionRequest


def _open(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


class TestCompressionEngine:
    """压缩引擎测试"""

    def test_transparent_png_becomes_webp(self, transparent_png_bytes: bytes):
        """测试透明 PNG 输出 WEBP 并保留透明像素"""
        result = compress(
            CompressionRequest(
                source_bytes=transparent_png_bytes, quality=0.7, filename="logo.png"
            )
        )

        assert result.success
        assert result.format_used == "WEBP"
        assert result.mime_type == "image/webp"
        assert result.filename == "logo-compressed.webp"
        assert result.dimensions == (120, 80)

        with _open(result.data) as img:
            assert img.format == "WEBP"
            assert img.size == (120, 80)
            assert img.mode == "RGBA"
            # 左下角在源图中完全透明
            assert img.getpixel((0, 79))[3] == 0

    def test_jpeg_stays_jpeg(self, jpeg_bytes: bytes):
        """测试 JPEG 输出 JPEG，文件名使用 MIME 子类型作为扩展名"""
        result = compress(
            CompressionRequest(source_bytes=jpeg_bytes, quality=0.5, filename="photo.jpg")
        )

        assert result.format_used == "JPEG"
        assert result.mime_type == "image/jpeg"
        assert result.filename == "photo-compressed.jpeg"
        assert result.quality_used == 50
        with _open(result.data) as img:
            assert img.format == "JPEG"
            assert img.size == (200, 150)

    def test_opaque_png_uses_source_format_rule(self, opaque_png_bytes: bytes):
        """测试格式选择只看源格式：不透明的 PNG 同样输出 WEBP"""
        result = compress(CompressionRequest(source_bytes=opaque_png_bytes))

        assert result.format_used == "WEBP"
        with _open(result.data) as img:
            assert img.mode == "RGB"
            assert img.size == (64, 48)

    def test_webp_stays_webp(self, webp_bytes: bytes):
        """测试 WEBP 输出 WEBP"""
        result = compress(CompressionRequest(source_bytes=webp_bytes, filename="a.webp"))

        assert result.format_used == "WEBP"
        assert result.filename == "a-compressed.webp"

    def test_gif_becomes_jpeg_on_white(self):
        """测试其他格式输出 JPEG，透明区域铺白底，动画只取第一帧"""
        frames = [
            Image.new("P", (30, 30), color=0),
            Image.new("P", (30, 30), color=1),
        ]
        buffer = BytesIO()
        frames[0].save(
            buffer, "GIF", save_all=True, append_images=frames[1:], transparency=0
        )

        result = compress(CompressionRequest(source_bytes=buffer.getvalue(), filename="anim.gif"))

        assert result.format_used == "JPEG"
        assert result.filename == "anim-compressed.jpeg"
        with _open(result.data) as img:
            assert img.mode == "RGB"
            r, g, b = img.getpixel((15, 15))
            assert min(r, g, b) > 240

    def test_missing_filename_uses_fallback_name(self, jpeg_bytes: bytes):
        """测试没有文件名时使用 compressed-image.<扩展名>"""
        result = compress(CompressionRequest(source_bytes=jpeg_bytes))
        assert result.filename == "compressed-image.jpeg"

    def test_declared_source_format_wins(self, jpeg_bytes: bytes):
        """测试调用方声明的源格式优先于解码识别结果"""
        result = compress(CompressionRequest(source_bytes=jpeg_bytes, source_format="png"))
        assert result.format_used == "WEBP"

    def test_exif_orientation_applied(self, rotated_jpeg_bytes: bytes):
        """测试按 EXIF 方向旋转后的尺寸"""
        result = compress(CompressionRequest(source_bytes=rotated_jpeg_bytes))
        assert result.dimensions == (40, 80)
        with _open(result.data) as img:
            assert img.size == (40, 80)

    def test_lower_quality_is_smaller(self, jpeg_bytes: bytes):
        """测试质量越低输出越小"""
        low = compress(CompressionRequest(source_bytes=jpeg_bytes, quality=0.2))
        high = compress(CompressionRequest(source_bytes=jpeg_bytes, quality=1.0))
        assert low.compressed_size < high.compressed_size
        assert high.quality_used == 100

    def test_corrupt_input_raises_decode_error(self, corrupt_bytes: bytes):
        """测试无法解码的数据"""
        with pytest.raises(DecodeError) as exc_info:
            compress(CompressionRequest(source_bytes=corrupt_bytes, filename="bad.png"))
        assert exc_info.value.message == "图片加载失败，请使用其他文件。"

    def test_encode_failure_raises_encode_error(
        self, jpeg_bytes: bytes, monkeypatch: pytest.MonkeyPatch
    ):
        """测试编码失败时抛出 EncodeError，不返回部分输出"""
        monkeypatch.setattr(
            compression_engine,
            "get_save_parameters",
            lambda format_name, quality: ({"format": "NOT-A-FORMAT"}, 70),
        )
        with pytest.raises(EncodeError):
            compress(CompressionRequest(source_bytes=jpeg_bytes))


class TestFormatProcessor:
    """格式处理器测试"""

    @pytest.mark.parametrize(
        ("source_format", "expected"),
        [
            ("PNG", "WEBP"),
            ("png", "WEBP"),
            ("WEBP", "WEBP"),
            ("JPEG", "JPEG"),
            ("GIF", "JPEG"),
            ("BMP", "JPEG"),
            (None, "JPEG"),
        ],
    )
    def test_select_target_format(self, source_format, expected):
        """测试输出格式选择"""
        assert FormatProcessor.select_target_format(source_format) == expected

    def test_prepare_for_jpeg_flattens_alpha_on_white(self):
        """测试 JPEG 准备：透明像素变为白色"""
        img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        img.putpixel((5, 5), (255, 0, 0, 255))

        surface = FormatProcessor().prepare_for_format(img, "JPEG")

        assert surface.mode == "RGB"
        assert surface.getpixel((0, 0)) == (255, 255, 255)
        assert surface.getpixel((5, 5)) == (255, 0, 0)

    def test_prepare_for_jpeg_converts_cmyk(self):
        """测试 CMYK 图片转换为 RGB"""
        img = Image.new("CMYK", (8, 8), (0, 0, 0, 0))
        surface = FormatProcessor().prepare_for_format(img, "JPEG")
        assert surface.mode == "RGB"
        assert surface.size == (8, 8)

    def test_prepare_for_webp_keeps_alpha(self):
        """测试 WEBP 准备保留透明通道"""
        img = Image.new("LA", (8, 8), (0, 0))
        surface = FormatProcessor().prepare_for_format(img, "WEBP")
        assert surface.mode == "RGBA"

    def test_prepare_for_webp_without_alpha(self):
        """测试无透明信息的调色板图片转换为 RGB"""
        img = Image.new("P", (8, 8), 3)
        surface = FormatProcessor().prepare_for_format(img, "WEBP")
        assert surface.mode == "RGB"


class TestCompressionRequest:
    """压缩请求模型测试"""

    @pytest.mark.parametrize(
        ("source_format", "expected"),
        [("png", True), ("WEBP", True), ("jpeg", False), (None, False)],
    )
    def test_preserve_alpha_follows_source_format(self, source_format, expected):
        """测试是否保留透明度只取决于源格式"""
        request = CompressionRequest(source_bytes=b"x", source_format=source_format)
        assert request.preserve_alpha is expected

    def test_request_is_immutable(self):
        """测试请求使用后不可修改"""
        request = CompressionRequest(source_bytes=b"x")
        with pytest.raises(Exception):
            request.quality = 0.5
