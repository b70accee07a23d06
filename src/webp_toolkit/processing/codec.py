"""图像编解码协作者。

流水线只依赖 ``MediaCodec`` 协议；生产环境使用基于 Pillow 的 ``PillowCodec``，
测试中可以注入确定性的假实现。编解码器在调用时显式传入，不做全局注册。
"""

from __future__ import annotations

import io
import logging
from typing import Any, Optional, Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from webp_toolkit.core.exceptions import DecodeError, EncodeError, ResizeError

LOGGER = logging.getLogger(__name__)

# 扩展名 -> 编码格式
FORMAT_BY_EXTENSION = {
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

SUPPORTED_FORMATS = frozenset(FORMAT_BY_EXTENSION.values())


def format_for_extension(extension: str) -> Optional[str]:
    return FORMAT_BY_EXTENSION.get(extension.lower().lstrip("."))


class MediaCodec(Protocol):
    """流水线需要的编解码能力。"""

    def decode(self, data: bytes) -> Any: ...

    def encode(self, image: Any, image_format: str, quality: float) -> bytes: ...

    def resize(self, image: Any, size: tuple[int, int]) -> Any: ...

    def dimensions(self, image: Any) -> tuple[int, int]: ...


class PillowCodec:
    """使用 Pillow 完成 JPEG/PNG/WEBP 的编解码。"""

    def __init__(self, *, webp_method: int = 4) -> None:
        self.webp_method = webp_method

    def decode(self, data: bytes) -> Image.Image:
        """解码字节并执行 EXIF 旋转校正。

        返回值为新的 Image 对象，调用者负责关闭。
        """

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                img = ImageOps.exif_transpose(img)
                return img.copy()
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            raise DecodeError(f"无法解码图像: {exc}") from exc

    def encode(self, image: Image.Image, image_format: str, quality: float) -> bytes:
        image_format = image_format.upper()
        if image_format not in SUPPORTED_FORMATS:
            raise EncodeError(f"不支持的输出格式: {image_format}")

        quality_value = int(round(max(0.0, min(quality, 100.0))))
        save_params: dict[str, Any] = {}
        image_to_save = image

        if image_format == "JPEG":
            save_params.update(quality=quality_value, optimize=True)
            if image.mode != "RGB":
                image_to_save = _convert_to_rgb(image)
        elif image_format == "WEBP":
            save_params.update(quality=quality_value, method=self.webp_method)
            if image.mode not in {"RGB", "RGBA"}:
                image_to_save = image.convert("RGBA" if _has_alpha(image) else "RGB")
        else:
            save_params.update(optimize=True)
            if image.mode not in {"RGB", "RGBA", "L", "LA", "P"}:
                image_to_save = image.convert("RGBA" if _has_alpha(image) else "RGB")

        buffer = io.BytesIO()
        try:
            image_to_save.save(buffer, format=image_format, **save_params)
        except (OSError, ValueError, KeyError) as exc:
            raise EncodeError(f"{image_format} 编码失败: {exc}") from exc
        return buffer.getvalue()

    def resize(self, image: Image.Image, size: tuple[int, int]) -> Image.Image:
        try:
            return image.resize(size, Image.LANCZOS)
        except (OSError, ValueError) as exc:
            raise ResizeError(f"缩放到 {size[0]}x{size[1]} 失败: {exc}") from exc

    def dimensions(self, image: Image.Image) -> tuple[int, int]:
        return image.size


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in {"RGBA", "LA", "PA"} or (image.mode == "P" and "transparency" in image.info)


def _convert_to_rgb(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 RGB。"""

    if _has_alpha(img):
        # 透明区域以白色背景混合。
        rgba = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background

    return img.convert("RGB")
