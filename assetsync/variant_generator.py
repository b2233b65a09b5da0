"""
VariantGenerator - Resizes and re-encodes source images into variants.
"""

import base64
import io
import logging
import os
import posixpath
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from PIL import Image, ImageFilter, ImageOps

from .asset_config import DEFAULT_QUALITY, ORIGINAL, Width
from .asset_record import Placeholder
from .exceptions import EncodingError

CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.avif': 'image/avif',
    '.svg': 'image/svg+xml',
    '.pdf': 'application/pdf',
    '.ico': 'image/x-icon',
    '.bmp': 'image/bmp',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
}

PIL_FORMATS = {
    'webp': 'WEBP',
    'avif': 'AVIF',
    'jpeg': 'JPEG',
    'jpg': 'JPEG',
    'png': 'PNG',
}

# AVIF quality runs on a different scale from WebP/JPEG, so it keeps its own
# tiers instead of the configured per-width quality: (max width, quality).
AVIF_QUALITY_TIERS = ((400, 75), (800, 65), (None, 55))


def get_content_type(key: str) -> str:
    """Content type for a key or filename, from its extension."""
    return CONTENT_TYPES.get(os.path.splitext(key)[1].lower(), 'application/octet-stream')


def output_key(relative_path: str, width: Width, fmt: str) -> str:
    """
    Store key for a variant.

    'images/hero.jpg', 800, 'webp' -> 'images/hero-800.webp'
    'images/anim.gif', 'original', 'webp' -> 'images/anim.webp'
    """
    root, _ = posixpath.splitext(relative_path)
    if width == ORIGINAL:
        return f"{root}.{fmt}"
    return f"{root}-{width}.{fmt}"


@dataclass
class Variant:
    """An encoded variant ready for upload."""
    data: bytes
    content_type: str
    width: int
    height: int
    format: str


class VariantGenerator:
    """
    Generates resized, re-encoded variants from source images using Pillow.

    Never upscales: a target width above the source width is clamped to
    the source width. EXIF orientation is applied and all metadata is
    dropped from the output.
    """

    PLACEHOLDER_WIDTH = 20
    PLACEHOLDER_QUALITY = 60
    PLACEHOLDER_BLUR = 1.0

    def __init__(
        self,
        quality_for: Optional[Callable[[Width], int]] = None,
        effort: int = 6,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize variant generator.

        Args:
            quality_for: Width -> quality lookup for WebP/JPEG output
            effort: Encoder effort, 0 (fast) to 6 (small files)
            logger: Optional logger instance
        """
        self.quality_for = quality_for or (lambda width: DEFAULT_QUALITY)
        self.effort = effort
        self.logger = logger or logging.getLogger(__name__)

    def quality(self, width: Width, fmt: str) -> int:
        """Encoder quality for a (width, format) pair; smaller widths get higher quality."""
        if fmt == 'avif':
            for max_width, value in AVIF_QUALITY_TIERS:
                if max_width is None or (width != ORIGINAL and width <= max_width):
                    return value
        return self.quality_for(width)

    def generate(self, image_data: bytes, width: Width, fmt: str) -> Variant:
        """
        Render one variant.

        Args:
            image_data: Source image as bytes
            width: Target width in pixels, or ORIGINAL
            fmt: Output format ('webp', 'avif', 'jpeg', 'png')

        Returns:
            Variant with the encoded bytes

        Raises:
            EncodingError: Corrupt input or unsupported output
        """
        pil_format = PIL_FORMATS.get(fmt)
        if pil_format is None:
            raise EncodingError(f"Unsupported output format: {fmt}")

        try:
            img = self._open(image_data)
            animated = getattr(img, 'is_animated', False) and pil_format == 'WEBP'

            output = io.BytesIO()
            if animated:
                img.save(output, format='WEBP', save_all=True,
                         quality=self.quality(width, fmt), method=self.effort)
                out_size = img.size
            else:
                img = ImageOps.exif_transpose(img)
                img = self._convert_color_mode(img, pil_format)
                img = self._resize(img, width)
                img.info = {}
                self._save(img, output, pil_format, width, fmt)
                out_size = img.size
        except EncodingError:
            raise
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise EncodingError(f"Cannot encode {fmt} at width {width}: {e}") from e

        return Variant(
            data=output.getvalue(),
            content_type=get_content_type(f"variant.{fmt}"),
            width=out_size[0],
            height=out_size[1],
            format=fmt,
        )

    def generate_placeholder(self, image_data: bytes) -> Placeholder:
        """
        Build a tiny blurred WebP preview as a data URI.

        Raises:
            EncodingError: The source cannot be decoded
        """
        try:
            img = ImageOps.exif_transpose(self._open(image_data))
            width, height = img.size
            aspect_ratio = width / height

            target_height = max(1, round(self.PLACEHOLDER_WIDTH / aspect_ratio))
            tiny = img.convert('RGBA' if self._has_alpha(img) else 'RGB')
            tiny = tiny.resize((self.PLACEHOLDER_WIDTH, target_height), Image.Resampling.BICUBIC)
            tiny = tiny.filter(ImageFilter.GaussianBlur(self.PLACEHOLDER_BLUR))

            output = io.BytesIO()
            tiny.save(output, format='WEBP', quality=self.PLACEHOLDER_QUALITY, method=0)
        except (OSError, ValueError, SyntaxError, ZeroDivisionError) as e:
            raise EncodingError(f"Cannot build placeholder: {e}") from e

        encoded = base64.b64encode(output.getvalue()).decode('ascii')
        return Placeholder(
            base64=f"data:image/webp;base64,{encoded}",
            width=width,
            height=height,
            aspect_ratio=aspect_ratio,
        )

    def intrinsic_size(self, image_data: bytes) -> Tuple[int, int]:
        """Source dimensions after EXIF orientation."""
        try:
            return ImageOps.exif_transpose(self._open(image_data)).size
        except (OSError, ValueError, SyntaxError) as e:
            raise EncodingError(f"Cannot read image size: {e}") from e

    @staticmethod
    def _open(image_data: bytes) -> Image.Image:
        img = Image.open(io.BytesIO(image_data))
        img.load()
        return img

    def _resize(self, img: Image.Image, width: Width) -> Image.Image:
        """Downscale to width keeping aspect ratio; never enlarge."""
        if width == ORIGINAL or width >= img.width:
            if width != ORIGINAL and width > img.width:
                self.logger.debug(f"Clamping width {width} to source width {img.width}")
            return img
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
        return resized.filter(ImageFilter.UnsharpMask(radius=0.5, percent=50, threshold=0))

    @staticmethod
    def _has_alpha(img: Image.Image) -> bool:
        return img.mode in ('RGBA', 'LA', 'PA') or (img.mode == 'P' and 'transparency' in img.info)

    def _convert_color_mode(self, img: Image.Image, pil_format: str) -> Image.Image:
        """Convert to a mode the output format can store."""
        if pil_format == 'JPEG':
            if self._has_alpha(img):
                rgba = img.convert('RGBA')
                background = Image.new('RGB', rgba.size, (255, 255, 255))
                background.paste(rgba, mask=rgba.split()[-1])
                return background
            return img if img.mode == 'RGB' else img.convert('RGB')
        if self._has_alpha(img):
            return img if img.mode == 'RGBA' else img.convert('RGBA')
        return img if img.mode == 'RGB' else img.convert('RGB')

    def _save(self, img: Image.Image, output: io.BytesIO, pil_format: str, width: Width, fmt: str) -> None:
        quality = self.quality(width, fmt)
        if pil_format == 'WEBP':
            img.save(output, format='WEBP', quality=quality, method=self.effort)
        elif pil_format == 'AVIF':
            subsampling = '4:2:0' if width == ORIGINAL or width > 800 else '4:4:4'
            img.save(output, format='AVIF', quality=quality, subsampling=subsampling)
        elif pil_format == 'JPEG':
            img.save(output, format='JPEG', quality=quality, optimize=True, progressive=True)
        else:
            img.save(output, format='PNG', optimize=True)
