"""Image codec service.

Provides a small OOP wrapper around Pillow to bound, recompress and annotate
inspection photos before they are embedded in a report.

Public class: `ImageCodec`

Example:
    codec = ImageCodec()
    jpeg_bytes = codec.resize(raw_bytes, 1200, 1200)
    annotated_png = codec.overlay(raw_bytes, boxes)
"""
from __future__ import annotations

import io
from typing import Iterable, Tuple

from PIL import Image, ImageDraw

from models.image_record import AnnotationBox

DPI = 96
CM_PER_INCH = 2.54


def scale_to_fit(width_px: int, height_px: int, max_width_cm: float = 15.0) -> Tuple[int, int]:
    """Return display dimensions (pixels at 96 DPI) no wider than `max_width_cm`.

    Never upscales; height is scaled by the same factor as width.
    """
    if width_px <= 0 or height_px <= 0:
        raise ValueError("Image dimensions must be positive.")
    max_width_px = (max_width_cm / CM_PER_INCH) * DPI
    scale = min(1.0, max_width_px / width_px)
    return round(width_px * scale), round(height_px * scale)


class ImageCodec:
    """Resize and overlay image bytes.

    Args:
        stroke_color: RGB color of annotation rectangles. Defaults to yellow.
        stroke_width: Rectangle outline width in pixels.
        jpeg_quality: Quality used when re-encoding to JPEG.
        background: Color used when flattening images with alpha to RGB.
    """

    def __init__(
        self,
        stroke_color: Tuple[int, int, int] = (255, 255, 0),
        stroke_width: int = 6,
        jpeg_quality: int = 85,
        background: Tuple[int, int, int] = (255, 255, 255),
    ):
        self.stroke_color = stroke_color
        self.stroke_width = stroke_width
        self.jpeg_quality = jpeg_quality
        self.background = background

    @staticmethod
    def _open(data: bytes) -> Image.Image:
        if not data:
            raise ValueError("Image bytes are empty")
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except Exception as exc:
            raise ValueError("Bytes are not a supported image format") from exc
        return img

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Return an RGB copy, compositing any alpha channel onto the background."""
        if img.mode == "RGB":
            return img
        rgba = img.convert("RGBA")
        flat = Image.new("RGB", rgba.size, self.background)
        flat.paste(rgba, mask=rgba.split()[3])
        return flat

    def dimensions(self, data: bytes) -> Tuple[int, int]:
        return self._open(data).size

    @staticmethod
    def mime_type(data: bytes, default: str = "image/jpeg") -> str:
        """Best-effort MIME type from the image header; `default` when unknown."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                return Image.MIME.get(img.format or "", default)
        except Exception:  # pylint: disable=broad-exception-caught
            return default

    def resize(self, data: bytes, max_width: int = 1200, max_height: int = 1200) -> bytes:
        """Fit the image inside `max_width` x `max_height` and re-encode as JPEG.

        Aspect ratio is preserved and small images are never enlarged.

        Raises:
            ValueError: If the bytes cannot be opened as an image.
        """
        img = self._flatten(self._open(data))
        # thumbnail() only ever shrinks
        img.thumbnail((max_width, max_height), Image.LANCZOS)

        out_io = io.BytesIO()
        img.save(out_io, format="JPEG", quality=self.jpeg_quality, progressive=True, optimize=True)
        return out_io.getvalue()

    def overlay(self, data: bytes, boxes: Iterable[AnnotationBox]) -> bytes:
        """Draw unfilled rectangles onto a copy of the image and return PNG bytes.

        Box coordinates are original-image pixels; the output keeps the
        original dimensions.
        """
        src = self._open(data)
        img = src.convert("RGBA") if "A" in src.getbands() else src.convert("RGB")
        draw = ImageDraw.Draw(img)
        for box in boxes:
            x1, y1, x2, y2 = box.coords
            draw.rectangle((x1, y1, x2, y2), outline=self.stroke_color, width=self.stroke_width)

        out_io = io.BytesIO()
        img.save(out_io, format="PNG", optimize=True)
        return out_io.getvalue()
