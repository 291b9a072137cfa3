"""
Split spread images into halves and paste pages side by side.

Why this module exists:
- Spread scans become two single pages by a plain 50% width cut.
- Output sheets are two single pages appended horizontally.
Both are small Pillow operations, kept apart from the pipeline so they can be
tested on synthetic images.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

from PIL import Image

from .utils import UserError


def split_halves(image: Image.Image) -> Tuple[Image.Image, Image.Image]:
    """
    Split a spread into left and right halves at the center column.

    Odd widths give the extra column to the right half. The crops are copied
    so no reference to the source image (or its frame/offset) is kept.
    """

    width, height = image.size
    if width < 2:
        raise UserError("Image is too narrow to split into two pages.")
    middle = width // 2
    left = image.crop((0, 0, middle, height))
    right = image.crop((middle, 0, width, height))
    left.load()
    right.load()
    return left, right


def append_horizontal(left: Image.Image, right: Image.Image) -> Image.Image:
    """Paste `right` directly after `left` on a white canvas, top-aligned."""

    if left.mode == right.mode and left.mode in {"RGB", "L"}:
        mode = left.mode
    else:
        mode = "RGB"
    width = left.width + right.width
    height = max(left.height, right.height)
    background = 255 if mode == "L" else (255, 255, 255)
    canvas = Image.new(mode, (width, height), background)
    canvas.paste(left.convert(mode), (0, 0))
    canvas.paste(right.convert(mode), (left.width, 0))
    return canvas


def prepare_image_for_jpeg(image: Image.Image) -> Image.Image:
    if image.mode in {"RGB", "L"}:
        return image
    # Transparent images are flattened onto white before JPEG encoding.
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in {"RGBA", "LA"}:
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    return image.convert("RGB")


def save_image(image: Image.Image, path: Path, quality: int) -> Path:
    """Write PNG or JPEG depending on the suffix of `path`."""

    if path.suffix.lower() in {".jpg", ".jpeg"}:
        prepare_image_for_jpeg(image).save(path, format="JPEG", quality=quality)
    else:
        image.save(path, format="PNG")
    return path
