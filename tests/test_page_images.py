"""
Unit tests for the half-split and side-by-side paste helpers.

These tests build synthetic images in memory, so they are fast and do not
require filesystem fixtures.
"""

from __future__ import annotations

from pathlib import Path
import sys
import unittest

from PIL import Image, ImageDraw

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from pdf_recollate.page_images import append_horizontal, save_image, split_halves  # noqa: E402
from pdf_recollate.utils import UserError  # noqa: E402

from helpers_pdf import workspace_temp_dir  # noqa: E402


def _make_two_tone_spread(width: int = 400, height: int = 200) -> Image.Image:
    """Left half red, right half blue."""

    image = Image.new("RGB", (width, height), color=(0, 0, 255))
    draw = ImageDraw.Draw(image)
    draw.rectangle((0, 0, width // 2 - 1, height - 1), fill=(255, 0, 0))
    return image


class SplitHalvesTests(unittest.TestCase):
    def test_even_width_splits_in_the_middle(self) -> None:
        left, right = split_halves(_make_two_tone_spread())
        self.assertEqual(left.size, (200, 200))
        self.assertEqual(right.size, (200, 200))
        self.assertEqual(left.getpixel((199, 100)), (255, 0, 0))
        self.assertEqual(right.getpixel((0, 100)), (0, 0, 255))

    def test_odd_width_gives_extra_column_to_the_right(self) -> None:
        left, right = split_halves(Image.new("RGB", (401, 50)))
        self.assertEqual(left.size, (200, 50))
        self.assertEqual(right.size, (201, 50))

    def test_too_narrow_image_rejected(self) -> None:
        with self.assertRaises(UserError):
            split_halves(Image.new("RGB", (1, 50)))


class AppendHorizontalTests(unittest.TestCase):
    def test_left_then_right_without_gap(self) -> None:
        left = Image.new("RGB", (30, 20), color=(255, 0, 0))
        right = Image.new("RGB", (40, 20), color=(0, 255, 0))
        sheet = append_horizontal(left, right)
        self.assertEqual(sheet.size, (70, 20))
        self.assertEqual(sheet.getpixel((29, 10)), (255, 0, 0))
        self.assertEqual(sheet.getpixel((30, 10)), (0, 255, 0))

    def test_uneven_heights_are_top_aligned_on_white(self) -> None:
        left = Image.new("RGB", (10, 10), color=(0, 0, 0))
        right = Image.new("RGB", (10, 20), color=(0, 0, 0))
        sheet = append_horizontal(left, right)
        self.assertEqual(sheet.size, (20, 20))
        self.assertEqual(sheet.getpixel((5, 15)), (255, 255, 255))

    def test_mixed_modes_become_rgb(self) -> None:
        sheet = append_horizontal(Image.new("L", (5, 5)), Image.new("RGBA", (5, 5)))
        self.assertEqual(sheet.mode, "RGB")

    def test_split_then_append_restores_spread(self) -> None:
        spread = _make_two_tone_spread()
        restored = append_horizontal(*split_halves(spread))
        self.assertEqual(restored.tobytes(), spread.tobytes())


class SaveImageTests(unittest.TestCase):
    def test_format_follows_suffix(self) -> None:
        with workspace_temp_dir("test_save") as tmpdir:
            rgba = Image.new("RGBA", (8, 8), color=(10, 20, 30, 0))
            save_image(rgba, tmpdir / "a.jpg", quality=80)
            save_image(rgba, tmpdir / "a.png", quality=80)
            with Image.open(tmpdir / "a.jpg") as jpg, Image.open(tmpdir / "a.png") as png:
                self.assertEqual(jpg.format, "JPEG")
                self.assertEqual(png.format, "PNG")
                self.assertEqual(png.mode, "RGBA")


if __name__ == "__main__":
    unittest.main()
