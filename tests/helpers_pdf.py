"""
Synthetic scanned-book PDFs for pipeline tests.

Every single page gets its own flat color, so an output sheet can be checked
by sampling the middle of its left and right halves.
"""

from __future__ import annotations

import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple
from uuid import uuid4

import fitz  # PyMuPDF


PAGE_W = 100
PAGE_H = 150

PALETTE: List[Tuple[int, int, int]] = [
    (220, 30, 30),
    (30, 200, 30),
    (30, 30, 220),
    (230, 220, 30),
    (30, 210, 220),
    (220, 30, 210),
    (120, 60, 10),
    (250, 250, 250),
    (10, 10, 10),
    (128, 128, 128),
]


def _fill(color: Tuple[int, int, int]) -> Tuple[float, float, float]:
    return tuple(channel / 255.0 for channel in color)  # type: ignore[return-value]


def build_scanned_book(path: Path, source_page_count: int) -> Path:
    """Covers are one page wide, interior pages are two-page spreads."""

    page_count = 2 * (source_page_count - 1)
    with fitz.open() as doc:
        for index in range(source_page_count):
            if index in (0, source_page_count - 1):
                single = 0 if index == 0 else page_count - 1
                page = doc.new_page(width=PAGE_W, height=PAGE_H)
                page.draw_rect(page.rect, color=None, fill=_fill(PALETTE[single]))
                continue
            first = 1 + (index - 1) * 2
            page = doc.new_page(width=2 * PAGE_W, height=PAGE_H)
            page.draw_rect(
                fitz.Rect(0, 0, PAGE_W, PAGE_H), color=None, fill=_fill(PALETTE[first])
            )
            page.draw_rect(
                fitz.Rect(PAGE_W, 0, 2 * PAGE_W, PAGE_H),
                color=None,
                fill=_fill(PALETTE[first + 1]),
            )
        doc.save(str(path))
    return path


def sample_sheet_colors(pdf_path: Path, sheet_index: int) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Color at the center of the left and right half of one output page."""

    with fitz.open(str(pdf_path)) as doc:
        page = doc.load_page(sheet_index)
        pixmap = page.get_pixmap(alpha=False)
        y = pixmap.height // 2
        left = pixmap.pixel(pixmap.width // 4, y)
        right = pixmap.pixel(3 * pixmap.width // 4, y)
    return tuple(left), tuple(right)


def close_to(actual: Tuple[int, ...], expected: Tuple[int, ...], tolerance: int = 40) -> bool:
    return all(abs(a - e) <= tolerance for a, e in zip(actual, expected))


@contextmanager
def workspace_temp_dir(prefix: str) -> Iterator[Path]:
    root = Path(__file__).resolve().parents[1] / ".tmp_tests"
    root.mkdir(parents=True, exist_ok=True)
    tmp = root / f"{prefix}_{uuid4().hex}"
    tmp.mkdir(parents=True, exist_ok=False)
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)
