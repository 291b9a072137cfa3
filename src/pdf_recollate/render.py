"""
Render single PDF pages to image files.

Why this module exists:
- Keeps the PyMuPDF rasterizing call in one place.
- Each call opens its own document so it can run inside a worker process.
- MuPDF is not thread-safe, so calls from threads of one process are
  serialized by a module lock; worker processes each hold their own.
"""

from __future__ import annotations

from pathlib import Path
import threading

import fitz  # PyMuPDF


IMAGE_FORMATS = ("png", "jpg")

_FITZ_LOCK = threading.Lock()


def image_suffix(image_format: str) -> str:
    return ".jpg" if image_format.lower() in {"jpg", "jpeg"} else ".png"


def render_page_to_file(
    pdf_path: Path,
    page_index: int,
    out_path: Path,
    dpi: int,
    quality: int,
) -> Path:
    """
    Rasterize one page (zero-based) to `out_path`.

    The file suffix decides the format; `quality` only matters for JPEG.
    """

    # DPI -> PDF "zoom" factor. PDFs are 72 DPI by default.
    zoom = dpi / 72.0
    matrix = fitz.Matrix(zoom, zoom)

    with _FITZ_LOCK, fitz.open(str(pdf_path)) as doc:
        page = doc.load_page(page_index)
        pixmap = page.get_pixmap(matrix=matrix, alpha=False)
        if out_path.suffix.lower() in {".jpg", ".jpeg"}:
            pixmap.save(str(out_path), jpg_quality=quality)
        else:
            pixmap.save(str(out_path))
    return out_path
