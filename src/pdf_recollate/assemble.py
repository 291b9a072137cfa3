"""
Assemble sheet images into the destination PDF.
"""

from __future__ import annotations

import io
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

import fitz  # PyMuPDF
from PIL import Image

from .page_images import prepare_image_for_jpeg
from .utils import CollaboratorFailure, ensure_dir


def _jpeg_stream(path: Path, quality: int) -> tuple[bytes, int, int]:
    with Image.open(path) as image:
        prepared = prepare_image_for_jpeg(image)
        buf = io.BytesIO()
        prepared.save(buf, format="JPEG", quality=quality, optimize=True)
        return buf.getvalue(), image.width, image.height


def assemble_pdf(
    sheet_paths: Sequence[Path],
    out_pdf: Path,
    dpi: int,
    quality: int,
) -> int:
    """
    Write one PDF page per sheet image, in sorted file name order.

    Page size follows the image size at `dpi`. The PDF is written to a temp
    file next to `out_pdf` first and only moved into place once complete.
    Returns the number of pages written.
    """

    ordered = sorted(sheet_paths, key=lambda path: path.name)
    if not ordered:
        raise CollaboratorFailure("assemble", "No sheet images to assemble.")

    ensure_dir(out_pdf.parent, dry_run=False)
    temp_path: Optional[Path] = None
    try:
        handle, temp_name = tempfile.mkstemp(
            prefix=f"{out_pdf.stem}_tmp_",
            suffix=out_pdf.suffix or ".pdf",
            dir=str(out_pdf.parent),
        )
        os.close(handle)
        temp_path = Path(temp_name)

        with fitz.open() as doc:
            for sheet_index, path in enumerate(ordered):
                try:
                    stream, width_px, height_px = _jpeg_stream(path, quality)
                except OSError as exc:
                    raise CollaboratorFailure(
                        "assemble", f"Cannot read sheet image {path}: {exc}", sheet_index
                    ) from exc
                width_pt = width_px * 72.0 / dpi
                height_pt = height_px * 72.0 / dpi
                page = doc.new_page(width=width_pt, height=height_pt)
                page.insert_image(page.rect, stream=stream)
            doc.save(str(temp_path), garbage=3, deflate=True)

        temp_path.replace(out_pdf)
        temp_path = None
    except CollaboratorFailure:
        raise
    except Exception as exc:  # includes PyMuPDF save errors
        raise CollaboratorFailure("assemble", f"Failed to write {out_pdf}: {exc}") from exc
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink(missing_ok=True)
    return len(ordered)
