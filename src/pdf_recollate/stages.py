"""
The two per-index tasks of the pipeline.

Stage 1 (split): render a source page, keep covers whole and cut spreads in
half, writing single pages under their reading-order index.
Stage 2 (compose): look up which two single pages share a sheet and paste
them side by side.

Tasks only talk through files in the working directory. File names are a pure
function of the task index, so concurrent tasks never write the same path.
Everything here is a top-level function taking frozen dataclasses so it can be
shipped to worker processes.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from PIL import Image

from .page_images import append_horizontal, save_image, split_halves
from .plan import CoverPage, classify_source_page, plan_sheet
from .render import render_page_to_file
from .utils import CollaboratorFailure, index_filename


@dataclass(frozen=True)
class StageLayout:
    """Where each stage reads and writes inside the working directory."""

    raw_dir: Path
    split_dir: Path
    sheets_dir: Path
    digits: int
    suffix: str

    def raw_path(self, source_index: int) -> Path:
        return self.raw_dir / index_filename(source_index, self.digits, self.suffix)

    def single_page_path(self, page_index: int) -> Path:
        return self.split_dir / index_filename(page_index, self.digits, self.suffix)

    def sheet_path(self, sheet_index: int) -> Path:
        return self.sheets_dir / index_filename(sheet_index, self.digits, self.suffix)


@dataclass(frozen=True)
class SplitTask:
    pdf_path: Path
    source_index: int
    source_page_count: int
    layout: StageLayout
    dpi: int
    quality: int


@dataclass(frozen=True)
class ComposeTask:
    sheet_index: int
    page_count: int
    layout: StageLayout
    quality: int


def split_source_page(task: SplitTask) -> Dict[str, object]:
    """Render one source page and store the single page(s) it holds."""

    source = classify_source_page(task.source_index, task.source_page_count)
    layout = task.layout
    raw_path = layout.raw_path(task.source_index)
    written: List[str] = []

    try:
        render_page_to_file(task.pdf_path, task.source_index, raw_path, task.dpi, task.quality)

        if isinstance(source, CoverPage):
            target = layout.single_page_path(source.single_index)
            raw_path.replace(target)
            written.append(str(target))
        else:
            with Image.open(raw_path) as spread:
                left, right = split_halves(spread)
            first = save_image(left, layout.single_page_path(source.first_page), task.quality)
            second = save_image(right, layout.single_page_path(source.second_page), task.quality)
            written.extend([str(first), str(second)])
    except CollaboratorFailure:
        raise
    except Exception as exc:  # includes PyMuPDF and Pillow errors
        raise CollaboratorFailure(
            "split", f"Failed to split source page {task.source_index}: {exc}", task.source_index
        ) from exc

    return {
        "source_index": task.source_index,
        "kind": "cover" if isinstance(source, CoverPage) else "spread",
        "single_pages": list(source.single_indices),
        "outputs": written,
    }


def compose_sheet(task: ComposeTask) -> Dict[str, object]:
    """Paste the two single pages planned for `task.sheet_index` into one sheet."""

    plan = plan_sheet(task.sheet_index, task.page_count)
    layout = task.layout
    left_path = layout.single_page_path(plan.left_page)
    right_path = layout.single_page_path(plan.right_page)
    sheet_path = layout.sheet_path(task.sheet_index)

    for path in (left_path, right_path):
        if not path.is_file():
            raise CollaboratorFailure(
                "compose", f"Missing single page image: {path}", task.sheet_index
            )

    try:
        with Image.open(left_path) as left, Image.open(right_path) as right:
            sheet = append_horizontal(left, right)
        save_image(sheet, sheet_path, task.quality)
    except Exception as exc:  # includes Pillow decode errors
        raise CollaboratorFailure(
            "compose", f"Failed to compose sheet {task.sheet_index}: {exc}", task.sheet_index
        ) from exc

    return {
        "sheet_index": task.sheet_index,
        "left_page": plan.left_page,
        "right_page": plan.right_page,
        "output": str(sheet_path),
    }
