"""
Count pages of the source PDF.

Two interchangeable counters exist: a fast `pdfinfo` reader (poppler) and a
generic PyMuPDF fallback. One is picked once at startup by an availability
check, so the pipeline never branches on which tool is installed.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Protocol, Tuple

import fitz  # PyMuPDF

from .utils import CollaboratorFailure, ConfigurationError


COUNTER_CHOICES = ("auto", "pdfinfo", "fitz")


class PageCounter(Protocol):
    name: str

    def is_available(self) -> bool: ...

    def count(self, pdf_path: Path) -> int: ...


class PdfinfoPageCounter:
    """Reads the `Pages:` line of `pdfinfo` output without loading the PDF."""

    name = "pdfinfo"

    def __init__(self, executable: str = "pdfinfo") -> None:
        self.executable = executable

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def count(self, pdf_path: Path) -> int:
        try:
            output = subprocess.run(
                [self.executable, str(pdf_path)],
                check=True,
                capture_output=True,
            ).stdout.decode("utf-8", errors="replace")
        except (OSError, subprocess.CalledProcessError) as exc:
            raise CollaboratorFailure("count", f"pdfinfo failed on {pdf_path}: {exc}") from exc
        return parse_pdfinfo_pages(output, pdf_path)


def parse_pdfinfo_pages(output: str, pdf_path: Path) -> int:
    for line in output.splitlines():
        if line.startswith("Pages:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                return int(parts[1])
            break
    raise CollaboratorFailure(
        "count", f"Failed to determine number of pages of PDF: {pdf_path}"
    )


class FitzPageCounter:
    """Generic counter: opens the document with PyMuPDF."""

    name = "fitz"

    def is_available(self) -> bool:
        return True

    def count(self, pdf_path: Path) -> int:
        try:
            with fitz.open(str(pdf_path)) as doc:
                return int(doc.page_count)
        except Exception as exc:
            raise CollaboratorFailure("count", f"Cannot open PDF {pdf_path}: {exc}") from exc


def _candidates() -> Tuple[PageCounter, ...]:
    return (PdfinfoPageCounter(), FitzPageCounter())


def select_page_counter(preference: str = "auto") -> PageCounter:
    """
    Pick a counter by name, or the first available one for "auto".
    """

    if preference not in COUNTER_CHOICES:
        raise ConfigurationError(
            f"--page_counter must be one of: {', '.join(COUNTER_CHOICES)}."
        )

    candidates = _candidates()
    if preference == "auto":
        for counter in candidates:
            if counter.is_available():
                return counter
        raise ConfigurationError("No page counter is available.")

    for counter in candidates:
        if counter.name == preference:
            if not counter.is_available():
                raise ConfigurationError(
                    f"Page counter '{preference}' is not available on this system."
                )
            return counter
    raise ConfigurationError(f"Unknown page counter: {preference}")
