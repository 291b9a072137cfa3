"""
Command-line interface for pdf-recollate.

This file focuses on parsing arguments and dispatching to the real work.
Keeping this separate makes the code easier to read and test.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Dict

from . import __version__
from .config import (
    DEFAULT_RECOLLATE,
    deep_merge,
    dump_default_recollate_yaml,
    extract_recollate_section,
    load_yaml,
)
from .counter import COUNTER_CHOICES
from .manifest import default_manifest_path
from .utils import ConfigurationError, UserError, ensure_file_exists, normalize_path


TOP_LEVEL_EXAMPLES = """Examples:
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf"
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf" --workers 4 --dpi 200
  pdf-recollate plan --pages 4
"""

RECOLLATE_EXAMPLES = """Examples:
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf"
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf" --image_format jpg --quality 90
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf" --dry-run --verbose
  pdf-recollate recollate --dump-default-config
  pdf-recollate recollate --pdf "scan.pdf" --out_pdf "booklet.pdf" --config "recollate.yaml"
"""

PLAN_EXAMPLES = """Examples:
  pdf-recollate plan --pages 4
  pdf-recollate plan --pdf "scan.pdf"
"""

RECOLLATE_KEYS = set(DEFAULT_RECOLLATE.keys())


def _require_bool(value: Any, key: str) -> bool:
    """Require a strict boolean value from config/CLI merge output."""

    if isinstance(value, bool):
        return value
    raise ConfigurationError(f"{key} must be true or false.")


def _require_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{key} must be an integer.")
    return value


def _optional_int(value: Any, key: str) -> int | None:
    """Like `_require_int`, but `null` in YAML means "use the default"."""

    if value is None:
        return None
    return _require_int(value, key)


def _build_recollate_effective_config(
    args: argparse.Namespace,
) -> tuple[Dict[str, Any], Path | None]:
    """Resolve defaults < YAML config < explicit CLI flags."""

    effective = deep_merge(DEFAULT_RECOLLATE, {})
    config_path: Path | None = None
    if hasattr(args, "config"):
        config_path = normalize_path(args.config)
        loaded = load_yaml(config_path)
        effective = deep_merge(effective, extract_recollate_section(loaded))

    raw_args = vars(args)
    cli_overrides: Dict[str, Any] = {}
    for key in RECOLLATE_KEYS:
        if key in raw_args:
            cli_overrides[key] = raw_args[key]

    effective = deep_merge(effective, cli_overrides)
    return effective, config_path


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _confirm_overwrite(path: Path, ask: Callable[[str], str] = input) -> bool:
    """Ask before replacing an existing output file. No answer means no."""

    try:
        answer = ask(f"Overwrite {path}? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-recollate",
        description=(
            "Turn a scanned book (covers + two-up spreads) into two-up sheets "
            "that fold back into reading order."
        ),
        epilog=TOP_LEVEL_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress non-error console logs.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug-level console logs.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    recollate = subparsers.add_parser(
        "recollate",
        help="Split spreads and impose them into two-up sheets.",
        epilog=RECOLLATE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    recollate.add_argument(
        "--pdf",
        default=argparse.SUPPRESS,
        help="Input PDF (required unless --dump-default-config).",
    )
    recollate.add_argument(
        "--out_pdf",
        default=argparse.SUPPRESS,
        help="Output PDF (required unless --dump-default-config).",
    )
    recollate.add_argument(
        "--config",
        default=argparse.SUPPRESS,
        help="Optional YAML config for recollate settings.",
    )
    recollate.add_argument(
        "--dump-default-config",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Print default recollate YAML config and exit.",
    )
    recollate.add_argument(
        "--dpi",
        type=int,
        default=argparse.SUPPRESS,
        help="Render DPI (default: 300).",
    )
    recollate.add_argument(
        "--quality",
        type=int,
        default=argparse.SUPPRESS,
        help="JPEG quality 1-100 for intermediate JPEGs and the output PDF (default: 95).",
    )
    recollate.add_argument(
        "--image_format",
        choices=["png", "jpg"],
        default=argparse.SUPPRESS,
        help="Intermediate image format (default: png).",
    )
    recollate.add_argument(
        "--workers",
        type=int,
        default=argparse.SUPPRESS,
        help="Worker pool size; 0 or less uses one per CPU core (default: 0).",
    )
    recollate.add_argument(
        "--executor",
        choices=["process", "thread"],
        default=argparse.SUPPRESS,
        help="Worker pool kind (default: process).",
    )
    recollate.add_argument(
        "--page_counter",
        choices=list(COUNTER_CHOICES),
        default=argparse.SUPPRESS,
        help="How to count source pages (default: auto = pdfinfo, else PyMuPDF).",
    )
    recollate.add_argument(
        "--work_dir",
        default=argparse.SUPPRESS,
        help="Parent folder for the temporary working directory (default: system temp).",
    )
    recollate.add_argument(
        "--overwrite",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Replace an existing output PDF without asking.",
    )
    recollate.add_argument(
        "--dry-run",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Count pages and show the sheet plan without writing files.",
    )
    recollate.add_argument(
        "--manifest",
        default=argparse.SUPPRESS,
        help="Manifest path (default: <out_pdf stem>.manifest.json).",
    )

    plan = subparsers.add_parser(
        "plan",
        help="Print which single pages land on which sheet.",
        epilog=PLAN_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source_group = plan.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--pages", type=int, help="Source PDF page count.")
    source_group.add_argument("--pdf", help="Source PDF to count pages from.")
    plan.add_argument(
        "--page_counter",
        choices=list(COUNTER_CHOICES),
        default="auto",
        help="How to count pages when --pdf is given (default: auto).",
    )

    return parser


def _command_string(argv: list[str]) -> str:
    """Reconstruct a command string for the manifest."""

    # list2cmdline produces a Windows-friendly command representation.
    return subprocess.list2cmdline(argv)


def _command_argv_for_manifest(argv: list[str] | None) -> list[str]:
    """Choose argv used to record manifest command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def _options_for_manifest(effective: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a JSON-friendly options dict.

    Why: merged config values can contain Path objects.
    """

    options: Dict[str, Any] = {}
    for key, value in effective.items():
        if isinstance(value, Path):
            options[key] = str(value)
        else:
            options[key] = value
    options["version"] = __version__
    return options


def _run_plan(args: argparse.Namespace) -> int:
    from .counter import select_page_counter
    from .plan import build_plan, page_count_for

    if args.pages is not None:
        source_page_count = args.pages
    else:
        pdf_path = normalize_path(args.pdf)
        ensure_file_exists(pdf_path, "PDF")
        source_page_count = select_page_counter(args.page_counter).count(pdf_path)

    page_count = page_count_for(source_page_count)
    print(f"# source pages: {source_page_count}, single pages: {page_count}")
    print("sheet\tleft\tright")
    for sheet in build_plan(page_count):
        print(f"{sheet.sheet_index}\t{sheet.left_page}\t{sheet.right_page}")
    return 0


def _run_recollate(
    args: argparse.Namespace,
    argv: list[str] | None,
    verbosity: str,
    ask: Callable[[str], str],
) -> int:
    if getattr(args, "dump_default_config", False):
        print(dump_default_recollate_yaml())
        return 0

    if not hasattr(args, "pdf") or not hasattr(args, "out_pdf"):
        raise UserError(
            "recollate requires --pdf and --out_pdf unless --dump-default-config is used."
        )

    effective, config_path = _build_recollate_effective_config(args)
    pdf_path = normalize_path(args.pdf)
    out_pdf = normalize_path(args.out_pdf)
    manifest_value = effective.get("manifest")
    manifest_path = (
        normalize_path(str(manifest_value)) if manifest_value else default_manifest_path(out_pdf)
    )
    work_dir_value = effective.get("work_dir")
    work_dir = normalize_path(str(work_dir_value)) if work_dir_value else None

    overwrite = _require_bool(effective["overwrite"], "config.overwrite")
    dry_run = _require_bool(effective["dry_run"], "config.dry_run")

    if out_pdf.is_file() and not overwrite and not dry_run:
        if not _confirm_overwrite(out_pdf, ask):
            raise UserError(f"Output PDF exists and was not overwritten: {out_pdf}")
        overwrite = True

    options = _options_for_manifest(effective)
    options["verbosity"] = verbosity
    if config_path is not None:
        options["config_path"] = str(config_path)

    from .pipeline import recollate_pdf

    recollate_pdf(
        pdf_path=pdf_path,
        out_pdf=out_pdf,
        dpi=_require_int(effective["dpi"], "config.dpi"),
        quality=_require_int(effective["quality"], "config.quality"),
        image_format=str(effective["image_format"]),
        workers=_optional_int(effective["workers"], "config.workers"),
        executor=str(effective["executor"]),
        page_counter=str(effective["page_counter"]),
        work_dir=work_dir,
        overwrite=overwrite,
        dry_run=dry_run,
        manifest_path=manifest_path,
        command_string=_command_string(_command_argv_for_manifest(argv)),
        options=options,
    )
    return 0


def main(argv: list[str] | None = None, ask: Callable[[str], str] = input) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        verbosity = _verbosity_from_args(args)

        if args.command == "recollate":
            return _run_recollate(args, argv, verbosity, ask)

        if args.command == "plan":
            return _run_plan(args)

        raise UserError("Unknown command. Use --help for usage.")
    except UserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
