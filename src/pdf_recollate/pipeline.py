"""
Run the recollation pipeline end to end.

Why this module exists:
- Owns the working directory and guarantees it is removed on every exit path.
- Runs stage 1 (split) and stage 2 (compose) on a bounded worker pool with a
  full barrier between them, then assembles the output PDF.
- Records everything in a run manifest, like every other command.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import shutil
import tempfile
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .assemble import assemble_pdf
from .counter import select_page_counter
from .manifest import ManifestRecorder
from .plan import build_plan, page_count_for, sheet_count_for
from .render import IMAGE_FORMATS, image_suffix
from .stages import ComposeTask, SplitTask, StageLayout, compose_sheet, split_source_page
from .utils import (
    CollaboratorFailure,
    ConfigurationError,
    ResourceError,
    UserError,
    compute_index_digits,
    ensure_file_exists,
    ensure_file_path,
    resolve_workers,
    validate_choice,
    validate_positive_int,
    validate_quality,
)


EXECUTOR_CHOICES = ("process", "thread")


@dataclass(frozen=True)
class WorkingDirectory:
    """Scratch area: raw renders, split single pages, final sheets."""

    root: Path

    @property
    def raw_dir(self) -> Path:
        return self.root / "raw"

    @property
    def split_dir(self) -> Path:
        return self.root / "split"

    @property
    def sheets_dir(self) -> Path:
        return self.root / "sheets"

    def layout(self, digits: int, suffix: str) -> StageLayout:
        return StageLayout(
            raw_dir=self.raw_dir,
            split_dir=self.split_dir,
            sheets_dir=self.sheets_dir,
            digits=digits,
            suffix=suffix,
        )


@contextmanager
def working_directory(parent: Optional[Path] = None) -> Iterator[WorkingDirectory]:
    """
    Create a fresh working directory and remove it when the block exits.

    Removal happens on success and on any error. A removal failure after an
    error is ignored so the original error is the one reported.
    """

    try:
        root = Path(
            tempfile.mkdtemp(
                prefix="pdf-recollate-",
                dir=str(parent) if parent is not None else None,
            )
        )
    except OSError as exc:
        raise ResourceError(f"Cannot create working directory in {parent}: {exc}") from exc

    workdir = WorkingDirectory(root)
    try:
        for area in (workdir.raw_dir, workdir.split_dir, workdir.sheets_dir):
            area.mkdir()
    except OSError as exc:
        shutil.rmtree(root, ignore_errors=True)
        raise ResourceError(f"Cannot prepare working directory {root}: {exc}") from exc

    try:
        yield workdir
    except BaseException:
        shutil.rmtree(root, ignore_errors=True)
        raise

    try:
        shutil.rmtree(root)
    except OSError as exc:
        raise ResourceError(f"Cannot remove working directory {root}: {exc}") from exc


def _make_executor(kind: str, workers: int) -> Executor:
    if kind == "thread":
        return ThreadPoolExecutor(max_workers=workers)
    return ProcessPoolExecutor(max_workers=workers)


def run_stage(
    stage: str,
    fn: Callable[[Any], Dict[str, object]],
    tasks: Sequence[Any],
    index_of: Callable[[Any], int],
    workers: int,
    executor: str,
    recorder: ManifestRecorder,
    action: str,
) -> List[Dict[str, object]]:
    """
    Run `fn` over every task on a bounded pool and wait for all of them.

    The pool is shut down (waiting for in-flight tasks) before this returns,
    so nothing from this stage is still running when the next one starts.
    On the first failure, tasks that have not started are cancelled and the
    failure is raised once the pool is drained.
    """

    total = len(tasks)
    started = time.monotonic()
    results: List[Dict[str, object]] = []
    failure: Optional[BaseException] = None
    failed_index: Optional[int] = None

    recorder.log(f"[{stage}] {total} task(s) on {min(workers, total)} {executor} worker(s).")

    with _make_executor(executor, max(1, min(workers, total))) as pool:
        futures: Dict[Future, int] = {pool.submit(fn, task): index_of(task) for task in tasks}
        for future in as_completed(futures):
            index = futures[future]
            if future.cancelled():
                recorder.add_action(action, "cancelled", index=index)
                continue
            exc = future.exception()
            if exc is not None:
                recorder.add_action(action, "error", index=index, error=str(exc))
                if failure is None:
                    failure = exc
                    failed_index = index
                    recorder.log(f"[{stage}] index {index} failed: {exc}", level="debug")
                    for pending in futures:
                        pending.cancel()
                continue
            record = future.result()
            results.append(record)
            recorder.add_action(action, "written", index=index, **record)
            recorder.progress(stage, len(results), total)

    seconds = time.monotonic() - started
    recorder.add_stage(
        stage,
        status="error" if failure is not None else "ok",
        tasks=total,
        completed=len(results),
        seconds=seconds,
    )

    if failure is not None:
        if isinstance(failure, UserError):
            raise failure
        raise CollaboratorFailure(stage, str(failure), failed_index) from failure

    recorder.log(f"[{stage}] finished {total} task(s) in {seconds:.2f}s.")
    return results


def recollate_pdf(
    pdf_path: Path,
    out_pdf: Path,
    dpi: int,
    quality: int,
    image_format: str,
    workers: Optional[int],
    executor: str,
    page_counter: str,
    work_dir: Optional[Path],
    overwrite: bool,
    dry_run: bool,
    manifest_path: Path,
    command_string: str,
    options: Dict[str, object],
) -> Dict[str, object]:
    """
    Turn a scanned book (covers + two-up spreads) into imposed two-up sheets.

    Steps: count pages, split every source page (stage 1), barrier, compose
    every sheet (stage 2), barrier, assemble the PDF. The working directory
    only exists between the first and last step. Returns the run summary.
    """

    recorder = ManifestRecorder(
        command=command_string,
        options=options,
        inputs={"pdf": str(pdf_path)},
        outputs={"out_pdf": str(out_pdf), "manifest": str(manifest_path)},
        dry_run=dry_run,
        tool_version=str(options.get("version", "0.0.0")),
        verbosity=str(options.get("verbosity", "normal")),
    )

    source_page_count = 0
    page_count = 0
    sheet_count = 0
    error_message: str | None = None
    summary: Dict[str, object] = {
        "source_page_count": 0,
        "page_count": 0,
        "sheet_count": 0,
        "output_pdf": str(out_pdf),
    }

    try:
        ensure_file_exists(pdf_path, "PDF")
        ensure_file_path(out_pdf, "Output PDF")
        ensure_file_path(manifest_path, "Manifest")
        validate_positive_int(dpi, "--dpi")
        validate_quality(quality)
        validate_choice(image_format, IMAGE_FORMATS, "--image_format")
        validate_choice(executor, EXECUTOR_CHOICES, "--executor")
        pool_size = resolve_workers(workers)

        if out_pdf.resolve() == pdf_path.resolve():
            raise ConfigurationError("Output PDF must differ from the input PDF.")
        if out_pdf.exists() and not overwrite and not dry_run:
            raise ConfigurationError(
                f"Output PDF already exists: {out_pdf}. Use --overwrite to replace it."
            )

        counter = select_page_counter(page_counter)
        source_page_count = counter.count(pdf_path)
        recorder.add_action(
            "count_pages", "ok", counter=counter.name, page_count=source_page_count
        )
        page_count = page_count_for(source_page_count)
        sheet_count = sheet_count_for(page_count)
        plans = build_plan(page_count)

        recorder.inputs["page_count"] = source_page_count
        recorder.inputs["page_counter"] = counter.name
        recorder.outputs["sheet_count"] = sheet_count
        recorder.outputs["workers"] = pool_size
        recorder.log(
            f"{pdf_path}: {source_page_count} source page(s) -> "
            f"{page_count} single page(s) -> {sheet_count} sheet(s)."
        )
        for plan in plans:
            recorder.log(
                f"sheet {plan.sheet_index}: left={plan.left_page} right={plan.right_page}",
                level="debug",
            )

        if dry_run:
            for plan in plans:
                recorder.add_action(
                    "compose_sheet",
                    "dry-run",
                    index=plan.sheet_index,
                    left_page=plan.left_page,
                    right_page=plan.right_page,
                )
            recorder.log(f"[dry-run] Would write {sheet_count} sheet(s) to {out_pdf}")
            return summary

        digits = compute_index_digits(page_count)
        suffix = image_suffix(image_format)

        with working_directory(work_dir) as workdir:
            recorder.log(f"Working directory: {workdir.root}", level="debug")
            layout = workdir.layout(digits, suffix)

            split_tasks = [
                SplitTask(
                    pdf_path=pdf_path,
                    source_index=index,
                    source_page_count=source_page_count,
                    layout=layout,
                    dpi=dpi,
                    quality=quality,
                )
                for index in range(source_page_count)
            ]
            run_stage(
                "split",
                split_source_page,
                split_tasks,
                index_of=lambda task: task.source_index,
                workers=pool_size,
                executor=executor,
                recorder=recorder,
                action="split_page",
            )

            compose_tasks = [
                ComposeTask(
                    sheet_index=index,
                    page_count=page_count,
                    layout=layout,
                    quality=quality,
                )
                for index in range(sheet_count)
            ]
            run_stage(
                "compose",
                compose_sheet,
                compose_tasks,
                index_of=lambda task: task.sheet_index,
                workers=pool_size,
                executor=executor,
                recorder=recorder,
                action="compose_sheet",
            )

            sheet_paths = [layout.sheet_path(index) for index in range(sheet_count)]
            written = assemble_pdf(sheet_paths, out_pdf, dpi=dpi, quality=quality)
            recorder.add_action("assemble_pdf", "written", pages=written, output=str(out_pdf))
            recorder.log(f"Wrote {written} sheet(s) to {out_pdf}")
    except Exception as exc:  # includes validation, PyMuPDF and Pillow errors
        if isinstance(exc, UserError):
            error_message = str(exc)
        else:
            error_message = f"Failed to recollate PDF {pdf_path}: {exc}"
        # The caller prints the error; keep it in the manifest timeline only.
        recorder.log(error_message, level="error", echo=False)
        recorder.add_action(action="recollate", status="error", error=error_message)
        if isinstance(exc, UserError):
            raise
        raise UserError(error_message) from exc
    finally:
        summary["source_page_count"] = source_page_count
        summary["page_count"] = page_count
        summary["sheet_count"] = sheet_count
        summary["status"] = "error" if error_message else ("dry-run" if dry_run else "ok")
        if error_message is not None:
            summary["error"] = error_message
        try:
            recorder.write_manifest(manifest_path, summary)
        except ResourceError as exc:
            if error_message is None:
                raise
            # Do not mask the original failure.
            recorder.log(str(exc), level="warning")
    return summary
