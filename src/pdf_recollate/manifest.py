"""
Run manifest and console logging.

Why this exists:
- Every command writes a JSON manifest with inputs, outputs, per-page and
  per-sheet actions, stage timings and a log timeline.
- Logging goes through one place so messages are consistent and captured.
- Worker tasks never log themselves; they return records and the parent
  process feeds them in here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Dict, List, TextIO

from .utils import ResourceError, ensure_dir


TOOL_NAME = "pdf-recollate"
VERBOSITY_LEVELS = ("quiet", "normal", "verbose")


def _iso_now() -> str:
    """Return an ISO-8601 timestamp in UTC."""

    return datetime.now(timezone.utc).isoformat()


def default_manifest_path(out_pdf: Path) -> Path:
    """`book.pdf` -> `book.manifest.json` in the same folder."""

    return out_pdf.with_name(f"{out_pdf.stem}.manifest.json")


@dataclass
class ManifestRecorder:
    """
    Collect logs, actions and stage summaries, then write one manifest file.
    """

    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    dry_run: bool
    tool_version: str = "0.0.0"
    tool_name: str = TOOL_NAME
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_iso_now)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)
    stages: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info", echo: bool = True) -> None:
        """
        Record a log message and also print it to the console.

        `echo=False` keeps the entry in the manifest only, for messages the
        caller reports itself.
        """

        entry = {"timestamp": _iso_now(), "level": level, "message": message}
        self.logs.append(entry)

        if self.verbosity == "quiet":
            should_print = level == "error"
        elif self.verbosity == "verbose":
            should_print = True
        else:
            should_print = level in {"info", "warning", "error"}

        if should_print and echo:
            rendered = f"[{level}] {message}" if self.verbosity == "verbose" else message
            print(rendered, file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Add an action record.

        Action types: count_pages, split_page, compose_sheet, assemble_pdf.
        """

        entry: Dict[str, Any] = {
            "timestamp": _iso_now(),
            "action": action,
            "status": status,
        }
        entry.update(details)
        self.actions.append(entry)

    def add_stage(self, name: str, status: str, tasks: int, completed: int, seconds: float) -> None:
        self.stages.append(
            {
                "stage": name,
                "status": status,
                "tasks": tasks,
                "completed": completed,
                "seconds": round(seconds, 3),
            }
        )

    def progress(self, stage: str, done: int, total: int) -> None:
        """Log progress at the first, last and every tenth completion."""

        if done == 1 or done == total or done % 10 == 0:
            self.log(f"[{stage}] {done}/{total} done")
        else:
            self.log(f"[{stage}] {done}/{total} done", level="debug")

    def _summarize_actions(self) -> Dict[str, int]:
        """Count actions by status (written, dry-run, error, etc.)."""

        counts: Dict[str, int] = {}
        for action in self.actions:
            status = action.get("status", "unknown")
            counts[status] = counts.get(status, 0) + 1
        return counts

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        """Assemble the final manifest structure."""

        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _iso_now(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "stages": self.stages,
            "action_counts": self._summarize_actions(),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_manifest(self, path: Path, summary: Dict[str, Any]) -> None:
        """
        Write the manifest JSON, unless this is a dry-run.

        We treat the manifest itself as output, so dry-run avoids writing it.
        """

        if self.dry_run:
            self.log(f"[dry-run] Would write manifest to {path}")
            return

        manifest = self.build_manifest(summary)
        try:
            ensure_dir(path.parent, dry_run=False)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(manifest, handle, indent=2, ensure_ascii=True, default=str)
        except OSError as exc:
            raise ResourceError(f"Cannot write manifest {path}: {exc}") from exc
