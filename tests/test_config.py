"""
Unit tests for recollate YAML config loading and precedence.
"""

from __future__ import annotations

import sys
from pathlib import Path
import unittest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import yaml  # noqa: E402

from pdf_recollate.cli import (  # noqa: E402
    _build_parser,
    _build_recollate_effective_config,
    _optional_int,
    _require_bool,
)
from pdf_recollate.config import (  # noqa: E402
    DEFAULT_RECOLLATE,
    deep_merge,
    dump_default_recollate_yaml,
    extract_recollate_section,
    load_yaml,
)
from pdf_recollate.utils import ConfigurationError, UserError  # noqa: E402

from helpers_cli import run_recollate_cli  # noqa: E402
from helpers_pdf import workspace_temp_dir  # noqa: E402


class RecollateConfigTests(unittest.TestCase):
    def test_deep_merge_nested_overlay_wins(self) -> None:
        merged = deep_merge(
            {"a": 1, "nested": {"x": 1, "y": 2}},
            {"nested": {"y": 20, "z": 30}},
        )
        self.assertEqual(merged, {"a": 1, "nested": {"x": 1, "y": 20, "z": 30}})

    def test_wrapper_form_ignores_root_siblings(self) -> None:
        section = extract_recollate_section({"dpi": 72, "recollate": {"dpi": 150}})
        self.assertEqual(section, {"dpi": 150})

    def test_unknown_key_fails(self) -> None:
        with self.assertRaises(ConfigurationError):
            extract_recollate_section({"recollate": {"dpi": 150, "bogus": 1}})

    def test_non_mapping_file_fails(self) -> None:
        with workspace_temp_dir("test_cfg") as tmpdir:
            path = tmpdir / "list.yaml"
            path.write_text("- 1\n- 2\n", encoding="utf-8")
            with self.assertRaises(UserError):
                load_yaml(path)

    def test_empty_file_is_empty_mapping(self) -> None:
        with workspace_temp_dir("test_cfg") as tmpdir:
            path = tmpdir / "empty.yaml"
            path.write_text("", encoding="utf-8")
            self.assertEqual(load_yaml(path), {})

    def test_precedence_defaults_then_yaml_then_explicit_cli(self) -> None:
        with workspace_temp_dir("test_cfg") as tmpdir:
            path = tmpdir / "cfg.yaml"
            path.write_text(
                "recollate:\n"
                "  dpi: 150\n"
                "  quality: 80\n"
                "  executor: thread\n",
                encoding="utf-8",
            )
            args = _build_parser().parse_args(
                [
                    "recollate",
                    "--pdf", "in.pdf",
                    "--out_pdf", "out.pdf",
                    "--config", str(path),
                    "--dpi", "200",
                ]
            )
            effective, config_path = _build_recollate_effective_config(args)

        self.assertEqual(config_path, path)
        self.assertEqual(effective["dpi"], 200)
        self.assertEqual(effective["quality"], 80)
        self.assertEqual(effective["executor"], "thread")
        self.assertEqual(effective["workers"], DEFAULT_RECOLLATE["workers"])

    def test_require_bool_is_strict(self) -> None:
        self.assertTrue(_require_bool(True, "config.overwrite"))
        with self.assertRaises(UserError):
            _require_bool("yes", "config.overwrite")

    def test_null_workers_means_default_pool_size(self) -> None:
        with workspace_temp_dir("test_cfg") as tmpdir:
            path = tmpdir / "cfg.yaml"
            path.write_text("recollate:\n  workers: null\n", encoding="utf-8")
            args = _build_parser().parse_args(
                ["recollate", "--pdf", "in.pdf", "--out_pdf", "out.pdf", "--config", str(path)]
            )
            effective, _ = _build_recollate_effective_config(args)

        self.assertIsNone(effective["workers"])
        self.assertIsNone(_optional_int(effective["workers"], "config.workers"))
        self.assertEqual(_optional_int(3, "config.workers"), 3)
        with self.assertRaises(UserError):
            _optional_int("four", "config.workers")

    def test_dump_default_config_round_trips(self) -> None:
        loaded = yaml.safe_load(dump_default_recollate_yaml())
        self.assertEqual(loaded, {"recollate": DEFAULT_RECOLLATE})

    def test_cli_dump_default_config(self) -> None:
        exit_code, stdout_text, _ = run_recollate_cli(["recollate", "--dump-default-config"])
        self.assertEqual(exit_code, 0)
        self.assertIn("recollate:", stdout_text)
        self.assertIn("dpi: 300", stdout_text)


if __name__ == "__main__":
    unittest.main()
