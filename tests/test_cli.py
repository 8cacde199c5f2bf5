"""
Script: tests/test_cli.py
What: Tests for the shared `cloud_build_tools` command dispatcher.
Doing: Checks command-map entries, parser behavior, and error-to-exit-code handling.
Why: Makes sure workflow command names still point to the right modules.
Goal: Protect the main command entry surface used by workflow steps.
"""

from __future__ import annotations

import io
import unittest
from contextlib import redirect_stderr
from unittest import mock

from cloud_build_tools import cli
from cloud_build_tools.cloud_build import main as submit_cloud_build
from cloud_build_tools.common import BuildToolError
from cloud_build_tools.image_tags import main as compute_image_tags


class CliTests(unittest.TestCase):
    def test_command_map_points_at_module_mains(self) -> None:
        commands = cli.command_map()
        self.assertEqual(set(commands), {"compute-image-tags", "submit-cloud-build"})
        self.assertIs(commands["compute-image-tags"], compute_image_tags)
        self.assertIs(commands["submit-cloud-build"], submit_cloud_build)

    def test_command_summary_reads_module_docstring(self) -> None:
        summary = cli.command_summary(compute_image_tags)
        self.assertEqual(summary, "Generates the ordered tag list for the image built by this run.")

    def test_parser_accepts_known_command(self) -> None:
        parser = cli.build_parser({"demo-command": lambda: None})
        args = parser.parse_args(["demo-command"])
        self.assertEqual(args.command, "demo-command")

    def test_parser_rejects_unknown_command(self) -> None:
        parser = cli.build_parser({"demo-command": lambda: None})
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            parser.parse_args(["other"])

    def test_run_command_calls_target_function(self) -> None:
        called = {"value": False}

        def _target() -> None:
            called["value"] = True

        cli.run_command("demo", {"demo": _target})
        self.assertTrue(called["value"])

    def test_main_turns_tool_error_into_exit_code(self) -> None:
        def _fail() -> None:
            raise BuildToolError("Missing required environment variable: IMAGE_NAME")

        stderr = io.StringIO()
        with mock.patch.object(cli, "command_map", return_value={"demo": _fail}):
            with redirect_stderr(stderr), self.assertRaises(SystemExit) as raised:
                cli.main(["demo"])

        self.assertEqual(raised.exception.code, 1)
        self.assertIn("IMAGE_NAME", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
