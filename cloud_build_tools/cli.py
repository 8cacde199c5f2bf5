"""
Script: cloud_build_tools/cli.py
What: Single command-line entry for all workflow helpers.
Doing: Maps command names to module `main()` functions and runs the chosen one.
Why: Workflow steps call one stable entrypoint instead of module paths.
Goal: Turn known helper errors into short log lines and a non-zero exit.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from collections.abc import Callable, Mapping

from cloud_build_tools.common import BuildToolError


COMMAND_MODULES = {
    "compute-image-tags": "cloud_build_tools.image_tags",
    "submit-cloud-build": "cloud_build_tools.cloud_build",
}


def command_map() -> dict[str, Callable[[], None]]:
    """Import each command module and return its `main()` entry."""
    return {name: importlib.import_module(module).main for name, module in COMMAND_MODULES.items()}


def command_summary(entry: Callable[[], None]) -> str:
    """Return the `What:` line from the module docstring of a command entry."""
    module = sys.modules.get(getattr(entry, "__module__", ""), None)
    for line in (getattr(module, "__doc__", None) or "").splitlines():
        if line.startswith("What:"):
            return line[len("What:"):].strip()
    return ""


def build_parser(commands: Mapping[str, Callable[[], None]]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloud-build-tools",
        description="Run one workflow helper command. Inputs are read from environment variables.",
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command", required=True)
    for name in sorted(commands):
        subparsers.add_parser(name, help=command_summary(commands[name]))
    return parser


def run_command(command: str, commands: Mapping[str, Callable[[], None]]) -> None:
    commands[command]()


def main(argv: list[str] | None = None) -> None:
    commands = command_map()
    args = build_parser(commands).parse_args(argv)

    try:
        run_command(args.command, commands)
    except BuildToolError as exc:
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
