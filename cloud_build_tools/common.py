"""
Script: cloud_build_tools/common.py
What: Shared helper functions used by all `cloud_build_tools` modules.
Doing: Wraps env reads, list-input parsing, and step output writes.
Why: Avoids duplicated helper code.
Goal: Keep behavior consistent across all helper modules.
"""

from __future__ import annotations

import os
import re
import uuid
from typing import Mapping


class BuildToolError(RuntimeError):
    """Raised when a workflow helper script hits a known error condition."""


LIST_SEPARATOR_RE = re.compile(r"[,\n]")


def require_env(name: str) -> str:
    """Return a required environment variable or raise a clear error."""
    value = os.environ.get(name)
    if value is None or value == "":
        raise BuildToolError(f"Missing required environment variable: {name}")
    return value


def optional_env(name: str, default: str = "") -> str:
    """Return an environment variable with a fallback default."""
    return os.environ.get(name, default)


def env_flag(name: str, default: bool = False) -> bool:
    """Read a `true`/`false` workflow input; anything but `true` is false."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"


def split_list(value: str) -> list[str]:
    """
    Split a comma or newline separated workflow input into items.

    Example: `"v1, stable\\nnightly"` becomes `["v1", "stable", "nightly"]`.
    Empty items are dropped; order is kept.
    """
    return [item.strip() for item in LIST_SEPARATOR_RE.split(value) if item.strip()]


def write_github_outputs(values: Mapping[str, str]) -> None:
    """
    Write step outputs for GitHub Actions.

    GitHub provides a file path in `GITHUB_OUTPUT`; writing `name=value` lines
    there makes that value available to later steps in the same job.
    Values with line breaks use the `name<<DELIMITER` block form.
    """
    output_file = require_env("GITHUB_OUTPUT")
    with open(output_file, "a", encoding="utf-8") as handle:
        for key, value in values.items():
            if "\n" in value:
                delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
                handle.write(f"{key}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                handle.write(f"{key}={value}\n")
