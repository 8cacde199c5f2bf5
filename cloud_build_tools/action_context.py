"""
Script: cloud_build_tools/action_context.py
What: Describes the GitHub event that triggered the current run.
Doing: Classifies the event as pr/commit/tag/other and normalizes the ref name into a tag-safe string.
Why: Tag generation needs one small, immutable view of the run instead of raw env reads.
Goal: Give tag formatting stable, registry-compatible inputs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cloud_build_tools.common import optional_env


ACTION_TYPES = ("pr", "commit", "tag", "other")
PULL_REQUEST_EVENTS = {"pull_request", "pull_request_target"}

UNSAFE_TAG_CHARS_RE = re.compile(r"[^A-Za-z0-9_.-]+")
# Docker rejects tags longer than 128 characters.
MAX_TAG_LENGTH = 128


def normalize_ref_name(ref_name: str) -> str:
    """Convert a branch or tag name into a docker-tag-safe identifier."""
    # Tags may not start with '.' or '-', so strip those after replacing.
    safe = UNSAFE_TAG_CHARS_RE.sub("-", ref_name).lstrip("-.")
    trimmed = safe[:MAX_TAG_LENGTH].rstrip("-")
    return trimmed or "unknown"


def classify_action(event_name: str, ref: str) -> str:
    """
    Map the triggering event onto one of `ACTION_TYPES`.

    Pull request events win over the ref, because GitHub points `GITHUB_REF`
    at the synthetic `refs/pull/<n>/merge` ref for those.
    """
    if event_name in PULL_REQUEST_EVENTS:
        return "pr"
    if ref.startswith("refs/tags/"):
        return "tag"
    if ref.startswith("refs/heads/"):
        return "commit"
    return "other"


@dataclass(frozen=True)
class ActionContext:
    action_type: str
    normalized_ref_name: str
    sha: str | None = None

    def get_action_type(self) -> str:
        return self.action_type

    def get_normalized_ref_name(self) -> str:
        return self.normalized_ref_name

    @classmethod
    def from_env(cls) -> ActionContext:
        event_name = optional_env("GITHUB_EVENT_NAME")
        ref = optional_env("GITHUB_REF")
        action_type = classify_action(event_name, ref)

        # For PRs, GITHUB_REF_NAME is `<n>/merge`; the source branch is more useful.
        ref_name = optional_env("GITHUB_HEAD_REF") if action_type == "pr" else ""
        if not ref_name:
            ref_name = optional_env("GITHUB_REF_NAME") or ref.rsplit("/", 1)[-1]

        sha = optional_env("GITHUB_SHA").strip() or None
        return cls(
            action_type=action_type,
            normalized_ref_name=normalize_ref_name(ref_name),
            sha=sha,
        )
