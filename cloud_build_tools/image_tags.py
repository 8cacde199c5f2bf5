"""
Script: cloud_build_tools/image_tags.py
What: Generates the ordered tag list for the image built by this run.
Doing: Formats the primary branch tag from `$BRANCH`/`$SHA`/date tokens, then appends extra tags.
Why: Keeps image naming deterministic without hand-written tag rules in workflow YAML.
Goal: Provide the tag list consumed by the Cloud Build submission step.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from cloud_build_tools.action_context import ActionContext
from cloud_build_tools.common import (
    BuildToolError,
    env_flag,
    optional_env,
    split_list,
    write_github_outputs,
)


DEFAULT_TAG_FORMAT = "$BRANCH-$SHA"
SHORT_SHA_LENGTH = 7
LATEST_SUFFIX = "-latest"


class MissingShaError(BuildToolError):
    """Raised when a tag format asks for `$SHA` but no commit SHA is known."""


@dataclass(frozen=True)
class TagInformation:
    all_tags: list[str]
    primary: str


def format_branch_tag(
    tag_format: str,
    *,
    ref_name: str,
    sha: str | None,
    now: datetime,
) -> str:
    """
    Substitute every placeholder token in `tag_format`.

    Tokens: `$BRANCH`, `$SHA` (first 7 chars), `$YYYY`, `$MM`, `$DD`, `$HH`,
    `$mm`, `$SS`. All occurrences are replaced; missing tokens are no-ops.
    Example: `$BRANCH-$YYYY$MM$DD` with ref `main` on 2024-03-07 gives
    `main-20240307`.
    """
    if "$SHA" in tag_format and not sha:
        raise MissingShaError(
            f"Tag format {tag_format!r} uses $SHA but no commit SHA is available (GITHUB_SHA)"
        )

    # Order is fixed; no replacement value can contain another token.
    replacements = [
        ("$BRANCH", ref_name),
        ("$SHA", (sha or "")[:SHORT_SHA_LENGTH]),
        ("$YYYY", f"{now.year:04d}"),
        ("$MM", f"{now.month:02d}"),
        ("$DD", f"{now.day:02d}"),
        ("$HH", f"{now.hour:02d}"),
        ("$mm", f"{now.minute:02d}"),
        ("$SS", f"{now.second:02d}"),
    ]
    tag = tag_format
    for token, value in replacements:
        tag = tag.replace(token, value)
    return tag


def get_tags(
    context: ActionContext,
    tag_format: str,
    include_latest: bool,
    additional_tags: Sequence[str],
    *,
    sha: str | None = None,
    now: datetime | None = None,
) -> TagInformation:
    """
    Build the tag list for one image.

    Branch pushes and pull requests get a formatted tag (optionally ending in
    `-latest`); tags and other events reuse the normalized ref name as-is.
    `sha` and `now` default to the context SHA and the current local time,
    read fresh on every call.
    """
    if context.get_action_type() in ("pr", "commit"):
        primary = format_branch_tag(
            tag_format,
            ref_name=context.get_normalized_ref_name(),
            sha=sha if sha is not None else context.sha,
            now=now if now is not None else datetime.now(),
        )
        if include_latest:
            primary += LATEST_SUFFIX
    else:
        primary = context.get_normalized_ref_name()

    tags = [primary, *additional_tags]
    return TagInformation(all_tags=tags, primary=tags[0])


def main() -> None:
    context = ActionContext.from_env()
    tag_format = optional_env("TAG_FORMAT") or DEFAULT_TAG_FORMAT
    include_latest = env_flag("INCLUDE_LATEST")
    additional_tags = split_list(optional_env("ADDITIONAL_TAGS"))

    info = get_tags(context, tag_format, include_latest, additional_tags)

    # Downstream steps pass `tags` straight into IMAGE_TAGS for the build step.
    write_github_outputs(
        {
            "primary_tag": info.primary,
            "tags": ",".join(info.all_tags),
        }
    )
    print(f"Action type: {context.get_action_type()} ({context.get_normalized_ref_name()})")
    for tag in info.all_tags:
        print(f"Image tag: {tag}")


if __name__ == "__main__":
    main()
