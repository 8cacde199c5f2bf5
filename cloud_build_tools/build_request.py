"""
Script: cloud_build_tools/build_request.py
What: Assembles the remote build specification for one docker image.
Doing: Turns image/tag/source options into ordered build steps, target images, and machine settings.
Why: Keeps step and flag rules (layer-cache warm-up, custom Dockerfile) in one testable place.
Goal: Produce the exact build spec that the Cloud Build submission step sends.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

from cloud_build_tools.common import BuildToolError


DOCKER_BUILDER_IMAGE = "gcr.io/cloud-builders/docker"
CACHE_PRIME_STEP_ID = "Pull previous latest image for layer caching"
BUILD_STEP_ID = "Build"
MACHINE_TYPES = (
    "UNSPECIFIED",
    "N1_HIGHCPU_8",
    "N1_HIGHCPU_32",
    "E2_HIGHCPU_8",
    "E2_HIGHCPU_32",
    "E2_MEDIUM",
)


@dataclass(frozen=True)
class StorageLocation:
    """Uploaded source archive in a Cloud Storage bucket."""

    bucket: str
    path: str


@dataclass(frozen=True)
class BuildOptions:
    source: StorageLocation
    image: str
    tags: list[str]
    root_folder: str
    project_id: str
    dockerfile_path: str | None = None
    machine_type: str = "UNSPECIFIED"
    region: str | None = None

    def __post_init__(self) -> None:
        if self.machine_type not in MACHINE_TYPES:
            raise BuildToolError(
                f"Unsupported machine type {self.machine_type!r}; "
                f"expected one of: {', '.join(MACHINE_TYPES)}"
            )
        if not self.tags:
            raise BuildToolError(f"No tags given for image {self.image}")


@dataclass(frozen=True)
class BuildStep:
    id: str
    name: str
    args: list[str]
    entrypoint: str | None = None


@dataclass(frozen=True)
class BuildSpec:
    source: StorageLocation
    steps: list[BuildStep]
    images: list[str]
    machine_type: str
    project_id: str
    region: str | None = None


def image_names_for(image: str, tags: list[str]) -> list[str]:
    """Apply each tag to the same base image name."""
    return [f"{image}:{tag}" for tag in tags]


def find_latest_image(image_names: list[str]) -> str | None:
    """
    Return the first image whose tag ends in `latest`, if any.

    This is a suffix match, so `main-latest` counts as well as `latest`.
    """
    for name in image_names:
        if name.endswith("latest"):
            return name
    return None


def build_request(options: BuildOptions) -> BuildSpec:
    image_names = image_names_for(options.image, options.tags)
    latest_image = find_latest_image(image_names)

    steps: list[BuildStep] = []
    if latest_image:
        # `|| exit 0` keeps the step green when no previous image exists yet.
        steps.append(
            BuildStep(
                id=CACHE_PRIME_STEP_ID,
                name=DOCKER_BUILDER_IMAGE,
                entrypoint="bash",
                args=["-c", f"docker pull {latest_image} || exit 0"],
            )
        )

    build_args = ["build"]
    if latest_image:
        build_args += ["--cache-from", latest_image]
    if options.dockerfile_path:
        build_args.append(f"--file={posixpath.join(options.root_folder, options.dockerfile_path)}")
    for name in image_names:
        build_args += ["--tag", name]
    # Build context is the folder extracted from the uploaded source archive.
    build_args.append(options.root_folder)
    steps.append(BuildStep(id=BUILD_STEP_ID, name=DOCKER_BUILDER_IMAGE, args=build_args))

    return BuildSpec(
        source=options.source,
        steps=steps,
        images=image_names,
        machine_type=options.machine_type,
        project_id=options.project_id,
        region=options.region,
    )
