"""
Script: cloud_build_tools/cloud_build.py
What: Submits a docker image build to Google Cloud Build and waits for it.
Doing: Creates the build, prints coalesced status lines while it runs, then normalizes the outcome.
Why: Workflow logs need live progress, and later steps need one result shape for success and failure.
Goal: Return image digests or a readable error for every build, without raising.
"""

from __future__ import annotations

import concurrent.futures
import json
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable

from google.cloud.devtools import cloudbuild_v1

from cloud_build_tools.build_request import BuildOptions, BuildSpec, StorageLocation, build_request
from cloud_build_tools.common import (
    BuildToolError,
    optional_env,
    require_env,
    split_list,
    write_github_outputs,
)


NOT_FOUND = "Not Found"
UNKNOWN = "Unknown"
POLL_INTERVAL_SECONDS = 0.1
REPORT_INTERVAL_SECONDS = 5.0


class BuildStatus(IntEnum):
    """Same values as `cloudbuild_v1.Build.Status`."""

    STATUS_UNKNOWN = 0
    QUEUED = 1
    WORKING = 2
    SUCCESS = 3
    FAILURE = 4
    INTERNAL_ERROR = 5
    TIMEOUT = 6
    CANCELLED = 7
    EXPIRED = 9
    PENDING = 10


STATUS_MESSAGES = {
    BuildStatus.STATUS_UNKNOWN: "Build is currently in an unknown status...",
    BuildStatus.PENDING: "Build is pending...",
    BuildStatus.QUEUED: "Build is currently queued...",
    BuildStatus.WORKING: "Build is currently working...",
    BuildStatus.SUCCESS: "Build was successful!",
    BuildStatus.FAILURE: "Build has failed!",
    BuildStatus.INTERNAL_ERROR: "Build has failed with an internal error!",
    BuildStatus.TIMEOUT: "Build has timed out!",
    BuildStatus.CANCELLED: "Build was cancelled!",
    BuildStatus.EXPIRED: "Build has expired!",
}


@dataclass(frozen=True)
class BuildError:
    code: int
    message: str


@dataclass(frozen=True)
class BuiltImage:
    name: str
    digest: str


@dataclass(frozen=True)
class BuildResult:
    """
    Normalized outcome of one remote build.

    Exactly one of `error` and `images` is set. `logs_url` may be `None` when
    the remote service reported a failure before a log URL was assigned.
    """

    logs_url: str | None
    error: BuildError | None = None
    images: list[BuiltImage] | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def describe_build_status(status: int) -> str:
    """Map a raw status value to one log line; unknown values get the default."""
    try:
        return STATUS_MESSAGES[BuildStatus(status)]
    except ValueError:
        return STATUS_MESSAGES[BuildStatus.STATUS_UNKNOWN]


def to_cloud_build_request(spec: BuildSpec) -> cloudbuild_v1.CreateBuildRequest:
    """Convert a `BuildSpec` into the Cloud Build API request message."""
    build = cloudbuild_v1.Build(
        source=cloudbuild_v1.Source(
            storage_source=cloudbuild_v1.StorageSource(
                bucket=spec.source.bucket,
                object_=spec.source.path,
            )
        ),
        steps=[
            cloudbuild_v1.BuildStep(
                id=step.id,
                name=step.name,
                entrypoint=step.entrypoint or "",
                args=step.args,
            )
            for step in spec.steps
        ],
        images=spec.images,
        options=cloudbuild_v1.BuildOptions(
            machine_type=cloudbuild_v1.BuildOptions.MachineType[spec.machine_type],
        ),
    )
    request = cloudbuild_v1.CreateBuildRequest(project_id=spec.project_id, build=build)
    if spec.region:
        request.parent = f"projects/{spec.project_id}/locations/{spec.region}"
    return request


def create_client(key_file: str | None = None) -> cloudbuild_v1.CloudBuildClient:
    """Create a client from a service account key file, or default credentials."""
    if key_file:
        print(f"Initializing Cloud Build client with key file {key_file}")
        return cloudbuild_v1.CloudBuildClient.from_service_account_file(key_file)
    return cloudbuild_v1.CloudBuildClient()


def _build_metadata(operation: Any) -> Any:
    metadata = operation.metadata
    return getattr(metadata, "build", None) if metadata is not None else None


def current_status(operation: Any) -> int:
    """Read the in-memory build status; no request is made here."""
    build = _build_metadata(operation)
    if build is None:
        return BuildStatus.STATUS_UNKNOWN
    return int(build.status)


def remote_error(operation: Any) -> BuildError | None:
    """
    Return the error carried by the operation's latest response, if any.

    An unset `google.rpc.Status` reads back as code 0 with an empty message.
    """
    error = getattr(operation.operation, "error", None)
    if error is None or not (error.code or error.message):
        return None
    return BuildError(code=error.code or -1, message=error.message or "")


def _wait_for(outcome: concurrent.futures.Future, timeout: float) -> None:
    concurrent.futures.wait([outcome], timeout=timeout)


def watch_operation(
    operation: Any,
    outcome: concurrent.futures.Future,
    *,
    clock: Callable[[], float] = time.monotonic,
    wait: Callable[[concurrent.futures.Future, float], None] = _wait_for,
    emit: Callable[[str], None] = print,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    report_interval: float = REPORT_INTERVAL_SECONDS,
) -> None:
    """
    Print build status until `outcome` is resolved.

    A line is printed when the status changes, or when `report_interval`
    seconds passed since the last line. Between checks this waits on the
    future itself, so resolution ends the wait early. There is no overall
    timeout: a build that never finishes keeps this loop running.
    """
    last_status: int | None = None
    last_print: float | None = None
    while not outcome.done():
        status = current_status(operation)
        now = clock()
        if status != last_status or last_print is None or now - last_print >= report_interval:
            last_status = status
            last_print = now
            emit(describe_build_status(status))
        wait(outcome, poll_interval)


def _collect_images(build: Any) -> list[BuiltImage]:
    results = getattr(build, "results", None)
    images = getattr(results, "images", None) or []
    return [
        BuiltImage(name=image.name or UNKNOWN, digest=image.digest or UNKNOWN)
        for image in images
    ]


def resolve_outcome(operation: Any, outcome: concurrent.futures.Future) -> BuildResult:
    """
    Turn a finished operation into a `BuildResult`.

    The remote error on the latest response wins over whatever the listener
    recorded. Without one, a recorded exception is re-raised here so the
    caller's exception path handles it.
    """
    error = remote_error(operation)
    if error is not None:
        build = _build_metadata(operation)
        logs_url = (build.log_url or None) if build is not None else None
        return BuildResult(logs_url=logs_url, error=error)

    build = outcome.result()
    return BuildResult(
        logs_url=getattr(build, "log_url", None) or NOT_FOUND,
        images=_collect_images(build),
    )


def start_listener(operation: Any) -> concurrent.futures.Future:
    """
    Wait for the final build on a daemon thread and resolve a single-use future.

    The thread blocks in `operation.result(timeout=None)`; being a daemon, it
    never keeps the process alive after the caller has given up on it.
    """
    outcome: concurrent.futures.Future = concurrent.futures.Future()

    def _listen() -> None:
        try:
            build = operation.result(timeout=None)
        except Exception as exc:
            outcome.set_exception(exc)
        else:
            outcome.set_result(build)

    threading.Thread(target=_listen, name="cloud-build-listener", daemon=True).start()
    return outcome


def build_docker_image(
    client: Any,
    options: BuildOptions,
    **watch_kwargs: Any,
) -> BuildResult:
    """
    Submit one build and block until the remote service resolves it.

    Never raises: remote failures and local exceptions both come back as
    `BuildResult.error` (local ones with code -1 and logs "Not Found").
    """
    try:
        request = to_cloud_build_request(build_request(options))
        operation = client.create_build(request=request)
        build = _build_metadata(operation)
        print(f"Requested build with id {build.id if build is not None else UNKNOWN}")

        # The listener thread blocks on the final result; the reporting loop
        # below only reads metadata and checks whether the future resolved.
        outcome = start_listener(operation)
        watch_operation(operation, outcome, **watch_kwargs)
        return resolve_outcome(operation, outcome)
    except Exception as exc:
        return BuildResult(logs_url=NOT_FOUND, error=BuildError(code=-1, message=str(exc)))


def result_outputs(result: BuildResult) -> dict[str, str]:
    """Flatten a `BuildResult` into GitHub step outputs."""
    images = result.images or []
    outputs = {
        "logs_url": result.logs_url or NOT_FOUND,
        "images": json.dumps([{"name": image.name, "digest": image.digest} for image in images]),
        "digest": images[0].digest if images else "",
    }
    if result.error is not None:
        outputs["error_code"] = str(result.error.code)
        outputs["error_message"] = result.error.message
    return outputs


def main() -> None:
    # Source archive is uploaded by an earlier step; only its location is read here.
    options = BuildOptions(
        source=StorageLocation(
            bucket=require_env("SOURCE_BUCKET"),
            path=require_env("SOURCE_OBJECT"),
        ),
        image=require_env("IMAGE_NAME"),
        tags=split_list(require_env("IMAGE_TAGS")),
        root_folder=require_env("SOURCE_ROOT_FOLDER"),
        project_id=require_env("GCP_PROJECT_ID"),
        dockerfile_path=optional_env("DOCKERFILE_PATH") or None,
        machine_type=optional_env("GCP_MACHINE_TYPE") or "UNSPECIFIED",
        region=optional_env("GCP_REGION") or None,
    )
    client = create_client(optional_env("GOOGLE_APPLICATION_CREDENTIALS") or None)

    result = build_docker_image(client, options)
    write_github_outputs(result_outputs(result))

    print(f"Build logs: {result.logs_url or NOT_FOUND}")
    if result.error is not None:
        raise BuildToolError(f"Build failed with code {result.error.code}: {result.error.message}")
    for image in result.images or []:
        print(f"Built image: {image.name}@{image.digest}")


if __name__ == "__main__":
    main()
