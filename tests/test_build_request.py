from __future__ import annotations

import unittest

from cloud_build_tools.build_request import (
    BUILD_STEP_ID,
    CACHE_PRIME_STEP_ID,
    DOCKER_BUILDER_IMAGE,
    BuildOptions,
    StorageLocation,
    build_request,
    find_latest_image,
)
from cloud_build_tools.common import BuildToolError


def make_options(**overrides) -> BuildOptions:
    values = {
        "source": StorageLocation(bucket="build-sources", path="src/abc.tgz"),
        "image": "repo/img",
        "tags": ["latest", "v1"],
        "root_folder": "workspace",
        "project_id": "demo-project",
    }
    values.update(overrides)
    return BuildOptions(**values)


class BuildRequestTests(unittest.TestCase):
    def test_image_names_apply_each_tag(self) -> None:
        spec = build_request(make_options())
        self.assertEqual(spec.images, ["repo/img:latest", "repo/img:v1"])

    def test_latest_tag_adds_cache_prime_step_and_cache_from(self) -> None:
        spec = build_request(make_options())

        self.assertEqual([step.id for step in spec.steps], [CACHE_PRIME_STEP_ID, BUILD_STEP_ID])
        prime = spec.steps[0]
        self.assertEqual(prime.name, DOCKER_BUILDER_IMAGE)
        self.assertEqual(prime.entrypoint, "bash")
        self.assertEqual(prime.args, ["-c", "docker pull repo/img:latest || exit 0"])

        self.assertEqual(
            spec.steps[1].args,
            [
                "build",
                "--cache-from",
                "repo/img:latest",
                "--tag",
                "repo/img:latest",
                "--tag",
                "repo/img:v1",
                "workspace",
            ],
        )

    def test_no_latest_tag_means_no_cache_step(self) -> None:
        spec = build_request(make_options(tags=["v1", "v1.2"]))

        self.assertEqual(len(spec.steps), 1)
        build_step = spec.steps[0]
        self.assertIsNone(build_step.entrypoint)
        self.assertNotIn("--cache-from", build_step.args)
        self.assertEqual(build_step.args[-1], "workspace")

    def test_latest_is_a_suffix_match(self) -> None:
        spec = build_request(make_options(tags=["v1", "main-abc1234-latest"]))
        self.assertEqual(spec.steps[0].id, CACHE_PRIME_STEP_ID)
        self.assertIn("repo/img:main-abc1234-latest", spec.steps[1].args)
        self.assertIsNone(find_latest_image(["repo/img:latest-rc"]))

    def test_first_latest_image_wins(self) -> None:
        self.assertEqual(
            find_latest_image(["r:v1", "r:a-latest", "r:latest"]),
            "r:a-latest",
        )

    def test_custom_dockerfile_path(self) -> None:
        spec = build_request(make_options(tags=["v1"], dockerfile_path="docker/Dockerfile.prod"))
        self.assertEqual(
            spec.steps[0].args,
            ["build", "--file=workspace/docker/Dockerfile.prod", "--tag", "repo/img:v1", "workspace"],
        )

    def test_passes_through_machine_and_project(self) -> None:
        spec = build_request(make_options(machine_type="E2_HIGHCPU_8", region="europe-west1"))
        self.assertEqual(spec.machine_type, "E2_HIGHCPU_8")
        self.assertEqual(spec.project_id, "demo-project")
        self.assertEqual(spec.region, "europe-west1")
        self.assertEqual(spec.source, StorageLocation(bucket="build-sources", path="src/abc.tgz"))

    def test_rejects_unknown_machine_type(self) -> None:
        with self.assertRaisesRegex(BuildToolError, "N2_STANDARD"):
            make_options(machine_type="N2_STANDARD")

    def test_rejects_empty_tags(self) -> None:
        with self.assertRaises(BuildToolError):
            make_options(tags=[])


if __name__ == "__main__":
    unittest.main()
