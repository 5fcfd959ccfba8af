"""Tests for stage results and result details."""

from dataclasses import dataclass

import pytest

from buildpipe_mcp.project.results import (
    DirectoryPackageResult,
    DockerPackageResult,
    ServiceBuildResult,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
    details_to_dict,
)


class TestDetails:
    def test_docker_details(self):
        details = DockerPackageResult("acr/app:1", "acr")
        assert details_to_dict(details) == {
            "kind": "docker",
            "imageTag": "acr/app:1",
            "loginServer": "acr",
        }

    def test_directory_details(self):
        details = DirectoryPackageResult("/tmp/stage", "python")
        assert details_to_dict(details)["kind"] == "directory"

    def test_none(self):
        assert details_to_dict(None) is None

    def test_unknown_variant_rejected(self):
        @dataclass
        class ZipPackageResult:
            path: str

        with pytest.raises(TypeError, match="ZipPackageResult"):
            details_to_dict(ZipPackageResult("a.zip"))


class TestStageResults:
    def test_to_dict(self):
        build = ServiceBuildResult("IMAGE_ID", restore=ServiceRestoreResult())
        package = ServicePackageResult(
            "acr/app:1", build=build, details=DockerPackageResult("acr/app:1", "acr")
        )

        assert build.to_dict() == {"buildOutputPath": "IMAGE_ID", "details": None}
        assert package.to_dict()["packagePath"] == "acr/app:1"
        assert package.to_dict()["details"]["kind"] == "docker"
        assert ServiceRestoreResult().to_dict() == {"details": None}

    def test_progress_to_dict(self):
        event = ServiceProgress("Building docker image")
        data = event.to_dict()

        assert data["message"] == "Building docker image"
        assert data["timestamp"].endswith("+00:00")
