"""Tests for ServicePipeline - per-service state machine."""

import asyncio
from unittest.mock import MagicMock

import pytest

from buildpipe_mcp.environment import Environment
from buildpipe_mcp.errors import ConfigurationError, PipelineError, TaskCancelledError
from buildpipe_mcp.pipeline import PipelineStage, PipelineState, ServicePipeline
from buildpipe_mcp.project import (
    DockerProject,
    FrameworkService,
    NoOpProject,
    ServiceBuildResult,
    ServiceEvent,
    ServicePackageResult,
    ServiceProgress,
    ServiceRestoreResult,
)
from buildpipe_mcp.tasks import TaskWithProgress
from buildpipe_mcp.toolchain import DockerCli, RunResult


class SlowFramework(FrameworkService):
    """Framework whose build waits until released."""

    def __init__(self):
        self.build_started = asyncio.Event()

    def required_external_tools(self):
        return []

    def restore(self, service_config):
        async def work(progress):
            return ServiceRestoreResult()

        return TaskWithProgress.run(work)

    def build(self, service_config, restore_output=None):
        async def work(progress):
            self.build_started.set()
            await asyncio.sleep(60)

        return TaskWithProgress.run(work)

    def package(self, service_config, build_output=None):
        async def work(progress):
            return ServicePackageResult("pkg", build_output)

        return TaskWithProgress.run(work)


class ReportingFramework(SlowFramework):
    """Framework whose build reports progress, then waits."""

    def __init__(self):
        super().__init__()
        self.build_task = None

    def build(self, service_config, restore_output=None):
        async def work(progress):
            progress.report(ServiceProgress("compiling"))
            await asyncio.sleep(60)

        self.build_task = TaskWithProgress.run(work)
        return self.build_task


class BrokenInitFramework(SlowFramework):
    async def initialize(self, service_config):
        raise RuntimeError("init exploded")


@pytest.fixture
def docker_pipeline(runner, env, clock, make_service):
    """Pipeline for a dockerfile-only container service."""
    runner.when("build", result=RunResult(0, "IMAGE_ID\n"))
    service = make_service("api", {"host": "containerapp", "language": "docker"})
    docker = DockerProject(env, DockerCli(runner), clock)
    docker.set_source(NoOpProject())
    return ServicePipeline(service, docker)


class TestServicePipelineInit:
    def test_starts_idle(self, docker_pipeline):
        assert docker_pipeline.state == PipelineState.IDLE
        assert docker_pipeline.last_result is None
        assert not docker_pipeline.is_running
        assert docker_pipeline.name == "api"


class TestServicePipelineStateListeners:
    """Tests for state change listeners."""

    def test_state_change_notifies_listeners(self, docker_pipeline):
        listener = MagicMock()
        docker_pipeline.on_state_change(listener)

        docker_pipeline._set_state(PipelineState.BUILDING)

        listener.assert_called_once_with(PipelineState.BUILDING)

    def test_listener_exception_doesnt_crash(self, docker_pipeline):
        docker_pipeline.on_state_change(MagicMock(side_effect=Exception("Listener error")))

        # Should not raise
        docker_pipeline._set_state(PipelineState.BUILDING)

    @pytest.mark.asyncio
    async def test_run_state_sequence(self, docker_pipeline):
        states = []
        docker_pipeline.on_state_change(states.append)

        await docker_pipeline.run()

        assert states == [
            PipelineState.RESTORING,
            PipelineState.BUILDING,
            PipelineState.PACKAGING,
            PipelineState.READY,
        ]


class TestServicePipelineRun:
    """Tests for running stages."""

    @pytest.mark.asyncio
    async def test_full_run_succeeds(self, docker_pipeline, runner):
        result = await docker_pipeline.run()

        assert result.success
        assert result.state == PipelineState.READY
        assert result.build.build_output_path == "IMAGE_ID"
        assert result.package.package_path == "ACR_ENDPOINT/test-app/api-test:azd-deploy-0"
        assert [p.message for p in result.progress] == [
            "Building docker image",
            "Tagging docker image",
        ]
        assert [c.args[0] for c in runner.calls] == ["build", "tag"]
        assert docker_pipeline.last_result is result
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_progress_callback(self, docker_pipeline):
        received = []

        async def on_progress(stage, event):
            received.append((stage, event.message))

        await docker_pipeline.run(on_progress=on_progress)

        assert received == [
            (PipelineStage.BUILD, "Building docker image"),
            (PipelineStage.PACKAGE, "Tagging docker image"),
        ]

    @pytest.mark.asyncio
    async def test_events_raised_around_stages(self, docker_pipeline):
        events = []
        service = docker_pipeline.service_config
        for event in ServiceEvent:
            service.add_handler(event, lambda config, _e=event, **kw: events.append((_e, kw)))

        await docker_pipeline.run()

        assert [e for e, _ in events] == [
            ServiceEvent.PRERESTORE,
            ServiceEvent.POSTRESTORE,
            ServiceEvent.PREBUILD,
            ServiceEvent.POSTBUILD,
            ServiceEvent.PREPACKAGE,
            ServiceEvent.POSTPACKAGE,
        ]
        postbuild = dict(events)[ServiceEvent.POSTBUILD]
        assert isinstance(postbuild["result"], ServiceBuildResult)

    @pytest.mark.asyncio
    async def test_tool_failure_reported(self, runner, env, clock, make_service):
        runner.when("build", result=RunResult(1, "", "failed to solve"))
        service = make_service("api", {"host": "containerapp"})
        docker = DockerProject(env, DockerCli(runner), clock)
        docker.set_source(NoOpProject())
        pipeline = ServicePipeline(service, docker)

        result = await pipeline.run()

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert pipeline.state == PipelineState.FAILED
        assert "failed to solve" in result.error
        assert result.error_details["exitCode"] == 1
        assert result.package is None

    @pytest.mark.asyncio
    async def test_missing_endpoint_reported(self, runner, clock, make_service):
        runner.when("build", result=RunResult(0, "IMAGE_ID\n"))
        service = make_service("api", {"host": "containerapp"})
        docker = DockerProject(Environment("test"), DockerCli(runner), clock)
        docker.set_source(NoOpProject())
        pipeline = ServicePipeline(service, docker)

        result = await pipeline.run()

        assert result.state == PipelineState.FAILED
        assert "AZURE_CONTAINER_REGISTRY_ENDPOINT" in result.error
        assert runner.calls_for("tag") == []

    @pytest.mark.asyncio
    async def test_later_stage_uses_previous_output(self, docker_pipeline, runner):
        """Test running package alone reuses the last successful build."""
        await docker_pipeline.run([PipelineStage.RESTORE, PipelineStage.BUILD])

        result = await docker_pipeline.run([PipelineStage.PACKAGE])

        assert result.success
        assert result.stages == [PipelineStage.PACKAGE]
        assert runner.calls_for("tag")[0].args[1] == "IMAGE_ID"

    @pytest.mark.asyncio
    async def test_package_without_build_fails(self, docker_pipeline, runner):
        result = await docker_pipeline.run([PipelineStage.PACKAGE])

        assert not result.success
        assert "no built image" in result.error
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_error_raises(self, make_service):
        pipeline = ServicePipeline(make_service("api"), BrokenInitFramework())

        with pytest.raises(PipelineError, match="init exploded"):
            await pipeline.run()
        assert pipeline.state == PipelineState.FAILED


class TestServicePipelineCancellation:
    """Tests for cancellation and timeouts."""

    @pytest.mark.asyncio
    async def test_cancel_running(self, make_service):
        framework = SlowFramework()
        pipeline = ServicePipeline(make_service("api"), framework)

        run = asyncio.ensure_future(pipeline.run())
        await framework.build_started.wait()

        assert pipeline.is_running
        assert await pipeline.cancel() is True
        result = await asyncio.wait_for(run, timeout=5)

        assert result.cancelled
        assert result.state == PipelineState.CANCELLED
        assert pipeline.state == PipelineState.CANCELLED
        assert result.package is None

    @pytest.mark.asyncio
    async def test_cancel_idle_returns_false(self, docker_pipeline):
        assert await docker_pipeline.cancel() is False

    @pytest.mark.asyncio
    async def test_failing_progress_callback_cancels_stage(self, make_service):
        framework = ReportingFramework()
        pipeline = ServicePipeline(make_service("api"), framework)

        async def on_progress(stage, event):
            raise RuntimeError("client went away")

        with pytest.raises(PipelineError, match="client went away"):
            await pipeline.run(on_progress=on_progress)

        with pytest.raises(TaskCancelledError):
            await asyncio.wait_for(framework.build_task.wait(), timeout=5)

    @pytest.mark.asyncio
    async def test_timeout(self, make_service):
        pipeline = ServicePipeline(make_service("api"), SlowFramework())

        result = await pipeline.run(timeout=0.05)

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert "timeout" in result.error


class TestServicePipelinePush:
    """Tests for pushing packaged images."""

    @pytest.mark.asyncio
    async def test_push_after_package(self, docker_pipeline, runner, clock):
        await docker_pipeline.run()

        tag = await docker_pipeline.push(DockerCli(runner))

        assert tag == "ACR_ENDPOINT/test-app/api-test:azd-deploy-0"
        assert runner.calls_for("push")[0].args == ["push", tag]
        assert docker_pipeline.state == PipelineState.READY

    @pytest.mark.asyncio
    async def test_push_without_package(self, docker_pipeline, runner):
        with pytest.raises(ConfigurationError, match="not been packaged"):
            await docker_pipeline.push(DockerCli(runner))

    @pytest.mark.asyncio
    async def test_push_directory_package_rejected(self, runner, make_service):
        pipeline = ServicePipeline(make_service("api"), NoOpProject())
        await pipeline.run()

        with pytest.raises(ConfigurationError, match="not a container image"):
            await pipeline.push(DockerCli(runner))

    @pytest.mark.asyncio
    async def test_push_failure_sets_failed(self, docker_pipeline, runner):
        await docker_pipeline.run()
        runner.when("push", result=RunResult(1, "", "denied"))

        with pytest.raises(PipelineError, match="denied"):
            await docker_pipeline.push(DockerCli(runner))
        assert docker_pipeline.state == PipelineState.FAILED
