"""MCP Server exposing the service build pipeline."""

from __future__ import annotations

import itertools
import json
import logging
import os

from mcp.server.fastmcp import Context, FastMCP

from .environment import Environment
from .errors import PipelineError, ToolInvocationError
from .pipeline import PipelineManager, PipelineResult, PipelineStage
from .project import ProjectConfig
from .project.results import ServiceProgress
from .utils.project import get_project_root

logger = logging.getLogger(__name__)

ENV_NAME_VAR = "BUILDPIPE_ENV_NAME"
DOCKER_PATH_VAR = "BUILDPIPE_DOCKER_PATH"

# Global pipeline manager (single project mode)
_manager: PipelineManager | None = None
_initial_project_path: str | None = None
_initial_project_name: str | None = None
_initial_env_name: str | None = None


def get_manager() -> PipelineManager | None:
    """Current pipeline manager, or None before the first tool call."""
    return _manager


def reset_manager() -> None:
    global _manager
    _manager = None


async def ensure_manager(ctx: Context | None = None) -> PipelineManager:
    """Get or create the pipeline manager.

    The project root comes from MCP client roots when available, otherwise
    from BUILDPIPE_PROJECT_ROOT or the startup path.
    """
    global _manager
    if _manager is None:
        root = await get_project_root(ctx, _initial_project_path or os.getcwd())
        root_path = str(root) if root else os.getcwd()
        project = ProjectConfig(
            name=_initial_project_name or os.path.basename(os.path.normpath(root_path)),
            path=root_path,
        )
        env_name = _initial_env_name or os.environ.get(ENV_NAME_VAR, "")
        _manager = PipelineManager(
            project,
            Environment.from_os_environ(env_name),
            docker_path=os.environ.get(DOCKER_PATH_VAR),
        )
        logger.info(f"Pipeline manager created (project: {project.name} at {root_path})")
    return _manager


def format_results(results: dict[str, PipelineResult]) -> dict:
    """Tool response for pipeline results."""
    return {
        "success": all(r.success for r in results.values()),
        "data": {name: r.to_dict() for name, r in results.items()},
        "summary": "\n\n".join(r.to_summary() for r in results.values()),
    }


def error_response(e: Exception) -> dict:
    response: dict = {"success": False, "error": str(e)}
    if isinstance(e, ToolInvocationError):
        response["details"] = e.to_dict()
    return response


def create_server(
    project_path: str | None = None,
    project_name: str | None = None,
    env_name: str | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        project_path: Root directory of the project. Service paths must lie
            inside it. Can be overridden by MCP client roots.
        project_name: Project name used in default image names
            (defaults to the root directory name)
        env_name: Initial environment name
    """
    global _initial_project_path, _initial_project_name, _initial_env_name
    _initial_project_path = project_path
    _initial_project_name = project_name
    _initial_env_name = env_name
    mcp = FastMCP("buildpipe-mcp")

    # Helper to notify resource subscribers
    from pydantic import AnyUrl

    async def notify_state_changed(ctx: Context) -> None:
        """Notify client that pipeline://state resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("pipeline://state"))
        except Exception:
            pass  # Notification failure shouldn't break the tool

    def progress_relay(ctx: Context):
        counter = itertools.count(1)

        async def on_progress(service: str, stage: PipelineStage, event: ServiceProgress) -> None:
            try:
                await ctx.report_progress(
                    progress=next(counter),
                    message=f"{service} {stage.value}: {event.message}",
                )
            except Exception:
                logger.debug("Progress notification failed", exc_info=True)

        return on_progress

    async def run_stages(
        ctx: Context,
        services: list[str] | None,
        stages: list[PipelineStage],
        timeout: float | None = None,
    ) -> dict:
        try:
            manager = await ensure_manager(ctx)
            results = await manager.run(
                services, stages, on_progress=progress_relay(ctx), timeout=timeout
            )
            await notify_state_changed(ctx)
            return format_results(results)
        except PipelineError as e:
            return error_response(e)

    # ============== Configuration Tools ==============

    @mcp.tool()
    async def configure_environment(
        ctx: Context,
        name: str | None = None,
        values: dict[str, str] | None = None,
        unset: list[str] | None = None,
    ) -> dict:
        """
        Configure the deployment environment.

        Changing the name switches to a new environment (values are carried
        over). Values are merged into the current environment; keys in unset
        are removed.

        Args:
            name: Environment name used in default image names
            values: Values to set, e.g. {"AZURE_CONTAINER_REGISTRY_ENDPOINT": "myacr.azurecr.io"}
            unset: Keys to remove
        """
        try:
            manager = await ensure_manager(ctx)
            if name is not None and name != manager.env.name:
                manager.set_environment(Environment(name, manager.env.values))
            for key, value in (values or {}).items():
                manager.env.set_value(key, value)
            for key in unset or []:
                manager.env.delete_value(key)
            return {"success": True, "data": manager.env.to_dict()}
        except PipelineError as e:
            return error_response(e)

    @mcp.tool()
    async def add_service(
        ctx: Context,
        name: str,
        project: str,
        language: str = "",
        host: str = "appservice",
        docker_path: str | None = None,
        docker_context: str | None = None,
        docker_platform: str | None = None,
        docker_tag: str | None = None,
        dist: str | None = None,
    ) -> dict:
        """
        Register a service of the project.

        Services hosted on containerapp or aks (or with language "docker") are
        built as container images on top of their language build.

        Args:
            name: Service name
            project: Service directory relative to the project root
            language: dotnet, csharp, fsharp, js, ts, python (py), or docker
            host: appservice, containerapp, function, staticwebapp, aks
            docker_path: Dockerfile path (default ./Dockerfile)
            docker_context: Docker build context (default .)
            docker_platform: Image platform (default: host architecture)
            docker_tag: Image tag template, e.g. "myacr.azurecr.io/${SERVICE_NAME}:latest"
            dist: Build output directory relative to the service directory
        """
        data: dict = {"project": project, "language": language, "host": host}
        docker = {
            key: value
            for key, value in {
                "path": docker_path,
                "context": docker_context,
                "platform": docker_platform,
                "tag": docker_tag,
            }.items()
            if value
        }
        if docker:
            data["docker"] = docker
        if dist:
            data["dist"] = dist

        try:
            manager = await ensure_manager(ctx)
            pipeline = manager.add_service(name, data)
            await notify_state_changed(ctx)
            return {
                "success": True,
                "data": {
                    "service": pipeline.service_config.to_dict(),
                    "framework": type(pipeline.framework).__name__,
                },
            }
        except PipelineError as e:
            return error_response(e)

    @mcp.tool()
    async def list_services(ctx: Context) -> dict:
        """List registered services with their pipeline state."""
        manager = await ensure_manager(ctx)
        return {"success": True, "data": manager.to_dict()}

    @mcp.tool()
    async def check_tools(ctx: Context, services: list[str] | None = None) -> dict:
        """
        Check that the external tools required by services are installed.

        Args:
            services: Services to check (all when omitted)
        """
        try:
            manager = await ensure_manager(ctx)
            await manager.ensure_tools(services)
            return {"success": True, "data": {"installed": True}}
        except PipelineError as e:
            return error_response(e)

    # ============== Pipeline Tools ==============

    @mcp.tool()
    async def restore_service(ctx: Context, service: str) -> dict:
        """
        Restore dependencies of a service (npm install, pip install, dotnet restore).

        Args:
            service: Service name
        """
        return await run_stages(ctx, [service], [PipelineStage.RESTORE])

    @mcp.tool()
    async def build_service(ctx: Context, service: str) -> dict:
        """
        Build a service. Container services also build their docker image;
        the build output is then the image id.

        Args:
            service: Service name
        """
        return await run_stages(ctx, [service], [PipelineStage.BUILD])

    @mcp.tool()
    async def package_service(ctx: Context, service: str) -> dict:
        """
        Package a built service. Container services are tagged for the
        registry in AZURE_CONTAINER_REGISTRY_ENDPOINT unless a tag template
        was configured.

        Args:
            service: Service name
        """
        return await run_stages(ctx, [service], [PipelineStage.PACKAGE])

    @mcp.tool()
    async def run_pipeline(
        ctx: Context,
        services: list[str] | None = None,
        stages: list[str] | None = None,
        timeout: float | None = None,
    ) -> dict:
        """
        Run restore, build and package for services concurrently.

        Args:
            services: Services to run (all when omitted)
            stages: Subset of "restore", "build", "package" (all when omitted)
            timeout: Per-service timeout in seconds
        """
        try:
            selected = [PipelineStage(s) for s in stages] if stages else list(PipelineStage)
        except ValueError as e:
            return {"success": False, "error": str(e)}
        return await run_stages(ctx, services, selected, timeout)

    @mcp.tool()
    async def push_image(ctx: Context, service: str) -> dict:
        """
        Push the packaged container image of a service to its registry.

        Args:
            service: Service name
        """
        try:
            manager = await ensure_manager(ctx)
            tag = await manager.push(service)
            await notify_state_changed(ctx)
            return {"success": True, "data": {"imageTag": tag}}
        except PipelineError as e:
            return error_response(e)

    @mcp.tool()
    async def cancel_pipeline(ctx: Context, service: str | None = None) -> dict:
        """
        Cancel running pipelines.

        Args:
            service: Service to cancel (all when omitted)
        """
        try:
            manager = await ensure_manager(ctx)
            if service:
                cancelled = 1 if await manager.cancel(service) else 0
            else:
                cancelled = await manager.cancel_all()
            return {"success": True, "data": {"cancelled": cancelled}}
        except PipelineError as e:
            return error_response(e)

    # ============== Prompts (slash commands) ==============

    @mcp.prompt(
        name="deploy-image",
        description="Workflow for building and pushing a container service",
    )
    def deploy_image_prompt() -> list[dict]:
        """Steps to ship a service as a container image."""
        return [
            {
                "role": "user",
                "content": """# Container Build Workflow

1. `configure_environment(name="dev", values={"AZURE_CONTAINER_REGISTRY_ENDPOINT": "<registry>"})`
2. `add_service(name="api", project="src/api", language="py", host="containerapp")`
3. `check_tools()` - docker plus the language toolchain must be installed
4. `run_pipeline(services=["api"])` - restore, build (image id), package (registry tag)
5. `push_image(service="api")`

Report the final image tag to the user. If a stage fails, show the error
and the tool stderr from the result details.
""",
            }
        ]

    # ============== Resources ==============

    @mcp.resource("pipeline://state", mime_type="application/json")
    async def pipeline_state_resource() -> str:
        """Pipeline state per service (JSON).

        Updates when: services are added, stages run, images are pushed.
        """
        manager = await ensure_manager()
        return json.dumps({k: v.value for k, v in manager.get_all_states().items()}, indent=2)

    @mcp.resource("pipeline://services", mime_type="application/json")
    async def pipeline_services_resource() -> str:
        """Registered services with configuration and last results (JSON)."""
        manager = await ensure_manager()
        return json.dumps(manager.to_dict(), indent=2)

    @mcp.resource("pipeline://environment", mime_type="application/json")
    async def pipeline_environment_resource() -> str:
        """Current environment name and values (JSON)."""
        manager = await ensure_manager()
        return json.dumps(manager.env.to_dict(), indent=2)

    logger.info("Build pipeline MCP Server initialized")
    return mcp
