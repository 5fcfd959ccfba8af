"""Entry point for buildpipe-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .server import ENV_NAME_VAR, create_server, get_manager
from .utils.project import find_project_root


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="BuildPipe MCP Server - Restore, build and package project services via MCP"
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Project root path. Service directories must be inside this path.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect project from current working directory. "
        "Searches upward for azure.yaml or .git markers. "
        "Cannot be used with --project.",
    )
    parser.add_argument(
        "--project-name",
        type=str,
        default=None,
        help="Project name used in default image names (defaults to the root directory name).",
    )
    parser.add_argument(
        "--environment",
        type=str,
        default=None,
        help=f"Environment name (defaults to ${ENV_NAME_VAR}).",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    if args.project_from_cwd:
        if args.project is not None:
            logger.error("--project-from-cwd cannot be used with --project")
            sys.exit(1)
        project_path = str(find_project_root())
        logger.info(f"Auto-detected project root: {project_path}")
    else:
        project_path = args.project or os.getcwd()

    env_name = args.environment or os.environ.get(ENV_NAME_VAR)
    logger.info(f"Starting BuildPipe MCP Server (project: {project_path}, environment: {env_name or '-'})...")

    mcp = create_server(project_path, project_name=args.project_name, env_name=env_name)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        manager = get_manager()
        if manager is not None:
            cancelled = await manager.cancel_all()
            if cancelled:
                logger.info(f"Cancelled {cancelled} running pipeline(s)")
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
