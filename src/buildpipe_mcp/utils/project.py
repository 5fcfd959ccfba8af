"""Project root detection utilities.

The project root is determined from, in priority order:
1. MCP Roots from client (via Context.list_roots())
2. BUILDPIPE_PROJECT_ROOT environment variable
3. The path given at startup
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

PROJECT_ROOT_ENV_VAR = "BUILDPIPE_PROJECT_ROOT"
PROJECT_MARKER = "azure.yaml"


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to an absolute Path.

    Returns:
        Path object if parsing succeeds, None otherwise
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)

    if sys.platform == "win32":
        # file:///C:/path → "/C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        # file://server/share → UNC
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def find_project_root(start_dir: Path | None = None) -> Path:
    """Find the project root by walking up from a directory.

    Looks for azure.yaml first, then .git. Falls back to start_dir.
    """
    current = (start_dir or Path.cwd()).resolve()

    def ancestors() -> Iterator[Path]:
        yield current
        yield from current.parents

    for directory in ancestors():
        if (directory / PROJECT_MARKER).is_file():
            return directory

    for directory in ancestors():
        if (directory / ".git").exists():  # .git can be file (worktree) or dir
            return directory

    return current


async def get_project_root(ctx: Context | None, fallback: str | None) -> Path | None:
    """Determine the project root from the client, environment or fallback.

    Args:
        ctx: MCP Context for accessing client-provided roots
        fallback: Path configured at startup

    Returns:
        Path to project root, or None if not determinable
    """
    if ctx is not None:
        try:
            roots = await ctx.list_roots()
            if roots:
                path = parse_file_uri(str(roots[0].uri))
                if path and path.is_dir():
                    logger.info(f"Using project root from MCP client: {path}")
                    return path
                logger.warning(f"MCP root path invalid or not accessible: {path}")
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")

    env_value = os.environ.get(PROJECT_ROOT_ENV_VAR)
    if env_value:
        path = Path(env_value)
        if path.is_dir():
            logger.info(f"Using project root from {PROJECT_ROOT_ENV_VAR}: {path}")
            return path
        logger.warning(f"{PROJECT_ROOT_ENV_VAR}={env_value} - path is not a directory")

    if fallback:
        return Path(fallback)

    logger.warning("Could not determine project root from any source")
    return None
