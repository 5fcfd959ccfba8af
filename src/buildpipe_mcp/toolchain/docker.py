"""Docker CLI wrapper."""

from __future__ import annotations

import logging
import platform

from .base import ExternalTool

logger = logging.getLogger(__name__)

# platform.machine() values mapped to docker architecture names
_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def host_platform() -> str:
    """Docker platform name for the host build architecture."""
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


class DockerCli(ExternalTool):
    """docker build / tag / push."""

    name = "Docker"
    install_url = "https://aka.ms/azure-dev/docker-install"
    default_executable = "docker"

    async def build(
        self,
        cwd: str,
        dockerfile_path: str,
        platform: str,
        build_context: str,
    ) -> str:
        """Build an image quietly.

        Returns:
            Image id printed by docker
        """
        result = await self._run(
            cwd,
            "build", "-q",
            "-f", dockerfile_path,
            "--platform", platform,
            build_context,
        )
        image_id = result.stdout.strip()
        logger.info(f"Built image {image_id}")
        return image_id

    async def tag(self, cwd: str, image: str, tag: str) -> None:
        """Associate ``tag`` with an existing image."""
        await self._run(cwd, "tag", image, tag)

    async def push(self, cwd: str, tag: str) -> None:
        await self._run(cwd, "push", tag)
