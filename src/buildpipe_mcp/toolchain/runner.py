"""Command runner - executes external tools with output capture.

Processes are started without a shell. Output is captured with size limits.
Cancelling the awaiting task kills the process.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field, replace

from ..errors import ToolStartError

logger = logging.getLogger(__name__)

# Output buffer limits (security: prevent DoS)
MAX_OUTPUT_BYTES: int = 5_000_000  # 5MB total
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line
READ_CHUNK_SIZE: int = 65_536


@dataclass(frozen=True)
class RunArgs:
    """Arguments for a single tool invocation."""

    cmd: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] | None = None

    def with_cwd(self, cwd: str) -> RunArgs:
        return replace(self, cwd=cwd)

    def with_env(self, env: dict[str, str]) -> RunArgs:
        """Return a copy with extra environment variables merged in."""
        merged = dict(self.env or {})
        merged.update(env)
        return replace(self, env=merged)

    @property
    def command_line(self) -> str:
        return " ".join([self.cmd, *self.args])


@dataclass(frozen=True)
class RunResult:
    """Outcome of a tool invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs external commands via asyncio subprocesses."""

    async def run(self, run_args: RunArgs) -> RunResult:
        """Run a command to completion.

        Args:
            run_args: Command, arguments, working directory and extra env

        Returns:
            Exit code with captured stdout and stderr

        Raises:
            ToolStartError: If the process could not be started
            asyncio.CancelledError: If cancelled (the process is killed)
        """
        env = None
        if run_args.env:
            env = {**os.environ, **run_args.env}

        logger.info(f"Running: {run_args.command_line}")
        try:
            process = await asyncio.create_subprocess_exec(
                run_args.cmd,
                *run_args.args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=run_args.cwd or None,
                env=env,
            )
        except OSError as e:
            raise ToolStartError(
                f"failed to start '{run_args.cmd}': {e}",
                command=run_args.cmd,
                args=run_args.args,
            ) from e

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []

        try:
            await asyncio.gather(
                _read_stream(process.stdout, stdout_lines),
                _read_stream(process.stderr, stderr_lines),
            )
            await process.wait()
        except BaseException:
            # Never leave the child running
            logger.warning(f"Aborted, killing: {run_args.command_line}")
            _kill(process)
            await process.wait()
            raise

        exit_code = process.returncode or 0
        logger.debug(f"Exit code {exit_code}: {run_args.command_line}")
        return RunResult(exit_code, "".join(stdout_lines), "".join(stderr_lines))


async def _read_stream(stream: asyncio.StreamReader | None, lines: list[str]) -> None:
    if stream is None:
        return
    total = 0
    line = bytearray()
    truncated = False
    # Fixed-size reads: readline() fails on lines longer than the reader limit
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        for piece in chunk.splitlines(keepends=True):
            if not truncated:
                line += piece
                if len(line) > MAX_OUTPUT_LINE:
                    del line[MAX_OUTPUT_LINE:]
                    truncated = True
            if piece.endswith(b"\n"):
                total = _append_line(lines, line, truncated, total)
                line = bytearray()
                truncated = False
    if line:
        _append_line(lines, line, truncated, total)


def _append_line(lines: list[str], raw: bytearray, truncated: bool, total: int) -> int:
    decoded = raw.decode("utf-8", errors="replace")
    # Truncate long lines
    if truncated:
        decoded += "...[truncated]\n"
    lines.append(decoded)
    total += len(decoded)
    # Drop old lines if buffer too large
    while total > MAX_OUTPUT_BYTES and lines:
        total -= len(lines.pop(0))
    return total


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass
