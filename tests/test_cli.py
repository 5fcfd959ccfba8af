"""Tests for CLI entry point - argument parsing and logging setup."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from buildpipe_mcp.__main__ import configure_logging, main, parse_args


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults(self):
        args = parse_args([])

        assert args.project is None
        assert args.project_from_cwd is False
        assert args.project_name is None
        assert args.environment is None

    def test_all_options(self):
        args = parse_args(
            ["--project", "/repo", "--project-name", "shop", "--environment", "dev"]
        )

        assert args.project == "/repo"
        assert args.project_name == "shop"
        assert args.environment == "dev"

    def test_project_from_cwd_flag(self):
        assert parse_args(["--project-from-cwd"]).project_from_cwd is True


class TestConfigureLogging:
    def test_log_level_from_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        with patch("buildpipe_mcp.__main__.logging.basicConfig") as basic_config:
            configure_logging()

        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with patch("buildpipe_mcp.__main__.logging.basicConfig") as basic_config:
            configure_logging()

        assert basic_config.call_args.kwargs["level"] == logging.INFO


class TestMain:
    """Tests for main startup wiring."""

    @pytest.mark.asyncio
    async def test_project_from_cwd_conflicts_with_project(self):
        with pytest.raises(SystemExit):
            await main(["--project", "/repo", "--project-from-cwd"])

    @pytest.mark.asyncio
    async def test_project_from_cwd_detects_root(self, tmp_path, monkeypatch):
        (tmp_path / "azure.yaml").touch()
        subdir = tmp_path / "src" / "api"
        subdir.mkdir(parents=True)
        monkeypatch.chdir(subdir)
        server = MagicMock()
        server.run_stdio_async = AsyncMock()

        with patch("buildpipe_mcp.__main__.create_server", return_value=server) as create, \
                patch("buildpipe_mcp.__main__.get_manager", return_value=None):
            await main(["--project-from-cwd", "--environment", "dev"])

        create.assert_called_once_with(
            str(tmp_path.resolve()), project_name=None, env_name="dev"
        )
        server.run_stdio_async.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cancels_pipelines_on_exit(self, monkeypatch):
        monkeypatch.delenv("BUILDPIPE_ENV_NAME", raising=False)
        server = MagicMock()
        server.run_stdio_async = AsyncMock()
        manager = MagicMock()
        manager.cancel_all = AsyncMock(return_value=2)

        with patch("buildpipe_mcp.__main__.create_server", return_value=server) as create, \
                patch("buildpipe_mcp.__main__.get_manager", return_value=manager):
            await main(["--project", "/repo"])

        create.assert_called_once_with("/repo", project_name=None, env_name=None)
        manager.cancel_all.assert_awaited_once()
