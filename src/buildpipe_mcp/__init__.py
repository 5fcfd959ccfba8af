"""BuildPipe MCP Server - restore, build and package project services via MCP."""

__version__ = "0.1.0"
