"""Utility modules for buildpipe-mcp."""

from .project import find_project_root, get_project_root, parse_file_uri

__all__ = [
    "find_project_root",
    "get_project_root",
    "parse_file_uri",
]
