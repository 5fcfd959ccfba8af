"""Path policy - keeps service directories inside the project root.

Security measures:
- Path canonicalization with symlink rejection
- UNC and device path denial
- Containment check against the project root
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class PathPolicy:
    """Validates service paths against a project root."""

    project_root: str
    allow_unc_paths: bool = False
    allow_device_paths: bool = False

    def __post_init__(self) -> None:
        """Validate and canonicalize project root."""
        self.project_root = self._validate_path(self.project_root, context="project_root")

    def _validate_path(self, path: str, context: str = "path") -> str:
        """Validate and canonicalize a path.

        Raises:
            ValueError: If path is invalid or violates security policy
        """
        if not path:
            raise ValueError(f"Empty {context}")

        self._check_prefix(path, context)

        abs_path = os.path.abspath(path)

        if os.path.islink(abs_path):
            raise ValueError(f"Symlink not allowed in {context}: {path}")

        return abs_path

    def _check_prefix(self, path: str, context: str) -> None:
        # Deny device paths (\\?\, \\.\) - check before UNC since they start with \\
        if path.startswith(("\\\\.\\", "\\\\?\\")) and not self.allow_device_paths:
            raise ValueError(f"Device paths not allowed in {context}: {path}")

        # Deny UNC paths (\\server\share)
        if path.startswith("\\\\") and not self.allow_unc_paths:
            raise ValueError(f"UNC paths not allowed in {context}: {path}")

    def validate_service_path(self, service_path: str) -> str:
        """Validate a service path is within the project root.

        Relative paths are resolved against the project root.

        Returns:
            Validated absolute path

        Raises:
            ValueError: If path is invalid or outside the project root
        """
        if service_path:
            self._check_prefix(service_path, "service_path")
            if not os.path.isabs(service_path):
                service_path = os.path.join(self.project_root, service_path)
        validated = self._validate_path(service_path, context="service_path")

        # Compare resolved paths so symlinked parent directories cannot escape
        real_root = os.path.realpath(self.project_root)
        try:
            common = os.path.commonpath([os.path.realpath(validated), real_root])
        except ValueError as e:
            # Different drives on Windows
            raise ValueError(f"Service path outside project root: {service_path}") from e
        if common != real_root:
            raise ValueError(f"Service path outside project root: {service_path}")

        return validated
