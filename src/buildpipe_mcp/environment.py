"""Environment key/value store shared by pipeline components.

The pipeline only reads values. Other collaborators (the MCP server, tests)
may mutate the store at any time, so readers look values up on every use.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping

logger = logging.getLogger(__name__)

CONTAINER_REGISTRY_ENDPOINT_ENV_VAR_NAME = "AZURE_CONTAINER_REGISTRY_ENDPOINT"
ENV_NAME_ENV_VAR_NAME = "AZURE_ENV_NAME"


class Environment:
    """Named environment holding string values."""

    def __init__(self, name: str = "", values: Mapping[str, str] | None = None):
        self._name = name
        self._values: dict[str, str] = dict(values or {})
        self._lock = threading.Lock()

    @classmethod
    def from_os_environ(cls, name: str, prefixes: tuple[str, ...] = ("AZURE_",)) -> Environment:
        """Create an environment seeded from process environment variables.

        Only variables starting with one of ``prefixes`` are copied.
        """
        values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(prefixes)
        }
        logger.debug(f"Seeded environment '{name}' with {len(values)} values")
        return cls(name, values)

    @property
    def name(self) -> str:
        """Environment name."""
        return self._name

    @property
    def values(self) -> dict[str, str]:
        """Snapshot copy of all values."""
        with self._lock:
            return dict(self._values)

    def get_value(self, key: str) -> str | None:
        """Get a value, or None if the key is not set."""
        with self._lock:
            return self._values.get(key)

    def set_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete_value(self, key: str) -> bool:
        """Remove a value. Returns True if it was present."""
        with self._lock:
            return self._values.pop(key, None) is not None

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self._name, "values": self.values}
