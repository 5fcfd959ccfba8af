"""Expandable string values.

Template syntax:
- ``${NAME}`` or ``$NAME``: substituted from the values mapping
- ``${NAME:-default}``: default used when NAME is missing or empty
- ``$$``: literal ``$``
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from ..errors import TemplateResolutionError

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ExpandableString:
    """String with placeholders resolved at evaluation time.

    The last evaluation is memoized against the values snapshot it used.
    """

    def __init__(self, template: str):
        self._template = template
        self._memo: tuple[tuple[tuple[str, str], ...], str] | None = None

    @property
    def template(self) -> str:
        """Raw, unevaluated template."""
        return self._template

    def evaluate(self, values: Mapping[str, str]) -> str:
        """Resolve placeholders against ``values``.

        Raises:
            TemplateResolutionError: If a placeholder cannot be resolved
        """
        key = tuple(sorted(values.items()))
        if self._memo is not None and self._memo[0] == key:
            return self._memo[1]
        resolved = expand(self._template, values)
        self._memo = (key, resolved)
        return resolved

    def __str__(self) -> str:
        return self._template

    def __repr__(self) -> str:
        return f"ExpandableString({self._template!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExpandableString):
            return self._template == other._template
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._template)


def expand(template: str, values: Mapping[str, str]) -> str:
    """Expand a template in a single pass."""
    out: list[str] = []
    i = 0
    n = len(template)

    while i < n:
        ch = template[i]
        if ch != "$":
            out.append(ch)
            i += 1
            continue

        nxt = template[i + 1] if i + 1 < n else ""

        if nxt == "$":
            out.append("$")
            i += 2
            continue

        if nxt == "{":
            end = template.find("}", i + 2)
            if end == -1:
                raise TemplateResolutionError(f"unterminated placeholder in '{template}'")
            expr = template[i + 2:end]
            name, has_default, default = expr.partition(":-")
            if not _IDENTIFIER.fullmatch(name):
                raise TemplateResolutionError(f"invalid placeholder '${{{expr}}}'", name)
            value = values.get(name)
            if not value and has_default:
                value = default
            if value is None:
                raise TemplateResolutionError(f"unresolved placeholder '{name}'", name)
            out.append(value)
            i = end + 1
            continue

        match = _IDENTIFIER.match(template, i + 1)
        if match:
            name = match.group()
            value = values.get(name)
            if value is None:
                raise TemplateResolutionError(f"unresolved placeholder '{name}'", name)
            out.append(value)
            i = match.end()
            continue

        # Lone '$' is literal
        out.append("$")
        i += 1

    return "".join(out)
