"""``${...}`` placeholder interpolation.

Used as the standard ``#for`` body formatter: each plain text line in a
loop body is interpolated with the loop's own bindings before the body
is rendered.

Placeholders:
- ``${key}`` / ``${ key.path[0] }``: the value as text
- ``${!key}``: the value single-quoted, e.g. ``'a'``

Collections render as comma separated lists (``${!ids}`` -> ``'a', 'b'``),
None renders empty, and placeholders whose root key is absent are left as is.
"""

import re
from collections.abc import Mapping, Set
from typing import Any, Callable

from hashflow.accessor import get_deep_value

BodyFormatter = Callable[[int, int, str, Mapping[str, Any]], str]

PLACEHOLDER_PATTERN = re.compile(
    r"\$\{\s*(?P<quoted>!?)(?P<key>[^\W\d]\w*(?:\.\w+|\[\d+])*)\s*}"
)


class StringFormatter:
    """Replaces ``${key}`` placeholders with values from a mapping.

    Example:
        StringFormatter().format("id in (${!ids})", {"ids": ["a", "b"]})
        # "id in ('a', 'b')"
    """

    pattern = PLACEHOLDER_PATTERN

    def format(self, template: str, data: Mapping[str, Any] | None) -> str:
        if not template or "${" not in template or not data:
            return template

        def replace(match: re.Match) -> str:
            key = match.group("key")
            if key in data:
                value = data[key]
            elif self._root(key) in data:
                value = get_deep_value(data, key)
            else:
                return match.group(0)
            return self.render_value(value, bool(match.group("quoted")))

        return self.pattern.sub(replace, template)

    def render_value(self, value: Any, quoted: bool = False) -> str:
        """Turn a value into placeholder text."""
        if value is None:
            return ""
        if isinstance(value, (list, tuple, Set)):
            items = value
        else:
            items = (value,)
        parts = [str(v) for v in items if v is not None]
        if quoted:
            parts = [f"'{p}'" for p in parts]
        return ", ".join(parts)

    @staticmethod
    def _root(key: str) -> str:
        return re.split(r"[.\[]", key, maxsplit=1)[0]


_formatter = StringFormatter()


def identity_body(for_index: int, item_index: int, body: str, loop_vars: Mapping[str, Any]) -> str:
    """Default loop body formatter: leaves text unchanged."""
    return body


def interpolate_body(for_index: int, item_index: int, body: str, loop_vars: Mapping[str, Any]) -> str:
    """Loop body formatter that interpolates ``${...}`` with the loop bindings."""
    return _formatter.format(body, loop_vars)
