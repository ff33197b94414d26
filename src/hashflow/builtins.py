"""Built-in pipes for hashflow expressions.

This module registers the builtin pipes with the PipeRegistry. The package
``__init__`` calls ``register_builtin_pipes()`` on import.

Pipes:
- String: upper, lower, trim, split
- Collection: length, kv, pairs, in
- Value: type, nvl
"""

import re
from collections.abc import Mapping, Sized
from dataclasses import dataclass
from typing import Any

from hashflow.comparators import equals
from hashflow.pipes import PipeDefinition, PipeParameter, PipeRegistry

_SCALAR_TYPES = (str, bytes, int, float, bool, complex)


@dataclass(frozen=True)
class KeyValue:
    """One entry produced by the ``kv`` pipe."""

    key: str
    value: Any


def register_builtin_pipes() -> None:
    """Register all builtin pipes with the PipeRegistry."""
    _register_string_pipes()
    _register_collection_pipes()
    _register_value_pipes()


# -----------------------------------------------------------------------------
# String Pipes
# -----------------------------------------------------------------------------


def _upper(value: Any) -> str:
    """Convert to uppercase."""
    if value is None:
        return ""
    return str(value).upper()


def _lower(value: Any) -> str:
    """Convert to lowercase."""
    if value is None:
        return ""
    return str(value).lower()


def _trim(value: Any) -> str:
    """Trim whitespace from both ends."""
    if value is None:
        return ""
    return str(value).strip()


def _split(value: Any, separator: Any) -> list[str]:
    """Split a string by a regular expression."""
    if value is None:
        return []
    return re.split(str(separator), str(value))


def _register_string_pipes() -> None:
    PipeRegistry.register_builtin(
        PipeDefinition(
            name="upper",
            description="Converts the value to uppercase",
            examples=[":code | upper == 'ABC'"],
            implementation=_upper,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="lower",
            description="Converts the value to lowercase",
            examples=[":status | lower == 'active'"],
            implementation=_lower,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="trim",
            description="Removes leading and trailing whitespace",
            examples=[":name | trim <> blank"],
            implementation=_trim,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="split",
            description="Splits the value into a list by a regular expression",
            parameters=[
                PipeParameter("separator", "string", "Separator pattern")
            ],
            examples=[
                ":tags | split(',') | length > 1",
                "#for tag of :tags | split('\\s*,\\s*')",
            ],
            implementation=_split,
        )
    )


# -----------------------------------------------------------------------------
# Collection Pipes
# -----------------------------------------------------------------------------


def _length(value: Any) -> int:
    """Return the size of a collection or the length of the string form."""
    if value is None:
        return 0
    if isinstance(value, Sized):
        return len(value)
    return len(str(value))


def _kv(value: Any) -> list[KeyValue]:
    """Turn a mapping or an object's public attributes into KeyValue entries."""
    if value is None or isinstance(value, _SCALAR_TYPES):
        return []
    if isinstance(value, Mapping):
        items = value.items()
    elif hasattr(value, "__dict__"):
        items = vars(value).items()
    else:
        return []
    return [
        KeyValue(str(k), v)
        for k, v in items
        if k is not None and not str(k).startswith("_")
    ]


def _pairs(value: Any) -> list[tuple[Any, Any]]:
    """Turn a mapping into a list of (key, value) tuples."""
    if not isinstance(value, Mapping):
        return []
    return list(value.items())


def _in(value: Any, *candidates: Any) -> bool:
    """Return True if the value equals any candidate."""
    return any(equals(value, candidate) for candidate in candidates)


def _register_collection_pipes() -> None:
    PipeRegistry.register_builtin(
        PipeDefinition(
            name="length",
            description="Returns the size of a collection or the length of a string",
            examples=[":items | length > 0", ":name | length <= 20"],
            implementation=_length,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="kv",
            description="Converts a mapping or object into a list of key/value entries",
            examples=["#for e of :user | kv delimiter ', '"],
            implementation=_kv,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="pairs",
            description="Converts a mapping into a list of (key, value) tuples",
            examples=["#for p of :filters | pairs delimiter ' and '"],
            implementation=_pairs,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="in",
            description="Returns true if the value equals one of the arguments",
            parameters=[
                PipeParameter("values", "any", "Candidate values", variadic=True)
            ],
            examples=[":status | in('open', 'pending') == true"],
            implementation=_in,
        )
    )


# -----------------------------------------------------------------------------
# Value Pipes
# -----------------------------------------------------------------------------


def _type(value: Any) -> str:
    """Return the type name of the value, empty for None."""
    if value is None:
        return ""
    return type(value).__name__


def _nvl(value: Any, default: Any) -> Any:
    """Return the default when the value is None."""
    return default if value is None else value


def _register_value_pipes() -> None:
    PipeRegistry.register_builtin(
        PipeDefinition(
            name="type",
            description="Returns the type name of the value",
            examples=[":id | type == 'int'"],
            implementation=_type,
        )
    )

    PipeRegistry.register_builtin(
        PipeDefinition(
            name="nvl",
            description="Returns the argument when the value is null",
            parameters=[
                PipeParameter("default", "any", "Replacement for null")
            ],
            examples=[":page | nvl(1) > 0"],
            implementation=_nvl,
        )
    )
