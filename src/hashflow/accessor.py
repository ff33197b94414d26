"""Deep value access over nested mappings, sequences and plain objects.

Paths are lists of keys, e.g. ``user.addresses[0].city`` decodes to
``["user", "addresses", "0", "city"]``. A missing key, index or attribute
resolves to None rather than raising.
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from functools import singledispatch
from itertools import islice
from typing import Any

_INDEX_SEGMENT = re.compile(r"\[(\d+)]")
KEY_PATH_PATTERN = re.compile(r"[^\W\d]\w*(?:\.\w+|\[\d+])*")


def decode_key_path(key_path: str) -> list[str]:
    """Split a key path expression into its keys.

    Example:
        decode_key_path("user.addresses[1].city")
        # ["user", "addresses", "1", "city"]
    """
    return _INDEX_SEGMENT.sub(r".\1", key_path).split(".")


@singledispatch
def access_value(obj: Any, key: str) -> Any:
    """Read one key from a value.

    The default variant treats the value as a bean-like object and reads a
    public attribute. Sequence-like iterables accept numeric keys.
    """
    if key.isdigit() and isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
        return next(islice(obj, int(key), None), None)
    if key.startswith("_"):
        return None
    return getattr(obj, key, None)


@access_value.register(type(None))
def _(obj: None, key: str) -> Any:
    return None


@access_value.register(Mapping)
def _(obj: Mapping, key: str) -> Any:
    if key in obj:
        return obj[key]
    if key.isdigit():
        return obj.get(int(key))
    return None


@access_value.register(Sequence)
def _(obj: Sequence, key: str) -> Any:
    if isinstance(obj, (str, bytes)):
        return None
    if not key.isdigit():
        # named tuples expose their fields as attributes
        return None if key.startswith("_") else getattr(obj, key, None)
    index = int(key)
    if index < len(obj):
        return obj[index]
    return None


def access_deep_value(obj: Any, keys: Sequence[str]) -> Any:
    """Walk a list of keys through nested values.

    Returns None as soon as any step resolves to None.
    """
    result = obj
    for key in keys:
        result = access_value(result, key)
        if result is None:
            return None
    return result


def get_deep_value(obj: Any, key_path: str) -> Any:
    """Resolve a key path expression such as ``user.name`` or ``books[0]``.

    Raises:
        ValueError: If the key path is malformed
    """
    if not KEY_PATH_PATTERN.fullmatch(key_path):
        raise ValueError(f"Invalid key path '{key_path}'")
    return access_deep_value(obj, decode_key_path(key_path))


def as_iterable(obj: Any) -> Iterable[Any]:
    """Coerce a value into something a ``#for`` loop can walk.

    None iterates zero times. Strings, bytes and mappings are scalars and
    iterate once, as does any other non-iterable value.
    """
    if obj is None:
        return ()
    if isinstance(obj, (str, bytes, bytearray, Mapping)):
        return (obj,)
    if isinstance(obj, Iterable):
        return obj
    return (obj,)
