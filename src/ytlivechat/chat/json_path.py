"""Safe descent helpers for InnerTube JSON trees.

InnerTube responses are deeply nested and most branches are optional, so
every lookup here returns ``None`` (or the supplied default) instead of
raising when a hop is missing or has the wrong shape.
"""

from typing import Any

_CONTAINERS = (dict, list)


def get_path(node: Any, *keys: str | int) -> Any:
    """Walk ``keys`` from ``node`` and return the value reached.

    String keys index dicts, integer keys index lists. Returns ``None`` as
    soon as a hop is missing, out of range or of the wrong type.

    Raises:
        TypeError: If ``node`` is neither ``None`` nor a dict/list.
    """
    if node is None:
        return None
    if not isinstance(node, _CONTAINERS):
        raise TypeError(f"Cannot walk a JSON path from {type(node).__name__}")

    current = node
    for key in keys:
        if isinstance(key, bool):
            return None
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        elif isinstance(current, dict):
            if key not in current:
                return None
            current = current[key]
        else:
            return None
    return current


def get_map(node: Any, *keys: str | int) -> dict | None:
    value = get_path(node, *keys)
    return value if isinstance(value, dict) else None


def get_list(node: Any, *keys: str | int) -> list | None:
    value = get_path(node, *keys)
    return value if isinstance(value, list) else None


def get_str(node: Any, *keys: str | int) -> str | None:
    """Return the value at ``keys`` as a string.

    Numbers are stringified the way they appear on the wire; containers
    count as absent.
    """
    value = get_path(node, *keys)
    if value is None or isinstance(value, _CONTAINERS):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def get_int(node: Any, *keys: str | int, default: int = 0) -> int:
    """Return the value at ``keys`` as an int, or ``default``.

    Accepts ints, floats and numeric strings.
    """
    value = get_path(node, *keys)
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def get_bool(node: Any, *keys: str | int, default: bool = False) -> bool:
    value = get_path(node, *keys)
    return value if isinstance(value, bool) else default


def find_key(node: Any, key: str) -> Any:
    """Depth-first search for the first value stored under ``key``.

    Entries are visited in document order and each one is searched fully
    before its next sibling. Returns ``None`` when the key is absent.
    """
    if isinstance(node, dict):
        for name, value in node.items():
            if name == key:
                return value
            found = find_key(value, key)
            if found is not None:
                return found
    elif isinstance(node, list):
        for value in node:
            found = find_key(value, key)
            if found is not None:
                return found
    return None
