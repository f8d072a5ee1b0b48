# Dot-path traversal over nested JSON objects.

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List


class KeyPathError(KeyError):
    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0]) if self.args else ""


def split_key(key_path: str) -> List[str]:
    return str(key_path).split(".")


@dataclass
class Cursor:
    """Handle on one addressed value: the owning object plus its key."""

    parent: Dict[str, Any]
    key: str

    @property
    def value(self) -> Any:
        return self.parent[self.key]

    @value.setter
    def value(self, new_value: Any) -> None:
        self.parent[self.key] = new_value


def traverse(data: Any, key_path: str) -> Cursor:
    """Walk ``key_path`` through ``data`` without creating anything.

    Raises KeyPathError when an intermediate segment is missing or is not an
    object, or when the final key is absent.
    """
    segments = split_key(key_path)
    cursor = data
    for segment in segments[:-1]:
        if not isinstance(cursor, dict) or segment not in cursor:
            raise KeyPathError(f"Missing path segment '{segment}' in path '{key_path}'")
        cursor = cursor[segment]

    last = segments[-1]
    if not isinstance(cursor, dict) or last not in cursor:
        raise KeyPathError(f"Missing final key '{last}' in path '{key_path}'")
    return Cursor(parent=cursor, key=last)


def resolve_leaf(data: Any, key_path: str) -> Cursor:
    """Like traverse(), but the addressed value must be a leaf, not an object."""
    cursor = traverse(data, key_path)
    if isinstance(cursor.value, dict):
        raise KeyPathError(f"Path '{key_path}' addresses an object, not a value")
    return cursor


def has_leaf(data: Any, key_path: str) -> bool:
    try:
        resolve_leaf(data, key_path)
    except KeyPathError:
        return False
    return True


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)
