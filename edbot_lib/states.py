"""
edbot_lib/states.py

State mirror: the client-local copy of the server's state tree.

Principles:
- The tree is empty and inert until the handshake response seeds it.
- Patch-style updates: mappings merge recursively, lists and scalars replace.
- reset() clears the tree in place, so stale references see an empty tree.
- No I/O, no logging, no protocol knowledge here; this is pure state storage.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Mapping, Sequence, Union

from .errors import EdbotNotConnectedError

PathSegment = Union[str, int]
Path = Union[str, Sequence[PathSegment]]

# foo.bar, foo[0], foo["x.y"], foo['x']
_PATH_TOKEN = re.compile(r"""[^.\[\]]+|\[(?:"([^"]*)"|'([^']*)'|([^\]]*))\]""")


def deep_merge(target: dict[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``patch`` into ``target`` in place and return ``target``."""
    for key, value in patch.items():
        if isinstance(value, Mapping):
            current = target.get(key)
            if isinstance(current, dict):
                deep_merge(current, value)
            else:
                target[key] = deep_merge({}, value)
        elif isinstance(value, list):
            target[key] = copy.deepcopy(value)
        else:
            target[key] = value
    return target


def split_path(path: Path) -> list[PathSegment]:
    if isinstance(path, str):
        if not path:
            raise ValueError("path must not be empty")
        segments: list[PathSegment] = []
        for match in _PATH_TOKEN.finditer(path):
            token = match.group(0)
            if token.startswith("["):
                quoted = match.group(1) if match.group(1) is not None else match.group(2)
                segments.append(quoted if quoted is not None else match.group(3))
            else:
                segments.append(token)
        if not segments:
            raise ValueError(f"path has no segments: {path!r}")
        return segments
    if isinstance(path, (list, tuple)) and path:
        for segment in path:
            if isinstance(segment, bool) or not isinstance(segment, (str, int)):
                raise ValueError(f"invalid path segment: {segment!r}")
        return list(path)
    raise ValueError(f"path must be a string or a non-empty list (got {path!r})")


def _list_index(container: list[Any], segment: PathSegment) -> int | None:
    if isinstance(segment, int):
        index = segment
    elif segment.isdigit():
        index = int(segment)
    else:
        return None
    if 0 <= index < len(container):
        return index
    return None


def _child(container: Any, segment: PathSegment) -> Any:
    if isinstance(container, dict):
        return container.get(str(segment))
    if isinstance(container, list):
        index = _list_index(container, segment)
        return container[index] if index is not None else None
    return None


def unset_path(tree: dict[str, Any], segments: Sequence[PathSegment]) -> bool:
    """
    Remove the value at ``segments``. Returns True if a value was removed.

    List elements are set to None instead of being removed so the positions
    of their siblings do not shift.
    """
    parent: Any = tree
    for segment in segments[:-1]:
        parent = _child(parent, segment)
        if parent is None:
            return False
    last = segments[-1]
    if isinstance(parent, dict):
        key = str(last)
        if key in parent:
            del parent[key]
            return True
        return False
    if isinstance(parent, list):
        index = _list_index(parent, last)
        if index is not None:
            parent[index] = None
            return True
    return False


class StateMirror:
    def __init__(self) -> None:
        self._tree: dict[str, Any] = {}
        self._synchronized = False

    @property
    def synchronized(self) -> bool:
        return self._synchronized

    def reset(self) -> None:
        self._tree.clear()
        self._synchronized = False

    def mark_synchronized(self, initial_data: Any) -> None:
        if isinstance(initial_data, Mapping):
            deep_merge(self._tree, initial_data)
        self._synchronized = True

    def apply_update(self, patch: Any) -> bool:
        """Deep-merge ``patch``. Returns False (and changes nothing) if ignored."""
        if not self._synchronized or not isinstance(patch, Mapping):
            return False
        deep_merge(self._tree, patch)
        return True

    def apply_delete(self, path: Any) -> bool:
        """Unset ``path``. Returns False (and changes nothing) if ignored."""
        if not self._synchronized:
            return False
        try:
            segments = split_path(path)
        except ValueError:
            return False
        unset_path(self._tree, segments)
        return True

    def snapshot(self) -> dict[str, Any]:
        """Return the live tree."""
        if not self._synchronized:
            raise EdbotNotConnectedError()
        return self._tree


__all__ = ["StateMirror", "deep_merge", "split_path", "unset_path"]
