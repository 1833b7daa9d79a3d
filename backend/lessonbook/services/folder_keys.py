"""Parent pointers for nested lessons, encoded in ``Lesson.image_path``.

Grammar: ``"FC:" <parent lesson id> ":" ("__folder__" | <real file path>)``.
A row carries one segment for its immediate parent; deeper nesting is
resolved by following parent ids.
"""

import re

from sqlalchemy import ColumnElement

PREFIX = "FC:"
FOLDER_MARKER = "__folder__"

_SEGMENT_RE = re.compile(r"FC:(\d+):")
_LEADING_RE = re.compile(r"^(?:FC:\d+:)+")


def child_prefix(container_id: int) -> str:
    return f"{PREFIX}{container_id}:"


def encode_leaf(container_id: int, real_path: str) -> str:
    return child_prefix(container_id) + real_path


def encode_container_marker(container_id: int) -> str:
    return child_prefix(container_id) + FOLDER_MARKER


def is_root(image_path: str | None) -> bool:
    return image_path is None or not image_path.startswith(PREFIX)


def is_direct_child_of(image_path: str | None, container_id: int) -> bool:
    return image_path is not None and image_path.startswith(child_prefix(container_id))


def real_path(image_path: str | None, container_id: int) -> str | None:
    """Strip the ``FC:<container_id>:`` prefix; other values come back unchanged."""
    if is_direct_child_of(image_path, container_id):
        return image_path[len(child_prefix(container_id)):]
    return image_path


def parent_id_of(image_path: str | None) -> int | None:
    if image_path is None:
        return None
    m = _SEGMENT_RE.match(image_path)
    return int(m.group(1)) if m else None


def prefix_chain(image_path: str | None) -> str:
    """Leading ``FC:<id>:`` segments, usually exactly one or none."""
    if image_path is None:
        return ""
    m = _LEADING_RE.match(image_path)
    return m.group(0) if m else ""


def strip_all_prefixes(image_path: str | None) -> str:
    if image_path is None:
        return ""
    return image_path[len(prefix_chain(image_path)):]


def is_file_path(path: str) -> bool:
    """True for a resolved real path that can point at a file."""
    return bool(path) and path != FOLDER_MARKER


def remap_key(image_path: str | None, id_map: dict[int, int]) -> str | None:
    """Rewrite every ``FC:<old>:`` through ``id_map`` in one pass.

    Ids missing from the map are left as they are.
    """
    if image_path is None:
        return None

    def _sub(m: re.Match) -> str:
        old_id = int(m.group(1))
        return child_prefix(id_map.get(old_id, old_id))

    return _SEGMENT_RE.sub(_sub, image_path)


def children_filter(column, container_id: int) -> ColumnElement[bool]:
    """SQL predicate selecting direct children of ``container_id``."""
    return column.startswith(child_prefix(container_id), autoescape=True)


def root_filter(column) -> ColumnElement[bool]:
    return column.is_(None) | ~column.startswith(PREFIX, autoescape=True)
