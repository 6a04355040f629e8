"""Path resolution and formatting for document nodes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum, auto

from jnode.errors import PathError

Segment = str | int
Path = tuple[Segment, ...]


class ContainerKind(Enum):
    MAP = auto()
    SEQUENCE = auto()
    SCALAR = auto()


def container_kind(value: object) -> ContainerKind:
    """Classify a document value."""
    if isinstance(value, dict):
        return ContainerKind.MAP
    if isinstance(value, list):
        return ContainerKind.SEQUENCE
    return ContainerKind.SCALAR


def _is_index(segment: object) -> bool:
    # bool is an int subclass but never a valid index
    return isinstance(segment, int) and not isinstance(segment, bool)


@dataclass
class ContainerRef:
    """The container holding a path's value, plus the final segment.

    ``segment`` is None when the path is empty; ``container`` is then the
    document root itself.
    """

    container: object
    segment: Segment | None
    path: Path = ()

    @property
    def is_root(self) -> bool:
        return self.segment is None

    def get(self) -> object:
        if self.segment is None:
            return self.container
        if container_kind(self.container) is ContainerKind.MAP:
            if self.segment not in self.container:
                raise PathError(self.path, f"Key {self.segment!r} does not exist")
        return self.container[self.segment]

    def set(self, value: object) -> None:
        if self.segment is None:
            raise PathError(self.path, "Cannot assign to the document root")
        self.container[self.segment] = value


def _step(current: object, segment: object, path: Path, depth: int) -> object:
    """Descend one segment, failing on a missing or mismatched segment."""
    kind = container_kind(current)
    if kind is ContainerKind.MAP:
        if not isinstance(segment, str):
            raise PathError(path, f"Segment {depth} ({segment!r}) must be a key for a map")
        if segment not in current:
            raise PathError(path, f"Segment {depth} ({segment!r}) does not exist")
        return current[segment]
    if kind is ContainerKind.SEQUENCE:
        if not _is_index(segment):
            raise PathError(path, f"Segment {depth} ({segment!r}) must be an index for a sequence")
        if not 0 <= segment < len(current):
            raise PathError(path, f"Segment {depth} ({segment!r}) is out of range")
        return current[segment]
    raise PathError(path, f"Segment {depth} ({segment!r}) descends into a scalar")


def _check_final(container: object, segment: object, path: Path) -> None:
    depth = len(path) - 1
    kind = container_kind(container)
    if kind is ContainerKind.MAP:
        if not isinstance(segment, str):
            raise PathError(path, f"Segment {depth} ({segment!r}) must be a key for a map")
    elif kind is ContainerKind.SEQUENCE:
        if not _is_index(segment):
            raise PathError(path, f"Segment {depth} ({segment!r}) must be an index for a sequence")
        if not 0 <= segment < len(container):
            raise PathError(path, f"Segment {depth} ({segment!r}) is out of range")
    else:
        raise PathError(path, f"Segment {depth} ({segment!r}) descends into a scalar")


def resolve(document: object, path: Path | list[Segment]) -> ContainerRef:
    """Resolve all but the last segment of *path* against *document*.

    The last segment may name a map key that does not exist yet. Sequence
    indices must always exist.
    """
    path = tuple(path)
    if not path:
        return ContainerRef(document, None, path)

    current = document
    for depth, segment in enumerate(path[:-1]):
        current = _step(current, segment, path, depth)
    _check_final(current, path[-1], path)
    return ContainerRef(current, path[-1], path)


def format_path(path: Path | list[Segment] | None) -> str:
    """Render a path as a locator, e.g. ``$["customer"][0]``."""
    if not path:
        return "$"
    parts = []
    for segment in path:
        if _is_index(segment):
            parts.append(f"[{segment}]")
        else:
            parts.append(f"[{json.dumps(segment, ensure_ascii=False)}]")
    return "$" + "".join(parts)


def parse_path(text: str) -> Path:
    """Parse a locator back into a path.

    Supports:
    - $ (root)
    - ["key"] / ['key'] (quoted key)
    - [n] (array index)
    - .key (dotted key)
    """
    text = text.strip()
    if not text.startswith("$"):
        raise PathError((), f"Locator must start with $: {text!r}")

    rest = text[1:]
    segments: list[Segment] = []
    while rest:
        if rest.startswith("["):
            segment, rest = _bracket_segment(rest, text)
            segments.append(segment)
        elif rest.startswith("."):
            rest = rest[1:]
            end = len(rest)
            for i, ch in enumerate(rest):
                if ch in ".[":
                    end = i
                    break
            if end == 0:
                raise PathError(tuple(segments), f"Empty key in locator: {text!r}")
            segments.append(rest[:end])
            rest = rest[end:]
        else:
            raise PathError(tuple(segments), f"Unexpected {rest[0]!r} in locator: {text!r}")
    return tuple(segments)


def _bracket_segment(rest: str, text: str) -> tuple[Segment, str]:
    """Extract one ``[...]`` segment. Returns (segment, remaining)."""
    if rest[1:2] == '"':
        # JSON string literal; the decoder finds the closing quote
        try:
            key, end = json.JSONDecoder().raw_decode(rest, 1)
        except json.JSONDecodeError as exc:
            raise PathError((), f"Bad quoted key in locator: {text!r}") from exc
        if rest[end : end + 1] != "]":
            raise PathError((), f"Unclosed bracket in locator: {text!r}")
        return key, rest[end + 1 :]

    end = rest.find("]")
    if end == -1:
        raise PathError((), f"Unclosed bracket in locator: {text!r}")
    inner = rest[1:end]
    after = rest[end + 1 :]
    if len(inner) >= 2 and inner[0] == "'" and inner[-1] == "'":
        return inner[1:-1], after
    if inner.isdigit():
        return int(inner), after
    raise PathError((), f"Bad segment [{inner}] in locator: {text!r}")
