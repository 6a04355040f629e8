"""Projection of document nodes into editable rows, and back."""

from __future__ import annotations

import copy
import json
import math
import re
from dataclasses import dataclass, replace
from enum import Enum

from jnode._path import ContainerKind, Path, Segment, container_kind, resolve
from jnode.errors import CoercionError, PathError


class ValueType(Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


@dataclass(frozen=True)
class Row:
    """One editable scalar field. ``key`` is None for a bare scalar node."""

    key: str | None
    value: str
    value_type: ValueType

    def with_value(self, text: str) -> Row:
        return replace(self, value=text)


@dataclass
class Node:
    """A view over the document subtree at ``path``."""

    path: Path
    value: object

    @classmethod
    def at(cls, document: object, path: Path | list[Segment]) -> Node:
        """Select the subtree at *path*. Raises PathError if it is missing."""
        path = tuple(path)
        value = resolve(document, path).get()
        return cls(path, copy.deepcopy(value))

    @property
    def kind(self) -> ContainerKind:
        return container_kind(self.value)


def infer_value_type(value: object) -> ValueType:
    if value is None:
        return ValueType.NULL
    # bool before number: True is an int
    if isinstance(value, bool):
        return ValueType.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueType.NUMBER
    return ValueType.STRING


def scalar_text(value: object) -> str:
    """Return the textual form shown in a row."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return str(value)


def _row_for(key: str | None, value: object) -> Row:
    return Row(key, scalar_text(value), infer_value_type(value))


def project(node: Node) -> list[Row]:
    """Flatten a node into rows.

    Scalars give one key-less row, maps give one row per scalar field in key
    order, and anything else gives no rows.
    """
    kind = node.kind
    if kind is ContainerKind.SCALAR:
        return [_row_for(None, node.value)]
    if kind is ContainerKind.MAP:
        return [
            _row_for(key, value)
            for key, value in node.value.items()
            if container_kind(value) is ContainerKind.SCALAR
        ]
    return []


_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _coerce_number(row: Row) -> int | float:
    text = row.value.strip()
    if not _NUMBER_RE.fullmatch(text):
        raise CoercionError(row, f"{row.value!r} is not a number")
    if not any(ch in text for ch in ".eE"):
        return int(text)
    number = float(text)
    if not math.isfinite(number):
        raise CoercionError(row, f"{row.value!r} is out of range")
    return number


def coerce(row: Row) -> object:
    """Convert a row's text to a value of its declared type."""
    if row.value_type is ValueType.NUMBER:
        return _coerce_number(row)
    if row.value_type is ValueType.BOOLEAN:
        return row.value == "true"
    if row.value_type is ValueType.NULL:
        return None
    return row.value


def is_scalar_rows(rows: list[Row]) -> bool:
    return len(rows) == 1 and rows[0].key is None


def normalize(rows: list[Row]) -> str:
    """Return the display text for a list of rows.

    Not a persisted form: objects are always shown as JSON.
    """
    if not rows:
        return "{}"
    if is_scalar_rows(rows):
        return rows[0].value

    obj: dict[str, object] = {}
    for row in rows:
        if row.key is not None:
            obj[row.key] = coerce(row)
    return json.dumps(obj, indent=2, ensure_ascii=False)


def merge(node: Node, rows: list[Row], document: object) -> object:
    """Write *rows* back into *document* at ``node.path``.

    Every row is coerced before anything is assigned, so a CoercionError
    leaves *document* untouched. Returns the document root, which is a new
    value only when a scalar root is replaced.
    """
    values = [coerce(row) for row in rows]

    if is_scalar_rows(rows):
        ref = resolve(document, node.path)
        if ref.is_root:
            return values[0]
        ref.set(values[0])
        return document

    staged = {
        row.key: value for row, value in zip(rows, values) if row.key is not None
    }
    if not staged:
        return document

    target = resolve(document, node.path).get()
    if container_kind(target) is not ContainerKind.MAP:
        raise PathError(node.path, "Keyed rows require an object node")
    for key, value in staged.items():
        target[key] = value
    return document
