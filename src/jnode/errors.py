"""Exceptions raised by the node editing engine."""

from __future__ import annotations


class NodeEditError(Exception):
    """Base exception for all node editing errors."""


class PathError(NodeEditError):
    """Raised when a path cannot be resolved against a document."""

    def __init__(self, path: tuple[str | int, ...], message: str) -> None:
        self.path = tuple(path)
        self.message = message
        super().__init__(f"{message} (path: {list(self.path)!r})")


class CoercionError(NodeEditError):
    """Raised when edited text does not fit the row's value type."""

    def __init__(self, row: object, message: str) -> None:
        self.row = row
        self.message = message
        super().__init__(message)


class FormatError(NodeEditError):
    """Base for converter failures."""


class FormatParseError(FormatError):
    """Raised when text cannot be parsed in the requested format."""


class FormatPrintError(FormatError):
    """Raised when a document cannot be printed in the requested format."""


class RowIndexError(NodeEditError, IndexError):
    """Raised on access to a row index outside the projection."""

    def __init__(self, index: int, count: int) -> None:
        self.index = index
        self.count = count
        super().__init__(f"Row index {index} out of range (rows: {count})")


class SessionStateError(NodeEditError):
    """Raised when an operation is invalid in the session's current state."""


class CommitError(NodeEditError):
    """Raised when a commit fails; persisted text is left untouched."""

    def __init__(self, cause: BaseException | None, message: str = "") -> None:
        self.cause = cause
        if not message:
            message = f"Commit failed: {cause}" if cause else "Commit failed"
        super().__init__(message)


class CommitInProgressError(CommitError):
    """Raised when a commit is requested while another one is in flight."""

    def __init__(self) -> None:
        super().__init__(None, "Another commit is already in progress")
