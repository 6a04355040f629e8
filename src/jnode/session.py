"""Read-edit-write cycle over one selected document node."""

from __future__ import annotations

import asyncio
import os
from enum import Enum, auto
from pathlib import Path
from typing import Protocol

from loguru import logger

from jnode._path import Segment, format_path
from jnode.errors import (
    CommitError,
    CommitInProgressError,
    FormatParseError,
    FormatPrintError,
    NodeEditError,
    RowIndexError,
    SessionStateError,
)
from jnode.formats import Converter, FormatTag, detect_format
from jnode.rows import Node, Row, is_scalar_rows, merge, normalize, project


class SessionState(Enum):
    VIEWING = auto()
    EDITING = auto()
    CLOSED = auto()


class DocumentStore(Protocol):
    """Host-owned text buffer a session reads from and commits to."""

    def get_contents(self) -> str: ...

    def get_format(self) -> FormatTag: ...

    def set_contents(self, contents: str) -> None: ...


class MemoryStore:
    """In-memory text buffer."""

    def __init__(self, contents: str = "", fmt: FormatTag = FormatTag.JSON) -> None:
        self.contents = contents
        self.fmt = fmt

    def get_contents(self) -> str:
        return self.contents

    def get_format(self) -> FormatTag:
        return self.fmt

    def set_contents(self, contents: str) -> None:
        self.contents = contents


class FileStore:
    """UTF-8 file on disk. Writes replace the file in one step."""

    def __init__(self, file_path: str | Path, fmt: FormatTag | None = None) -> None:
        self.path = Path(file_path)
        self.fmt = fmt if fmt is not None else detect_format(str(self.path))

    def get_contents(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise FormatParseError(f"{self.path}: not valid UTF-8: {e.reason}") from e

    def get_format(self) -> FormatTag:
        return self.fmt

    def set_contents(self, contents: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(contents, encoding="utf-8")
            os.replace(tmp, self.path)
        except UnicodeEncodeError as e:
            tmp.unlink(missing_ok=True)
            raise FormatPrintError(f"{self.path}: cannot encode as UTF-8: {e.reason}") from e
        except OSError:
            tmp.unlink(missing_ok=True)
            raise


class EditSession:
    """Edits the scalar fields of one node and commits them to a store.

    States: VIEWING -> EDITING (begin_edit) -> VIEWING (cancel / commit),
    and CLOSED after close().
    """

    def __init__(
        self,
        store: DocumentStore,
        node: Node | None = None,
        *,
        converter: Converter | None = None,
    ) -> None:
        self.store = store
        self.converter: Converter = converter if converter is not None else Converter()
        self._state: SessionState = SessionState.VIEWING
        self._node: Node | None = None
        self._rows: list[Row] = []
        self._commit_lock = asyncio.Lock()
        if node is not None:
            self.select_node(node)

    # -- Accessors ---------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_editing(self) -> bool:
        return self._state is SessionState.EDITING

    @property
    def is_committing(self) -> bool:
        return self._commit_lock.locked()

    @property
    def node(self) -> Node | None:
        return self._node

    @property
    def projection(self) -> list[Row]:
        """Current rows, including uncommitted edits."""
        return list(self._rows)

    @property
    def path_label(self) -> str:
        return format_path(self._node.path if self._node else ())

    @property
    def display_text(self) -> str:
        return normalize(self._rows)

    # -- Helpers -----------------------------------------------------------

    def _require(self, state: SessionState, action: str) -> None:
        if self._state is not state:
            raise SessionStateError(
                f"Cannot {action} while {self._state.name.lower()}"
            )

    def _require_idle(self, action: str) -> None:
        if self._commit_lock.locked():
            raise SessionStateError(f"Cannot {action} while a commit is in progress")

    # -- Operations --------------------------------------------------------

    def select_node(self, node: Node) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionStateError("Session is closed")
        self._require_idle("select a node")
        self._node = node
        self._rows = project(node)
        self._state = SessionState.VIEWING
        logger.debug("Selected {} ({} rows)", format_path(node.path), len(self._rows))

    async def select_path(self, path: tuple[Segment, ...] | list[Segment]) -> None:
        """Parse the store's current text and select the node at *path*."""
        document = await self.converter.parse(
            self.store.get_contents(), self.store.get_format()
        )
        self.select_node(Node.at(document, path))

    def begin_edit(self) -> None:
        self._require(SessionState.VIEWING, "begin editing")
        if self._node is None:
            raise SessionStateError("No node selected")
        self._state = SessionState.EDITING

    def update_field(self, index: int, text: str) -> None:
        self._require(SessionState.EDITING, "update a field")
        self._require_idle("update a field")
        if not 0 <= index < len(self._rows):
            raise RowIndexError(index, len(self._rows))
        self._rows[index] = self._rows[index].with_value(text)

    def cancel(self) -> None:
        self._require(SessionState.EDITING, "cancel")
        self._require_idle("cancel")
        self._rows = project(self._node)
        self._state = SessionState.VIEWING

    async def commit(self) -> None:
        """Merge the edited rows into the stored document.

        Raises CommitError (chained to the underlying error) and leaves the
        store untouched on failure; the session then stays in EDITING.
        """
        self._require(SessionState.EDITING, "commit")
        if self._commit_lock.locked():
            raise CommitInProgressError()

        async with self._commit_lock:
            node = self._node
            rows = list(self._rows)
            label = format_path(node.path)

            if not is_scalar_rows(rows) and all(row.key is None for row in rows):
                logger.debug("Nothing to commit at {}", label)
                self._state = SessionState.VIEWING
                return

            fmt = self.store.get_format()
            try:
                document = await self.converter.parse(self.store.get_contents(), fmt)
                document = merge(node, rows, document)
                text = await self.converter.print(document, fmt)
                self.store.set_contents(text)
            except (NodeEditError, OSError) as exc:
                logger.warning("Commit at {} failed: {}", label, exc)
                raise CommitError(exc) from exc

            logger.info("Committed {} row(s) at {}", len(rows), label)
            if self._state is SessionState.CLOSED:
                return
            self._node = Node.at(document, node.path)
            self._rows = project(self._node)
            self._state = SessionState.VIEWING

    def close(self) -> None:
        self._state = SessionState.CLOSED
        self._rows = []
