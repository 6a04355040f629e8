"""Node editor application: open a document and edit one node in a modal."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger
from rich.syntax import Syntax
from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Footer, Header, Static

from jnode._path import Path as NodePath
from jnode._path import format_path, parse_path
from jnode.errors import FormatParseError, PathError
from jnode.formats import FormatTag
from jnode.log import setup_logging
from jnode.modal import NodeModal
from jnode.session import DocumentStore, EditSession, FileStore


class NodeEditorApp(App):
    """TUI app that shows a document and opens a NodeModal on one node."""

    CSS = """
    Screen {
        layout: vertical;
    }
    #document-view {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
    }
    """

    TITLE = "JSON Node Editor"
    BINDINGS = [
        ("e", "edit_node", "Edit node"),
        ("q", "quit", "Quit"),
    ]
    ENABLE_COMMAND_PALETTE = False

    def __init__(
        self,
        store: DocumentStore,
        node_path: NodePath = (),
        read_only: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.store = store
        self.node_path = node_path
        self.read_only = read_only

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with VerticalScroll(id="document-view"):
            yield Static(id="document")
        yield Footer()

    async def on_mount(self) -> None:
        self._update_title()
        self._refresh_document()
        await self.action_edit_node()

    def _update_title(self) -> None:
        ro = " [RO]" if self.read_only else ""
        self.sub_title = format_path(self.node_path) + ro

    def _refresh_document(self) -> None:
        try:
            contents = self.store.get_contents()
        except (FormatParseError, OSError) as exc:
            self.notify(f"Cannot read document: {exc}", severity="error", timeout=6)
            return
        self.query_one("#document", Static).update(
            Syntax(contents, "json", line_numbers=True, word_wrap=True)
        )

    # -- Actions -----------------------------------------------------------

    async def action_edit_node(self) -> None:
        if isinstance(self.screen, NodeModal):
            return
        session = EditSession(self.store)
        try:
            await session.select_path(self.node_path)
        except (FormatParseError, PathError, OSError) as exc:
            logger.warning("Cannot open {}: {}", format_path(self.node_path), exc)
            self.notify(f"Cannot open node: {exc}", severity="error", timeout=6)
            return
        self.push_screen(NodeModal(session, read_only=self.read_only), self._on_modal_closed)

    def _on_modal_closed(self, saved: bool | None) -> None:
        if saved:
            self._refresh_document()

    # -- Event handlers ----------------------------------------------------

    def on_node_modal_saved(self, event: NodeModal.Saved) -> None:
        logger.debug("Node {} saved", event.path_label)
        self._refresh_document()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="jnode",
        description="Edit the scalar fields of one JSON node",
    )
    parser.add_argument(
        "file",
        help="JSON or JSONL file to open",
    )
    parser.add_argument(
        "-p", "--path",
        default="$",
        help='node locator, e.g. $["customer"] or $.items[0] (default: root)',
    )
    parser.add_argument(
        "-f", "--format",
        choices=[tag.value for tag in FormatTag],
        default=None,
        help="document format (default: from file extension)",
    )
    parser.add_argument(
        "-R", "--read-only",
        action="store_true",
        default=False,
        help="open in read-only mode",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="log level (default: $JNODE_LOG_LEVEL or WARNING)",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="write logs to this file instead of stderr",
    )
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_file)

    try:
        node_path = parse_path(args.path)
    except PathError as exc:
        print(f"jnode: {exc}", file=sys.stderr)
        sys.exit(2)

    path = Path(args.file)
    if not path.is_file():
        print(f"jnode: file not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    fmt = FormatTag(args.format) if args.format else None
    app = NodeEditorApp(
        FileStore(path, fmt),
        node_path=node_path,
        read_only=args.read_only,
    )
    app.run()


if __name__ == "__main__":
    main()
