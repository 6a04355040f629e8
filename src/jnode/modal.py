"""Modal screen that views and edits one document node."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from rich.syntax import Syntax
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from jnode.errors import CommitError
from jnode.session import EditSession


class NodeModal(ModalScreen[bool]):
    """Shows a node's content and path, with Edit / Save / Cancel.

    Dismisses with True if at least one commit succeeded.
    """

    DEFAULT_CSS = """
    NodeModal {
        align: center middle;
    }
    #node-dialog {
        width: auto;
        min-width: 50;
        max-width: 100;
        height: auto;
        border: solid $accent;
        background: $surface;
        padding: 0 1;
    }
    #node-header {
        height: auto;
    }
    #node-title {
        width: 1fr;
        padding: 1 0 0 0;
    }
    #node-header Button {
        min-width: 8;
        margin-left: 1;
    }
    #node-body {
        height: auto;
        max-height: 16;
    }
    #node-fields {
        height: auto;
    }
    #node-path-title {
        padding: 1 0 0 0;
    }
    """

    BINDINGS = [("escape", "close", "Close")]

    # -- Messages ----------------------------------------------------------

    @dataclass
    class Saved(Message):
        path_label: str

    # -- Init --------------------------------------------------------------

    def __init__(
        self,
        session: EditSession,
        *,
        read_only: bool = False,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.session = session
        self.read_only = read_only
        self._saved = False

    def compose(self) -> ComposeResult:
        with Vertical(id="node-dialog"):
            with Horizontal(id="node-header"):
                yield Static("[b]Content[/b]", id="node-title")
                yield Button("Edit", id="node-edit")
                yield Button("Save", id="node-save", variant="success")
                yield Button("Cancel", id="node-cancel")
                yield Button("✕", id="node-close", variant="error")
            with VerticalScroll(id="node-body"):
                yield Static(id="node-content")
                yield Vertical(id="node-fields")
            yield Static("[b]JSON Path[/b]", id="node-path-title")
            yield Static(Text(self.session.path_label), id="node-path")

    def on_mount(self) -> None:
        self._refresh_view()

    # -- Rendering ---------------------------------------------------------

    def _refresh_view(self) -> None:
        editing = self.session.is_editing
        self.query_one("#node-edit", Button).display = not editing and not self.read_only
        self.query_one("#node-save", Button).display = editing
        self.query_one("#node-cancel", Button).display = editing
        self.query_one("#node-fields", Vertical).display = editing
        content = self.query_one("#node-content", Static)
        content.display = not editing
        if not editing:
            content.update(Syntax(self.session.display_text, "json", word_wrap=True))
        self.query_one("#node-path", Static).update(Text(self.session.path_label))

    async def _show_fields(self) -> None:
        """Replace the field list with one input per row."""
        fields = self.query_one("#node-fields", Vertical)
        await fields.remove_children()
        widgets = []
        for index, row in enumerate(self.session.projection):
            widgets.append(Label(row.key if row.key is not None else "value"))
            widgets.append(Input(row.value, name=str(index), classes="node-field"))
        if widgets:
            await fields.mount(*widgets)

    # -- Event handlers ----------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        if (
            not self.session.is_editing
            or self.session.is_committing
            or event.input.name is None
        ):
            return
        self.session.update_field(int(event.input.name), event.value)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button_id = event.button.id
        if button_id == "node-edit":
            self.session.begin_edit()
            await self._show_fields()
        elif button_id == "node-cancel":
            if self.session.is_committing:
                return
            self.session.cancel()
        elif button_id == "node-save":
            await self._save()
        elif button_id == "node-close":
            self.action_close()
            return
        self._refresh_view()

    async def _save(self) -> None:
        if self.session.is_committing:
            return
        fields = self.query(Input)
        fields.set(disabled=True)
        try:
            await self.session.commit()
        except CommitError as exc:
            fields.set(disabled=False)
            cause = exc.cause if exc.cause is not None else exc
            logger.error("Saving {} failed: {}", self.session.path_label, cause)
            self.app.notify(f"Failed to save changes: {cause}", severity="error", timeout=6)
            return
        self._saved = True
        self.app.notify("Saved changes", severity="information")
        self.post_message(self.Saved(self.session.path_label))

    def action_close(self) -> None:
        self.session.close()
        self.dismiss(self._saved)
