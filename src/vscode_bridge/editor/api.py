"""Editor operations the bridge handlers call.

The editor process supplies an implementation of EditorAPI. Handlers in
vscode_bridge.server.handlers adapt these operations into the result shapes
the MCP side expects; they never talk to the editor any other way.

Positions are 0-based here, as in the editor. Handlers convert to 1-based
where the wire format uses 1-based lines and columns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class Position:
    line: int
    character: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "character": self.character}


@dataclass(frozen=True)
class WorkspaceFolder:
    name: str
    path: str


@dataclass(frozen=True)
class TextEditorState:
    """Snapshot of the active text editor."""

    file_name: str
    language: str
    line_count: int
    cursor: Position
    selection_start: Position
    selection_end: Position

    @property
    def selection_is_empty(self) -> bool:
        return self.selection_start == self.selection_end


@dataclass(frozen=True)
class DocumentInfo:
    file_name: str
    content: str
    line_count: int
    language: str


@dataclass(frozen=True)
class TabInfo:
    file_name: str
    is_active: bool
    is_dirty: bool


@dataclass(frozen=True)
class DiagnosticInfo:
    """A problem reported for a document. Severity is the editor's name for
    it: "Error", "Warning", "Information" or "Hint"."""

    message: str
    severity: str
    start: Position
    end: Position
    source: str | None = None


@dataclass(frozen=True)
class ExtensionInfo:
    id: str
    display_name: str
    version: str
    is_active: bool
    description: str = ""


@runtime_checkable
class EditorAPI(Protocol):
    """Protocol for the editor-provided operations.

    Sync methods must return promptly. Async methods may wait on the editor's
    own asynchronous completion.
    """

    # Workspace and editors
    def workspace_folders(self) -> list[WorkspaceFolder] | None:
        """Open workspace folders, or None when no workspace is open."""
        ...

    def active_editor(self) -> TextEditorState | None:
        """The active text editor, or None."""
        ...

    def open_tabs(self) -> list[TabInfo]:
        """Text tabs across all editor groups."""
        ...

    # Documents
    async def open_document(self, path: str) -> DocumentInfo:
        """Open a document and show it in the active editor."""
        ...

    async def read_document(self, path: str) -> DocumentInfo:
        """Load a document without showing it."""
        ...

    async def create_document(self, path: str, content: str) -> DocumentInfo:
        """Write a new file and show it."""
        ...

    async def save_active(self) -> str:
        """Save the active document, returning its path."""
        ...

    async def close_document(self, path: str) -> bool:
        """Close the tab showing ``path``. False if it is not open."""
        ...

    async def close_active(self) -> None:
        """Close the active editor."""
        ...

    # Text and selection (active editor)
    def active_document_text(self) -> str:
        """Full text of the active document."""
        ...

    async def insert_text(self, position: Position, text: str) -> None:
        """Insert text at a position in the active document."""
        ...

    async def replace_document_text(self, text: str) -> None:
        """Replace the whole text of the active document."""
        ...

    def set_selection(self, start: Position, end: Position) -> None:
        """Select a range in the active editor and reveal it."""
        ...

    def selection_text(self) -> str:
        """Text currently selected in the active editor."""
        ...

    def diagnostics(self, path: str) -> list[DiagnosticInfo]:
        """Diagnostics for a document."""
        ...

    # Commands and UI
    async def execute_command(self, command: str, *args: Any) -> Any:
        """Run an editor command by id."""
        ...

    def show_message(self, message: str, kind: str) -> None:
        """Show an info, warning or error notification."""
        ...

    # Tasks and terminals
    async def task_names(self) -> list[str]:
        """Names of the tasks the workspace defines."""
        ...

    async def run_task(self, name: str) -> None:
        """Start a task by name."""
        ...

    def terminal_names(self) -> list[str]:
        ...

    def active_terminal(self) -> str | None:
        ...

    def create_terminal(self, name: str, cwd: str | None = None) -> str:
        """Create and show a terminal, returning its name."""
        ...

    def send_terminal_text(self, terminal: str, text: str) -> None:
        """Show a terminal and send text to it."""
        ...

    # Extensions and configuration
    def extensions(self) -> list[ExtensionInfo]:
        ...

    def get_configuration(self, section: str, key: str) -> Any:
        ...

    async def update_configuration(self, section: str, key: str, value: Any) -> None:
        """Update a user (global) setting."""
        ...
