"""Filesystem-backed EditorAPI with no UI.

HeadlessEditor keeps documents, tabs, selection, terminals and settings in
memory and reads and writes files on disk. ``vscode-bridge-serve`` runs the
dispatcher on top of it, and the tests use it as the editor.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vscode_bridge.editor.api import (
    DiagnosticInfo,
    DocumentInfo,
    ExtensionInfo,
    Position,
    TabInfo,
    TextEditorState,
    WorkspaceFolder,
)

logger = logging.getLogger(__name__)

LANGUAGES = {
    ".c": "c",
    ".cpp": "cpp",
    ".css": "css",
    ".go": "go",
    ".html": "html",
    ".java": "java",
    ".js": "javascript",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".rs": "rust",
    ".sh": "shellscript",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".txt": "plaintext",
    ".yaml": "yaml",
    ".yml": "yaml",
}

DEFAULT_THEME = "Default Dark+"


def language_for(path: Path) -> str:
    return LANGUAGES.get(path.suffix.lower(), "plaintext")


def line_count(text: str) -> int:
    return text.count("\n") + 1


def offset_at(text: str, position: Position) -> int:
    """Offset of ``position`` in ``text``, clamped to the document."""
    lines = text.split("\n")
    line = min(max(position.line, 0), len(lines) - 1)
    character = min(max(position.character, 0), len(lines[line]))
    return sum(len(row) + 1 for row in lines[:line]) + character


@dataclass
class _Document:
    path: Path
    text: str
    dirty: bool = False

    def info(self) -> DocumentInfo:
        return DocumentInfo(
            file_name=str(self.path),
            content=self.text,
            line_count=line_count(self.text),
            language=language_for(self.path),
        )


@dataclass
class _Terminal:
    name: str
    cwd: str | None = None
    sent: list[str] = field(default_factory=list)


Command = Callable[..., Awaitable[Any] | Any]


class HeadlessEditor:
    """In-memory editor over real files.

    Args:
        workspace_folders: Folders of the open workspace. Relative paths
            resolve against the first one. Empty means no workspace.
        extensions: Installed extensions.
        tasks: Task names the workspace defines.
    """

    def __init__(
        self,
        workspace_folders: Iterable[str | Path] = (),
        *,
        extensions: Iterable[ExtensionInfo] = (),
        tasks: Iterable[str] = (),
    ) -> None:
        self._folders = [Path(p).resolve() for p in workspace_folders]
        self._documents: dict[Path, _Document] = {}
        self._tabs: list[Path] = []
        self._active: Path | None = None
        self._anchor = Position(0, 0)
        self._cursor = Position(0, 0)
        self._diagnostics: dict[Path, list[DiagnosticInfo]] = {}
        self._terminals: list[_Terminal] = []
        self._active_terminal: _Terminal | None = None
        self._extensions = {ext.id: ext for ext in extensions}
        self._tasks = list(tasks)
        self._configuration: dict[str, dict[str, Any]] = {
            "workbench": {"colorTheme": DEFAULT_THEME},
        }
        self._commands: dict[str, Command] = {
            "editor.action.formatDocument": self._format_document,
            "workbench.action.findInFiles": self._find_in_files,
            "workbench.extensions.installExtension": self._install_extension,
            "workbench.action.splitEditor": self._split_editor,
            "workbench.action.splitEditorDown": self._split_editor,
            "workbench.action.closeAllEditors": self._close_all_editors,
            "workbench.action.closeActiveEditor": self.close_active,
            "workbench.action.files.saveAll": self._save_all,
        }

        self.messages: list[tuple[str, str]] = []
        self.executed_commands: list[tuple[str, tuple[Any, ...]]] = []
        self.started_tasks: list[str] = []
        self.searches: list[dict[str, Any]] = []
        self.split_count = 0

    # -- setup helpers --------------------------------------------------------

    def register_command(self, command: str, handler: Command) -> None:
        self._commands[command] = handler

    def set_diagnostics(self, path: str | Path, diagnostics: Iterable[DiagnosticInfo]) -> None:
        self._diagnostics[self._resolve(path)] = list(diagnostics)

    def add_task(self, name: str) -> None:
        self._tasks.append(name)

    def terminal_log(self, name: str) -> list[str]:
        """Everything sent to the named terminal."""
        for terminal in self._terminals:
            if terminal.name == name:
                return list(terminal.sent)
        raise KeyError(name)

    # -- workspace and editors ----------------------------------------------

    def workspace_folders(self) -> list[WorkspaceFolder] | None:
        if not self._folders:
            return None
        return [WorkspaceFolder(name=p.name, path=str(p)) for p in self._folders]

    def active_editor(self) -> TextEditorState | None:
        doc = self._active_document()
        if doc is None:
            return None
        return TextEditorState(
            file_name=str(doc.path),
            language=language_for(doc.path),
            line_count=line_count(doc.text),
            cursor=self._cursor,
            selection_start=min(self._anchor, self._cursor, key=_position_key),
            selection_end=max(self._anchor, self._cursor, key=_position_key),
        )

    def open_tabs(self) -> list[TabInfo]:
        return [
            TabInfo(
                file_name=str(path),
                is_active=path == self._active,
                is_dirty=self._documents[path].dirty,
            )
            for path in self._tabs
        ]

    # -- documents ----------------------------------------------------------

    async def open_document(self, path: str) -> DocumentInfo:
        doc = await self._load(self._resolve(path))
        if doc.path not in self._tabs:
            self._tabs.append(doc.path)
        self._activate(doc.path)
        return doc.info()

    async def read_document(self, path: str) -> DocumentInfo:
        doc = await self._load(self._resolve(path), keep=False)
        return doc.info()

    async def create_document(self, path: str, content: str) -> DocumentInfo:
        resolved = self._resolve(path)
        await asyncio.to_thread(_write_text, resolved, content)
        self._documents[resolved] = _Document(resolved, content)
        logger.debug("Created %s", resolved)
        return await self.open_document(str(resolved))

    async def save_active(self) -> str:
        doc = self._require_active()
        await self._save(doc)
        return str(doc.path)

    async def close_document(self, path: str) -> bool:
        resolved = self._resolve(path)
        if resolved not in self._tabs:
            return False
        self._close(resolved)
        return True

    async def close_active(self) -> None:
        if self._active is not None:
            self._close(self._active)

    # -- text and selection -------------------------------------------------

    def active_document_text(self) -> str:
        return self._require_active().text

    async def insert_text(self, position: Position, text: str) -> None:
        doc = self._require_active()
        offset = offset_at(doc.text, position)
        doc.text = doc.text[:offset] + text + doc.text[offset:]
        doc.dirty = True

    async def replace_document_text(self, text: str) -> None:
        doc = self._require_active()
        doc.text = text
        doc.dirty = True

    def set_selection(self, start: Position, end: Position) -> None:
        self._require_active()
        self._anchor = start
        self._cursor = end

    def selection_text(self) -> str:
        doc = self._require_active()
        first = offset_at(doc.text, self._anchor)
        second = offset_at(doc.text, self._cursor)
        return doc.text[min(first, second) : max(first, second)]

    def diagnostics(self, path: str) -> list[DiagnosticInfo]:
        return list(self._diagnostics.get(self._resolve(path), []))

    # -- commands and UI ----------------------------------------------------

    async def execute_command(self, command: str, *args: Any) -> Any:
        handler = self._commands.get(command)
        if handler is None:
            raise ValueError(f"command '{command}' not found")
        self.executed_commands.append((command, args))
        result = handler(*args)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    def show_message(self, message: str, kind: str) -> None:
        self.messages.append((kind, message))
        logger.info("[%s] %s", kind, message)

    # -- tasks and terminals ------------------------------------------------

    async def task_names(self) -> list[str]:
        return list(self._tasks)

    async def run_task(self, name: str) -> None:
        if name not in self._tasks:
            raise ValueError(f"Task not found: {name}")
        self.started_tasks.append(name)

    def terminal_names(self) -> list[str]:
        return [t.name for t in self._terminals]

    def active_terminal(self) -> str | None:
        return self._active_terminal.name if self._active_terminal else None

    def create_terminal(self, name: str, cwd: str | None = None) -> str:
        terminal = _Terminal(name=name, cwd=cwd)
        self._terminals.append(terminal)
        self._active_terminal = terminal
        return terminal.name

    def send_terminal_text(self, terminal: str, text: str) -> None:
        for candidate in self._terminals:
            if candidate.name == terminal:
                candidate.sent.append(text)
                self._active_terminal = candidate
                return
        raise ValueError(f"Terminal not found: {terminal}")

    # -- extensions and configuration ---------------------------------------

    def extensions(self) -> list[ExtensionInfo]:
        return list(self._extensions.values())

    def get_configuration(self, section: str, key: str) -> Any:
        return self._configuration.get(section, {}).get(key)

    async def update_configuration(self, section: str, key: str, value: Any) -> None:
        self._configuration.setdefault(section, {})[key] = value

    # -- internals ----------------------------------------------------------

    def _resolve(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            base = self._folders[0] if self._folders else Path.cwd()
            candidate = base / candidate
        return candidate.resolve()

    async def _load(self, path: Path, keep: bool = True) -> _Document:
        doc = self._documents.get(path)
        if doc is None:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            doc = _Document(path, text)
            if keep:
                self._documents[path] = doc
        return doc

    async def _save(self, doc: _Document) -> None:
        await asyncio.to_thread(_write_text, doc.path, doc.text)
        doc.dirty = False

    def _active_document(self) -> _Document | None:
        if self._active is None:
            return None
        return self._documents.get(self._active)

    def _require_active(self) -> _Document:
        doc = self._active_document()
        if doc is None:
            raise RuntimeError("No active editor")
        return doc

    def _activate(self, path: Path) -> None:
        self._active = path
        self._anchor = self._cursor = Position(0, 0)

    def _close(self, path: Path) -> None:
        self._tabs.remove(path)
        # Unsaved edits are discarded with the tab
        self._documents.pop(path, None)
        if self._active == path:
            self._active = None
            if self._tabs:
                self._activate(self._tabs[-1])

    async def _format_document(self) -> None:
        doc = self._require_active()
        lines = [line.rstrip() for line in doc.text.split("\n")]
        while len(lines) > 1 and not lines[-1]:
            lines.pop()
        formatted = "\n".join(lines) + "\n"
        if formatted != doc.text:
            doc.text = formatted
            doc.dirty = True

    def _find_in_files(self, options: dict[str, Any] | None = None) -> None:
        self.searches.append(dict(options or {}))

    def _install_extension(self, extension_id: str) -> None:
        if extension_id not in self._extensions:
            self._extensions[extension_id] = ExtensionInfo(
                id=extension_id,
                display_name=extension_id.split(".")[-1],
                version="0.0.0",
                is_active=False,
            )

    def _split_editor(self) -> None:
        self._require_active()
        self.split_count += 1

    def _close_all_editors(self) -> None:
        for path in list(self._tabs):
            self._close(path)

    async def _save_all(self) -> None:
        for path in self._tabs:
            doc = self._documents[path]
            if doc.dirty:
                await self._save(doc)


def _position_key(position: Position) -> tuple[int, int]:
    return (position.line, position.character)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
