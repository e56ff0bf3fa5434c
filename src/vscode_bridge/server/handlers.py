"""Bridge methods backed by an EditorAPI.

Each handler takes the request params and a CancellationToken and returns the
JSON-ready result the MCP side expects. Most results carry a ``success`` flag;
editor failures inside those handlers come back as
``{"success": False, "error": ...}`` rather than as exceptions. Missing or
malformed parameters raise InvalidParamsError, which the dispatcher turns into
an error response.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from vscode_bridge.cancellation import CancellationToken
from vscode_bridge.editor.api import EditorAPI, Position, TextEditorState
from vscode_bridge.errors import InvalidParamsError, RequestCancelledError
from vscode_bridge.server.registry import MethodRegistry

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL_NAME = "Claude Terminal"

BUILTIN_THEMES = [
    "Default Dark+",
    "Default Light+",
    "Default High Contrast",
    "Monokai",
    "Solarized Dark",
    "Solarized Light",
    "Quiet Light",
    "Red",
    "Kimbie Dark",
    "Abyss",
]

MESSAGE_KINDS = ("info", "warning", "error")

NO_ACTIVE_EDITOR = {"success": False, "error": "No active editor"}

Params = dict[str, Any]
HandlerMethod = Callable[..., Awaitable[Any]]


def _require(params: Params, key: str) -> Any:
    value = params.get(key)
    if value is None:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    return value


def _require_str(params: Params, key: str) -> str:
    value = _require(params, key)
    if not isinstance(value, str):
        raise InvalidParamsError(f"Parameter {key} must be a string")
    return value


def _int(params: Params, key: str, default: int | None = None) -> int:
    value = params.get(key, default)
    if value is None:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidParamsError(f"Parameter {key} must be a number")
    return int(value)


def _flag(params: Params, key: str, default: bool) -> bool:
    value = params.get(key)
    return default if value is None else bool(value)


def _one_based(position: Position) -> dict[str, int]:
    return {"line": position.line + 1, "character": position.character + 1}


def _error_text(error: Exception) -> str:
    return str(error) or type(error).__name__


def reported(func: HandlerMethod) -> HandlerMethod:
    """Turn editor failures into ``{"success": False, "error": ...}``.

    Parameter errors and cancellation still propagate.
    """

    @functools.wraps(func)
    async def wrapper(self: EditorHandlers, params: Params, token: CancellationToken) -> Any:
        try:
            return await func(self, params, token)
        except (InvalidParamsError, RequestCancelledError):
            raise
        except Exception as e:
            logger.debug("%s failed: %s", func.__name__, e)
            return {"success": False, "error": _error_text(e)}

    return wrapper


class EditorHandlers:
    """Bridge method implementations over one editor."""

    def __init__(self, editor: EditorAPI) -> None:
        self.editor = editor

    # -- editor state -------------------------------------------------------

    def _editor_info(self) -> dict[str, Any] | None:
        state = self.editor.active_editor()
        if state is None:
            return None
        return {
            "fileName": state.file_name,
            "language": state.language,
            "lineCount": state.line_count,
            "cursorPosition": state.cursor.to_dict(),
        }

    def _active(self) -> TextEditorState | None:
        return self.editor.active_editor()

    async def get_active_editor(self, params: Params, token: CancellationToken) -> Any:
        return self._editor_info()

    async def get_open_tabs(self, params: Params, token: CancellationToken) -> Any:
        return [
            {"fileName": tab.file_name, "isActive": tab.is_active, "isDirty": tab.is_dirty}
            for tab in self.editor.open_tabs()
        ]

    async def get_workspace_info(self, params: Params, token: CancellationToken) -> Any:
        folders = self.editor.workspace_folders()
        if not folders:
            return {"hasWorkspace": False, "message": "No workspace open"}
        return {
            "hasWorkspace": True,
            "folders": [{"name": f.name, "path": f.path} for f in folders],
            "activeEditor": self._editor_info(),
        }

    # -- files --------------------------------------------------------------

    @reported
    async def open_file(self, params: Params, token: CancellationToken) -> Any:
        file_path = _require_str(params, "filePath")
        await self.editor.open_document(file_path)
        return {"success": True, "filePath": file_path}

    @reported
    async def create_file(self, params: Params, token: CancellationToken) -> Any:
        file_path = _require_str(params, "filePath")
        content = params.get("content") or ""
        await self.editor.create_document(file_path, str(content))
        return {"success": True, "filePath": file_path, "message": "File created and opened"}

    @reported
    async def save_file(self, params: Params, token: CancellationToken) -> Any:
        if self._active() is None:
            return dict(NO_ACTIVE_EDITOR)
        file_path = await self.editor.save_active()
        return {"success": True, "filePath": file_path, "message": "File saved"}

    @reported
    async def close_file(self, params: Params, token: CancellationToken) -> Any:
        file_path = params.get("filePath")
        if not file_path:
            await self.editor.execute_command("workbench.action.closeActiveEditor")
            return {"success": True, "message": "Active file closed"}
        if not await self.editor.close_document(file_path):
            return {"success": False, "error": "File is not open"}
        return {"success": True, "filePath": file_path, "message": "File closed"}

    @reported
    async def get_file_content(self, params: Params, token: CancellationToken) -> Any:
        file_path = _require_str(params, "filePath")
        document = await self.editor.read_document(file_path)
        return {
            "success": True,
            "filePath": file_path,
            "content": document.content,
            "lineCount": document.line_count,
            "language": document.language,
        }

    # -- commands and UI ----------------------------------------------------

    @reported
    async def execute_command(self, params: Params, token: CancellationToken) -> Any:
        command = _require_str(params, "command")
        args = params.get("args") or []
        if not isinstance(args, list):
            raise InvalidParamsError("Parameter args must be a list")
        result = await token.guard(self.editor.execute_command(command, *args))
        return {"success": True, "command": command, "result": result}

    async def show_message(self, params: Params, token: CancellationToken) -> Any:
        message = _require_str(params, "message")
        kind = params.get("type") or "info"
        if kind not in MESSAGE_KINDS:
            raise InvalidParamsError(f"Parameter type must be one of {', '.join(MESSAGE_KINDS)}")
        self.editor.show_message(message, kind)
        return {"success": True, "message": message, "type": kind}

    @reported
    async def search_in_files(self, params: Params, token: CancellationToken) -> Any:
        search_term = _require_str(params, "searchTerm")
        await self.editor.execute_command(
            "workbench.action.findInFiles",
            {"query": search_term, "triggerSearch": True},
        )
        return {
            "success": True,
            "searchTerm": search_term,
            "message": "Search started in Search panel",
        }

    @reported
    async def format_document(self, params: Params, token: CancellationToken) -> Any:
        await self.editor.execute_command("editor.action.formatDocument")
        return {"success": True, "message": "Document formatted"}

    # -- editing ------------------------------------------------------------

    @reported
    async def insert_text(self, params: Params, token: CancellationToken) -> Any:
        text = _require_str(params, "text")
        state = self._active()
        if state is None:
            return dict(NO_ACTIVE_EDITOR)
        raw = params.get("position")
        if raw is None:
            position = state.cursor
        elif isinstance(raw, dict):
            position = Position(_int(raw, "line"), _int(raw, "character"))
        else:
            raise InvalidParamsError("Parameter position must be an object")
        await self.editor.insert_text(position, text)
        return {"success": True, "text": text, "position": position.to_dict()}

    @reported
    async def replace_text(self, params: Params, token: CancellationToken) -> Any:
        old_text = _require_str(params, "oldText")
        new_text = str(_require(params, "newText"))
        replace_all = _flag(params, "replaceAll", True)
        if self._active() is None:
            return dict(NO_ACTIVE_EDITOR)
        text = self.editor.active_document_text()
        pattern = re.compile(re.escape(old_text))
        if pattern.search(text):
            updated = pattern.sub(lambda _: new_text, text, count=0 if replace_all else 1)
            await self.editor.replace_document_text(updated)
        return {
            "success": True,
            "oldText": old_text,
            "newText": new_text,
            "replaceAll": replace_all,
        }

    @reported
    async def find_and_replace(self, params: Params, token: CancellationToken) -> Any:
        search_text = _require_str(params, "searchText")
        replace_text = str(_require(params, "replaceText"))
        replace_all = _flag(params, "replaceAll", True)
        if self._active() is None:
            return dict(NO_ACTIVE_EDITOR)
        text = self.editor.active_document_text()
        pattern = re.compile(re.escape(search_text))
        matches = len(pattern.findall(text))
        if not matches:
            return {"success": False, "error": "No text found to replace"}
        count = 0 if replace_all else 1
        await self.editor.replace_document_text(
            pattern.sub(lambda _: replace_text, text, count=count)
        )
        return {
            "success": True,
            "searchText": search_text,
            "replaceText": replace_text,
            "replacements": matches if replace_all else 1,
            "replaceAll": replace_all,
        }

    # -- navigation and selection -------------------------------------------

    @reported
    async def goto_line(self, params: Params, token: CancellationToken) -> Any:
        line = _int(params, "lineNumber")
        column = _int(params, "column", 1)
        if self._active() is None:
            return dict(NO_ACTIVE_EDITOR)
        position = Position(line - 1, column - 1)
        self.editor.set_selection(position, position)
        return {"success": True, "line": line, "column": column}

    @reported
    async def select_text(self, params: Params, token: CancellationToken) -> Any:
        start_line = _int(params, "startLine")
        start_column = _int(params, "startColumn")
        end_line = _int(params, "endLine")
        end_column = _int(params, "endColumn")
        if self._active() is None:
            return dict(NO_ACTIVE_EDITOR)
        self.editor.set_selection(
            Position(start_line - 1, start_column - 1),
            Position(end_line - 1, end_column - 1),
        )
        return {
            "success": True,
            "startLine": start_line,
            "startColumn": start_column,
            "endLine": end_line,
            "endColumn": end_column,
        }

    @reported
    async def get_selection(self, params: Params, token: CancellationToken) -> Any:
        state = self._active()
        if state is None:
            return dict(NO_ACTIVE_EDITOR)
        return {
            "success": True,
            "text": self.editor.selection_text(),
            "start": _one_based(state.selection_start),
            "end": _one_based(state.selection_end),
            "isEmpty": state.selection_is_empty,
        }

    @reported
    async def get_diagnostics(self, params: Params, token: CancellationToken) -> Any:
        state = self._active()
        if state is None:
            return dict(NO_ACTIVE_EDITOR)
        diagnostics = [
            {
                "message": d.message,
                "severity": d.severity,
                "range": {"start": _one_based(d.start), "end": _one_based(d.end)},
                "source": d.source or "Unknown",
            }
            for d in self.editor.diagnostics(state.file_name)
        ]
        return {
            "success": True,
            "diagnostics": diagnostics,
            "count": len(diagnostics),
            "file": state.file_name,
        }

    # -- tasks and terminals ------------------------------------------------

    @reported
    async def run_task(self, params: Params, token: CancellationToken) -> Any:
        task_name = _require_str(params, "taskName")
        names = await token.guard(self.editor.task_names())
        if task_name not in names:
            return {"success": False, "error": f"Task not found: {task_name}"}
        token.raise_if_cancelled()
        await token.guard(self.editor.run_task(task_name))
        return {"success": True, "taskName": task_name, "message": "Task started"}

    @reported
    async def open_terminal(self, params: Params, token: CancellationToken) -> Any:
        name = self.editor.create_terminal(
            params.get("name") or DEFAULT_TERMINAL_NAME, params.get("cwd")
        )
        return {"success": True, "name": name, "message": "Terminal opened"}

    @reported
    async def send_terminal_command(self, params: Params, token: CancellationToken) -> Any:
        command = _require_str(params, "command")
        terminal_name = params.get("terminalName")
        if terminal_name:
            terminal = terminal_name if terminal_name in self.editor.terminal_names() else None
        else:
            terminal = self.editor.active_terminal()
        if terminal is None:
            terminal = self.editor.create_terminal(DEFAULT_TERMINAL_NAME)
        self.editor.send_terminal_text(terminal, command)
        return {
            "success": True,
            "command": command,
            "terminal": terminal,
            "message": "Command sent to terminal",
        }

    # -- extensions, themes and layout --------------------------------------

    @reported
    async def get_extensions(self, params: Params, token: CancellationToken) -> Any:
        extensions = [
            {
                "id": ext.id,
                "displayName": ext.display_name or ext.id,
                "version": ext.version,
                "isActive": ext.is_active,
                "description": ext.description,
            }
            for ext in self.editor.extensions()
        ]
        return {"success": True, "extensions": extensions, "count": len(extensions)}

    @reported
    async def install_extension(self, params: Params, token: CancellationToken) -> Any:
        extension_id = _require_str(params, "extensionId")
        await token.guard(
            self.editor.execute_command("workbench.extensions.installExtension", extension_id)
        )
        return {
            "success": True,
            "extensionId": extension_id,
            "message": f"Extension {extension_id} has been installed",
        }

    @reported
    async def get_themes(self, params: Params, token: CancellationToken) -> Any:
        return {
            "success": True,
            "themes": list(BUILTIN_THEMES),
            "count": len(BUILTIN_THEMES),
            "current": self.editor.get_configuration("workbench", "colorTheme"),
        }

    @reported
    async def change_theme(self, params: Params, token: CancellationToken) -> Any:
        theme_name = _require_str(params, "themeName")
        await self.editor.update_configuration("workbench", "colorTheme", theme_name)
        return {
            "success": True,
            "themeName": theme_name,
            "message": f"Theme changed to: {theme_name}",
        }

    @reported
    async def split_editor(self, params: Params, token: CancellationToken) -> Any:
        direction = params.get("direction") or "vertical"
        if direction not in ("horizontal", "vertical"):
            raise InvalidParamsError("Parameter direction must be horizontal or vertical")
        horizontal = direction == "horizontal"
        await self.editor.execute_command(
            "workbench.action.splitEditorDown" if horizontal else "workbench.action.splitEditor"
        )
        return {
            "success": True,
            "direction": direction,
            "message": f"Editor split {'horizontally' if horizontal else 'vertically'}",
        }

    @reported
    async def close_all_tabs(self, params: Params, token: CancellationToken) -> Any:
        save_all = _flag(params, "saveAll", True)
        if save_all:
            await self.editor.execute_command("workbench.action.files.saveAll")
        await self.editor.execute_command("workbench.action.closeAllEditors")
        return {"success": True, "saveAll": save_all, "message": "All tabs closed"}


# Wire method name -> (EditorHandlers attribute, description)
METHODS: dict[str, tuple[str, str]] = {
    "getActiveEditor": ("get_active_editor", "Active editor file, language and cursor"),
    "getOpenTabs": ("get_open_tabs", "All open text tabs"),
    "openFile": ("open_file", "Open a file in the editor"),
    "createFile": ("create_file", "Create a file and open it"),
    "saveFile": ("save_file", "Save the active file"),
    "closeFile": ("close_file", "Close a file, or the active one"),
    "getWorkspaceInfo": ("get_workspace_info", "Workspace folders and active editor"),
    "executeCommand": ("execute_command", "Run an editor command by id"),
    "showMessage": ("show_message", "Show a notification"),
    "getFileContent": ("get_file_content", "Read a file through the editor"),
    "insertText": ("insert_text", "Insert text in the active editor"),
    "searchInFiles": ("search_in_files", "Start a workspace search"),
    "replaceText": ("replace_text", "Replace literal text in the active file"),
    "gotoLine": ("goto_line", "Move the cursor to a line"),
    "selectText": ("select_text", "Select a range"),
    "getSelection": ("get_selection", "Current selection"),
    "formatDocument": ("format_document", "Format the active document"),
    "findAndReplace": ("find_and_replace", "Find and replace with a match count"),
    "getDiagnostics": ("get_diagnostics", "Problems for the active file"),
    "runTask": ("run_task", "Start a workspace task"),
    "openTerminal": ("open_terminal", "Open a terminal"),
    "sendTerminalCommand": ("send_terminal_command", "Send a command to a terminal"),
    "getExtensions": ("get_extensions", "Installed extensions"),
    "installExtension": ("install_extension", "Install an extension"),
    "getThemes": ("get_themes", "Available and current color themes"),
    "changeTheme": ("change_theme", "Change the color theme"),
    "splitEditor": ("split_editor", "Split the editor"),
    "closeAllTabs": ("close_all_tabs", "Close every tab"),
}


def build_registry(
    editor: EditorAPI, registry: MethodRegistry | None = None
) -> MethodRegistry:
    """Register every bridge method for ``editor``.

    Args:
        editor: The editor the methods operate on.
        registry: Registry to add to. A new one is created if omitted.
    """
    if registry is None:
        registry = MethodRegistry()
    handlers = EditorHandlers(editor)
    for name, (attribute, description) in METHODS.items():
        registry.register(name, getattr(handlers, attribute), description)
    logger.debug("Registered %d editor methods", len(METHODS))
    return registry
