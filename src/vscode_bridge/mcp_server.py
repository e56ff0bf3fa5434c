"""MCP server exposing editor control to an AI assistant.

Every tool relays exactly one bridge method through the process-wide
BridgeClient and renders the result as text. Bridge failures (no editor,
timeout, lost connection) come back as "❌ Error ..." text rather than as
tool errors, so the assistant can read them and retry.

Run it with ``vscode-bridge-mcp``; see vscode_bridge.cli.mcp_server.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import PurePath
from typing import Any, Literal

from fastmcp import FastMCP

from vscode_bridge.client import BridgeClient
from vscode_bridge.errors import BridgeError
from vscode_bridge.protocol import error_from_result

logger = logging.getLogger(__name__)

mcp = FastMCP("vscode-bridge")

# Process-wide client - installed by the CLI before mcp.run()
_client: BridgeClient | None = None

# MCP tool name -> bridge method name
TOOL_METHODS: dict[str, str] = {
    "vscode_get_workspace_info": "getWorkspaceInfo",
    "vscode_get_open_tabs": "getOpenTabs",
    "vscode_get_active_editor": "getActiveEditor",
    "vscode_open_file": "openFile",
    "vscode_create_file": "createFile",
    "vscode_save_file": "saveFile",
    "vscode_close_file": "closeFile",
    "vscode_get_file_content": "getFileContent",
    "vscode_insert_text": "insertText",
    "vscode_replace_text": "replaceText",
    "vscode_find_and_replace": "findAndReplace",
    "vscode_goto_line": "gotoLine",
    "vscode_select_text": "selectText",
    "vscode_get_selection": "getSelection",
    "vscode_format_document": "formatDocument",
    "vscode_get_diagnostics": "getDiagnostics",
    "vscode_search_in_files": "searchInFiles",
    "vscode_execute_command": "executeCommand",
    "vscode_show_message": "showMessage",
    "vscode_run_task": "runTask",
    "vscode_open_terminal": "openTerminal",
    "vscode_send_terminal_command": "sendTerminalCommand",
    "vscode_get_extensions": "getExtensions",
    "vscode_install_extension": "installExtension",
    "vscode_get_themes": "getThemes",
    "vscode_change_theme": "changeTheme",
    "vscode_split_editor": "splitEditor",
    "vscode_close_all_tabs": "closeAllTabs",
}

EXTENSIONS_SHOWN = 20


def set_client(client: BridgeClient | None) -> None:
    global _client
    _client = client


def get_client() -> BridgeClient:
    """Return the process-wide client, creating a default one on first use."""
    global _client
    if _client is None:
        _client = BridgeClient()
    return _client


async def _relay(
    action: str,
    method: str,
    params: dict[str, Any] | None,
    render: Callable[[Any], str],
) -> str:
    """Send one bridge command and render its result.

    Args:
        action: Phrase used in error text ("opening file").
        method: Bridge method name.
        params: Method params.
        render: Formats a successful result.
    """
    try:
        result = await get_client().send_command(method, params)
    except BridgeError as e:
        logger.warning("%s failed: %s", method, e)
        return f"❌ Error {action}: {e}"

    error = error_from_result(result)
    if error is not None:
        return f"❌ Error {action}: {error}"
    return render(result)


def _done(text: str) -> Callable[[Any], str]:
    return lambda result: f"✅ {text}"


# =============================================================================
# Workspace and editors
# =============================================================================


@mcp.tool
async def vscode_get_workspace_info() -> str:
    """Get information about the VSCode workspace: open folders and the active editor."""
    return await _relay(
        "getting workspace info",
        "getWorkspaceInfo",
        None,
        lambda r: f"VSCode workspace info:\n\n{json.dumps(r, indent=2)}",
    )


def _render_tabs(tabs: Any) -> str:
    tabs = tabs or []
    lines = [
        f"{'📍' if tab['isActive'] else '📄'} {PurePath(tab['fileName']).name}"
        f"{' (*)' if tab['isDirty'] else ''}\n   {tab['fileName']}"
        for tab in tabs
    ]
    return f"Open tabs in VSCode ({len(tabs)}):\n\n" + "\n\n".join(lines)


@mcp.tool
async def vscode_get_open_tabs() -> str:
    """List all open tabs in VSCode."""
    return await _relay("getting open tabs", "getOpenTabs", None, _render_tabs)


def _render_active_editor(info: Any) -> str:
    if not info:
        return "No active editor in VSCode"
    cursor = info["cursorPosition"]
    return (
        "Active editor in VSCode:\n\n"
        f"📄 File: {info['fileName']}\n"
        f"🔤 Language: {info['language']}\n"
        f"📊 Lines: {info['lineCount']}\n"
        f"📍 Cursor: line {cursor['line'] + 1}, column {cursor['character'] + 1}"
    )


@mcp.tool
async def vscode_get_active_editor() -> str:
    """Get the active editor's file, language, line count and cursor position."""
    return await _relay(
        "getting active editor info", "getActiveEditor", None, _render_active_editor
    )


# =============================================================================
# Files
# =============================================================================


@mcp.tool
async def vscode_open_file(filePath: str) -> str:
    """Open a file in a VSCode editor tab.

    Args:
        filePath: Path to the file, absolute or relative to the workspace
    """
    return await _relay(
        "opening file",
        "openFile",
        {"filePath": filePath},
        _done(f"File {filePath} opened in VSCode"),
    )


@mcp.tool
async def vscode_create_file(filePath: str, content: str = "") -> str:
    """Create a new file and open it in VSCode.

    Args:
        filePath: Path of the new file
        content: Initial file content
    """
    return await _relay(
        "creating file",
        "createFile",
        {"filePath": filePath, "content": content},
        _done(f"File {filePath} created and opened in VSCode"),
    )


@mcp.tool
async def vscode_save_file() -> str:
    """Save the active file in VSCode."""
    return await _relay(
        "saving file", "saveFile", None, lambda r: f"✅ File saved: {r['filePath']}"
    )


@mcp.tool
async def vscode_close_file(filePath: str | None = None) -> str:
    """Close a file in VSCode, or the active file when no path is given.

    Args:
        filePath: Path of the file to close
    """
    params = {"filePath": filePath} if filePath else None
    return await _relay("closing file", "closeFile", params, lambda r: f"✅ {r['message']}")


@mcp.tool
async def vscode_get_file_content(filePath: str) -> str:
    """Read a file's content through VSCode, including unsaved edits of open files.

    Args:
        filePath: Path to the file
    """
    return await _relay(
        "reading file",
        "getFileContent",
        {"filePath": filePath},
        lambda r: (
            f"Content of {filePath} ({r['lineCount']} lines, language: {r['language']}):"
            f"\n\n{r['content']}"
        ),
    )


# =============================================================================
# Editing
# =============================================================================


@mcp.tool
async def vscode_insert_text(
    text: str, line: int | None = None, character: int | None = None
) -> str:
    """Insert text in the active editor, at the cursor or at a position.

    Args:
        text: Text to insert
        line: Line number (0-based); defaults to 0 when only character is given
        character: Column (0-based); defaults to 0 when only line is given
    """
    params: dict[str, Any] = {"text": text}
    if line is not None or character is not None:
        params["position"] = {"line": line or 0, "character": character or 0}
    return await _relay("inserting text", "insertText", params, _done("Text inserted in VSCode"))


@mcp.tool
async def vscode_replace_text(oldText: str, newText: str, replaceAll: bool = True) -> str:
    """Replace literal text in the active editor.

    Args:
        oldText: Text to find
        newText: Replacement text
        replaceAll: Replace every occurrence, not just the first
    """
    scope = "all" if replaceAll else "first"
    return await _relay(
        "replacing text",
        "replaceText",
        {"oldText": oldText, "newText": newText, "replaceAll": replaceAll},
        _done(f"Text replaced in VSCode ({scope} occurrences)"),
    )


@mcp.tool
async def vscode_find_and_replace(
    searchText: str, replaceText: str, replaceAll: bool = True
) -> str:
    """Find and replace in the active editor, reporting how many matches were replaced.

    Args:
        searchText: Text to find
        replaceText: Replacement text
        replaceAll: Replace every occurrence, not just the first
    """
    return await _relay(
        "find and replace",
        "findAndReplace",
        {"searchText": searchText, "replaceText": replaceText, "replaceAll": replaceAll},
        lambda r: (
            f'✅ Replaced {r.get("replacements", 0)} occurrences of "{searchText}" '
            f'with "{replaceText}" in VSCode'
        ),
    )


@mcp.tool
async def vscode_format_document() -> str:
    """Format the active document with VSCode's formatter."""
    return await _relay(
        "formatting document", "formatDocument", None, _done("Document formatted in VSCode")
    )


# =============================================================================
# Navigation and selection
# =============================================================================


@mcp.tool
async def vscode_goto_line(lineNumber: int, column: int = 1) -> str:
    """Move the cursor to a line in the active editor.

    Args:
        lineNumber: Line number (1-based)
        column: Column (1-based)
    """
    return await _relay(
        "going to line",
        "gotoLine",
        {"lineNumber": lineNumber, "column": column},
        _done(f"Went to line {lineNumber}, column {column} in VSCode"),
    )


@mcp.tool
async def vscode_select_text(
    startLine: int, startColumn: int, endLine: int, endColumn: int
) -> str:
    """Select a range in the active editor. Lines and columns are 1-based."""
    return await _relay(
        "selecting text",
        "selectText",
        {
            "startLine": startLine,
            "startColumn": startColumn,
            "endLine": endLine,
            "endColumn": endColumn,
        },
        _done(
            f"Selected text in VSCode (line {startLine}:{startColumn} to {endLine}:{endColumn})"
        ),
    )


def _render_selection(r: Any) -> str:
    if r["isEmpty"]:
        return "No selection in VSCode"
    start, end = r["start"], r["end"]
    return (
        f'Selected text in VSCode:\n\n"{r["text"]}"\n\n'
        f"Position: line {start['line']}:{start['character']} to {end['line']}:{end['character']}"
    )


@mcp.tool
async def vscode_get_selection() -> str:
    """Get the selected text in the active editor."""
    return await _relay("getting selection", "getSelection", None, _render_selection)


def _render_diagnostics(r: Any) -> str:
    if not r["count"]:
        return "✅ No errors or warnings in active VSCode file"
    lines = [
        f"🔸 {d['severity']}: {d['message']} "
        f"(line {d['range']['start']['line']}:{d['range']['start']['character']})"
        for d in r["diagnostics"]
    ]
    return f"VSCode diagnostics ({r['count']} problems):\n\n" + "\n".join(lines)


@mcp.tool
async def vscode_get_diagnostics() -> str:
    """Get errors and warnings for the active file."""
    return await _relay("getting diagnostics", "getDiagnostics", None, _render_diagnostics)


# =============================================================================
# Commands, search and UI
# =============================================================================


@mcp.tool
async def vscode_search_in_files(searchTerm: str) -> str:
    """Start a search across workspace files in VSCode's Search panel.

    Args:
        searchTerm: Text to search for
    """
    return await _relay(
        "searching",
        "searchInFiles",
        {"searchTerm": searchTerm},
        _done(f'Search for "{searchTerm}" started in VSCode'),
    )


@mcp.tool
async def vscode_execute_command(command: str, args: list[Any] | None = None) -> str:
    """Execute any VSCode command by id.

    Args:
        command: Command id, e.g. "workbench.action.toggleSidebarVisibility"
        args: Command arguments
    """
    return await _relay(
        "executing command",
        "executeCommand",
        {"command": command, "args": args or []},
        _done(f'Command "{command}" executed in VSCode'),
    )


@mcp.tool
async def vscode_show_message(
    message: str, type: Literal["info", "warning", "error"] = "info"
) -> str:
    """Show a notification in VSCode.

    Args:
        message: Message text
        type: Notification kind
    """
    return await _relay(
        "showing message",
        "showMessage",
        {"message": message, "type": type},
        _done(f'Message displayed in VSCode: "{message}"'),
    )


# =============================================================================
# Tasks and terminals
# =============================================================================


@mcp.tool
async def vscode_run_task(taskName: str) -> str:
    """Run a task defined in the workspace.

    Args:
        taskName: Task name as listed in tasks.json
    """
    return await _relay(
        "running task",
        "runTask",
        {"taskName": taskName},
        _done(f'Task "{taskName}" started in VSCode'),
    )


@mcp.tool
async def vscode_open_terminal(name: str | None = None, cwd: str | None = None) -> str:
    """Open a new integrated terminal.

    Args:
        name: Terminal name
        cwd: Working directory
    """
    params = {key: value for key, value in (("name", name), ("cwd", cwd)) if value}
    return await _relay(
        "opening terminal",
        "openTerminal",
        params,
        lambda r: f'✅ Terminal "{r["name"]}" opened in VSCode',
    )


@mcp.tool
async def vscode_send_terminal_command(command: str, terminalName: str | None = None) -> str:
    """Send a command to an integrated terminal.

    Uses the named terminal, else the active one, else opens a new one.

    Args:
        command: Command line to send
        terminalName: Terminal to send it to
    """
    params: dict[str, Any] = {"command": command}
    if terminalName:
        params["terminalName"] = terminalName
    return await _relay(
        "sending command",
        "sendTerminalCommand",
        params,
        lambda r: f'✅ Command "{command}" sent to terminal "{r["terminal"]}" in VSCode',
    )


# =============================================================================
# Extensions, themes and layout
# =============================================================================


def _render_extensions(r: Any) -> str:
    lines = [
        f"🔸 {ext['displayName']} ({ext['id']}) v{ext['version']} "
        f"{'✅' if ext['isActive'] else '⏸️'}"
        for ext in r["extensions"][:EXTENSIONS_SHOWN]
    ]
    return (
        f"VSCode extensions ({r['count']} total, showing {min(r['count'], EXTENSIONS_SHOWN)}):"
        "\n\n" + "\n".join(lines)
    )


@mcp.tool
async def vscode_get_extensions() -> str:
    """List installed VSCode extensions."""
    return await _relay("getting extensions", "getExtensions", None, _render_extensions)


@mcp.tool
async def vscode_install_extension(extensionId: str) -> str:
    """Install a VSCode extension from the marketplace.

    Args:
        extensionId: Extension id, e.g. "ms-python.python"
    """
    return await _relay(
        "installing extension",
        "installExtension",
        {"extensionId": extensionId},
        _done(f'Extension "{extensionId}" installed in VSCode'),
    )


@mcp.tool
async def vscode_get_themes() -> str:
    """List available color themes and the current one."""
    return await _relay(
        "getting themes",
        "getThemes",
        None,
        lambda r: (
            "Available VSCode themes:\n\n" + "\n".join(r["themes"])
            + f"\n\nCurrent theme: {r['current']}"
        ),
    )


@mcp.tool
async def vscode_change_theme(themeName: str) -> str:
    """Change the VSCode color theme.

    Args:
        themeName: Theme name, e.g. "Monokai"
    """
    return await _relay(
        "changing theme",
        "changeTheme",
        {"themeName": themeName},
        _done(f'VSCode theme changed to "{themeName}"'),
    )


@mcp.tool
async def vscode_split_editor(
    direction: Literal["horizontal", "vertical"] = "vertical",
) -> str:
    """Split the editor.

    Args:
        direction: "vertical" for side by side, "horizontal" for top and bottom
    """
    how = "horizontally" if direction == "horizontal" else "vertically"
    return await _relay(
        "splitting editor",
        "splitEditor",
        {"direction": direction},
        _done(f"VSCode editor split {how}"),
    )


@mcp.tool
async def vscode_close_all_tabs(saveAll: bool = True) -> str:
    """Close every editor tab.

    Args:
        saveAll: Save modified files first
    """
    suffix = "(with save)" if saveAll else "(without save)"
    return await _relay(
        "closing tabs",
        "closeAllTabs",
        {"saveAll": saveAll},
        _done(f"All tabs closed in VSCode {suffix}"),
    )
