"""vscode_bridge.editor - Editor operations behind the bridge methods."""

from vscode_bridge.editor.api import (
    DiagnosticInfo,
    DocumentInfo,
    EditorAPI,
    ExtensionInfo,
    Position,
    TabInfo,
    TextEditorState,
    WorkspaceFolder,
)
from vscode_bridge.editor.headless import HeadlessEditor

__all__ = [
    "DiagnosticInfo",
    "DocumentInfo",
    "EditorAPI",
    "ExtensionInfo",
    "HeadlessEditor",
    "Position",
    "TabInfo",
    "TextEditorState",
    "WorkspaceFolder",
]
