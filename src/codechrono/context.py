"""Resolves the project and language for the document an event refers to."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .events import EditorEvent
from .vcs import InspectorError, VersionControlInspector


@dataclass(slots=True, frozen=True)
class ActiveContext:
    file_path: str
    project_root: str
    language: str


class ContextResolver:
    """Maps an editor event to file path, project root and language tag.

    The project root prefers the enclosing repository over the editor's
    workspace folder; it is empty when neither is known.
    """

    def __init__(self, inspector: VersionControlInspector) -> None:
        self._inspector = inspector

    def resolve(self, event: EditorEvent) -> ActiveContext:
        file_path = str(Path(event.file_path))
        return ActiveContext(
            file_path=file_path,
            project_root=self._project_root(file_path, event.workspace_root),
            language=normalize_language(event.language),
        )

    def _project_root(self, file_path: str, workspace_root: Optional[str]) -> str:
        try:
            return self._inspector.repository_root(file_path)
        except InspectorError:
            pass
        if workspace_root:
            return str(Path(workspace_root))
        return ""


def normalize_language(language: Optional[str]) -> str:
    """Return the editor-assigned language id without surrounding whitespace."""
    return (language or "").strip()
