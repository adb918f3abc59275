"""Widget library for the Textual UI."""

from __future__ import annotations

from .editor_pad import EditorPad
from .status_bar import StatusBar

__all__ = ["EditorPad", "StatusBar"]
