from __future__ import annotations

from diffsmith.tui.base import BaseToolCallFormatter, ToolCallFormatterManager
from diffsmith.tui import edit_formatter as _edit_formatter  # noqa: F401

__all__ = [
    "BaseToolCallFormatter",
    "ToolCallFormatterManager",
]
