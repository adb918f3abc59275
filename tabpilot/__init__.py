"""Inline code completion engine with a Textual demo editor."""

__version__ = "0.1.0"
