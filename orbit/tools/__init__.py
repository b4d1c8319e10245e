"""Tools for the Gmail and Calendar assistant."""

from orbit.tools.registry import ToolsRegistry, get_tools_registry

__all__ = ["ToolsRegistry", "get_tools_registry"]
