"""Agent tool surface."""

from .registry import ToolRegistry, ToolSpec
from .tools import register_library_tools

__all__ = ["ToolRegistry", "ToolSpec", "register_library_tools"]
