"""Toolbox package helpers with lazy server imports to avoid runpy warnings.

`toolbox.server` is not imported at package import time, so starting the
server with `python -m toolbox.server` from another process does not raise a
`RuntimeWarning`.
"""

from importlib import import_module
from .client import MCPStdIOClient, MCPClientError

__all__ = [
    "MCPStdIOClient",
    "MCPClientError",
    "get_mcp",
    "get_tool_specs",
    "get_current_location",
    "get_courses",
    "list_collections",
    "create_collection",
    "drop_collection",
    "get_forecast",
    "run_server",
]

# Attributes provided by the server module, imported on first access.
_server_attrs = {
    "get_mcp",
    "get_tool_specs",
    "get_current_location",
    "get_courses",
    "list_collections",
    "create_collection",
    "drop_collection",
    "get_forecast",
    "run_server",
}


def _load_server():
    return import_module(".server", __package__)


def __getattr__(name: str):
    if name in _server_attrs:
        return getattr(_load_server(), name)
    raise AttributeError(f"module {__name__} has no attribute {name}")


def __dir__():
    return sorted(list(globals().keys()) + list(_server_attrs))
