import argparse
import json
import logging
import os
import signal
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, AsyncIterator

from mcp.server.fastmcp import Context
from pydantic import Field

from .fetch import NWS_API_BASE, fetch_location, fetch_with_bearer_token, make_nws_request
from .formatting import format_collections, format_coordinate, format_forecast, format_location
from .mongo import CollectionManager
from .settings import Settings

logger = logging.getLogger("toolbox.server")

# A small registry to export tool metadata (server-first source of truth)
_TOOL_SPECS: list[dict] = []
# Decorated functions wait here until the MCP server is initialized.
_REGISTERED_FUNCS: list[tuple] = []
_registered = False

# The MCP instance is created lazily via `get_mcp()` / `register_tools_with_mcp()`.
mcp = None


@dataclass
class AppContext:
    collections: CollectionManager


def _shutdown_handler(manager: CollectionManager):
    def handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, cleaning up...")
        manager.close()
        logging.shutdown()
        # The stdio reader thread keeps blocking on stdin, so leave without unwinding
        os._exit(0)
    return handle


@asynccontextmanager
async def server_lifespan(server) -> AsyncIterator[AppContext]:
    """Own the MongoDB connection for as long as the server runs.

    The stdio transport runs one session per process, so this is entered
    once and the manager is the only database handle in the process.
    SIGINT and SIGTERM close it and exit with status 0.
    """
    settings = Settings.from_env()
    async with CollectionManager(settings.mongo_uri, settings.mongo_db_name) as manager:
        logger.info(f"[Server] Collection manager ready for database '{settings.mongo_db_name}'")
        handler = _shutdown_handler(manager)
        previous = {signum: signal.signal(signum, handler) for signum in (signal.SIGINT, signal.SIGTERM)}
        try:
            yield AppContext(collections=manager)
        finally:
            for signum, old in previous.items():
                signal.signal(signum, old if old is not None else signal.SIG_DFL)
            logger.info("[Server] Shutting down, closing MongoDB connection")


def get_mcp():
    """Lazily initialize and return the FastMCP server instance."""
    global mcp
    if mcp is not None:
        return mcp
    from mcp.server.fastmcp import FastMCP
    mcp = FastMCP("toolbox", lifespan=server_lifespan)
    return mcp


def register_tools_with_mcp():
    """Register all previously-decorated functions with the MCP instance."""
    global _registered
    m = get_mcp()
    if _registered:
        return m
    for fn, args, kwargs in _REGISTERED_FUNCS:
        decorated = m.tool(*args, **kwargs)(fn)
        if hasattr(fn, "__tool_spec__"):
            setattr(decorated, "__tool_spec__", getattr(fn, "__tool_spec__"))
        globals()[fn.__name__] = decorated
    _registered = True
    return m


def tool(*args, schema: dict | None = None, **kwargs):
    """Record tool metadata without initializing MCP.

    Use as `@tool(name="get-forecast", schema={...})`. The functions are
    registered with the MCP instance when `register_tools_with_mcp()` runs.
    """
    def decorator(fn):
        spec = {
            "name": kwargs.get("name") or fn.__name__,
            "description": (fn.__doc__ or "").strip().split("\n\n")[0],
            "input_schema": schema or {"type": "object", "properties": {}},
        }
        _TOOL_SPECS.append(spec)
        _REGISTERED_FUNCS.append((fn, args, kwargs))
        setattr(fn, "__tool_spec__", spec)
        return fn
    return decorator


def get_tool_specs() -> list[dict]:
    """Return a copy of the registered tool specs."""
    return [dict(s) for s in _TOOL_SPECS]


def export_tools_json(path: str = "tools.json") -> None:
    """Write the exported tool metadata to a JSON file."""
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(get_tool_specs(), fh, indent=2)


def _collections(ctx: Context) -> CollectionManager:
    return ctx.request_context.lifespan_context.collections


def _dump(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


@tool(name="get-current-location")
async def get_current_location() -> str:
    """Get current latitude and longitude based on IP address"""
    result = await fetch_location()
    if not result.ok:
        return f"Error getting current location: {result.detail}"

    data = result.data
    if not isinstance(data, dict) or data.get("latitude") is None or data.get("longitude") is None:
        return "Unable to determine current location from IP address"

    logger.info(f"[Location] Resolved {data.get('latitude')}, {data.get('longitude')}")
    return format_location(data)


@tool(name="get-courses")
async def get_courses() -> str:
    """Get a list of courses"""
    settings = Settings.from_env()
    courses_data = await fetch_with_bearer_token(settings.courses_api_url, settings.api_key)
    if courses_data is None:
        return "Failed to retrieve courses data"

    try:
        # Expected shape: {"data": {"courseList": [...]}}; anything else is shown raw
        data = courses_data.get("data") if isinstance(courses_data, dict) else None
        course_list = data.get("courseList") if isinstance(data, dict) else None
        if isinstance(course_list, list) and course_list:
            return f"Full course list:\n{_dump(course_list)}"
        return f"Courses data received (raw format):\n{_dump(courses_data)}"
    except Exception as e:
        logger.exception(f"[Courses] Could not process response: {e}")
        return f"Error processing courses data: {e}\nRaw data: {_dump(courses_data)}"


@tool(name="list-collections")
async def list_collections(ctx: Context) -> str:
    """List all collections in the MongoDB database"""
    try:
        names = await _collections(ctx).list_collections()
    except Exception as e:
        logger.exception(f"[MongoDB] list-collections failed: {e}")
        return f"Error listing collections: {e}"
    return format_collections(names)


_COLLECTION_NAME_SCHEMA = {
    "type": "object",
    "properties": {"collectionName": {"type": "string", "description": "Name of the collection"}},
    "required": ["collectionName"],
    "additionalProperties": False,
}


@tool(name="create-collection", schema=_COLLECTION_NAME_SCHEMA)
async def create_collection(
    collectionName: Annotated[str, Field(description="Name of the collection to create")],
    ctx: Context,
) -> str:
    """Create a new collection in the MongoDB database"""
    try:
        return await _collections(ctx).create_collection(collectionName)
    except Exception as e:
        logger.exception(f"[MongoDB] create-collection failed: {e}")
        return f"Error creating collection: {e}"


@tool(name="drop-collection", schema=_COLLECTION_NAME_SCHEMA)
async def drop_collection(
    collectionName: Annotated[str, Field(description="Name of the collection to drop")],
    ctx: Context,
) -> str:
    """Drop (delete) a collection from the MongoDB database"""
    try:
        return await _collections(ctx).drop_collection(collectionName)
    except Exception as e:
        logger.exception(f"[MongoDB] drop-collection failed: {e}")
        return f"Error dropping collection: {e}"


@tool(name="get-forecast", schema={
    "type": "object",
    "properties": {
        "latitude": {"type": "number", "minimum": -90, "maximum": 90, "description": "Latitude of the location"},
        "longitude": {"type": "number", "minimum": -180, "maximum": 180, "description": "Longitude of the location"},
    },
    "required": ["latitude", "longitude"],
    "additionalProperties": False,
})
async def get_forecast(
    latitude: Annotated[float, Field(strict=True, ge=-90, le=90, description="Latitude of the location")],
    longitude: Annotated[float, Field(strict=True, ge=-180, le=180, description="Longitude of the location")],
) -> str:
    """Get weather forecast for a location

    Args:
        latitude: Latitude of the location
        longitude: Longitude of the location
    """
    # First get the forecast grid endpoint
    points_url = f"{NWS_API_BASE}/points/{latitude:.4f},{longitude:.4f}"
    points_data = await make_nws_request(points_url)

    if not isinstance(points_data, dict):
        return (
            "Failed to retrieve grid point data for coordinates: "
            f"{format_coordinate(latitude)}, {format_coordinate(longitude)}. "
            "This location may not be supported by the NWS API (only US locations are supported)."
        )

    properties = points_data.get("properties")
    forecast_url = properties.get("forecast") if isinstance(properties, dict) else None
    if not forecast_url or not isinstance(forecast_url, str):
        return "Failed to get forecast URL from grid point data"

    forecast_data = await make_nws_request(forecast_url)
    if not isinstance(forecast_data, dict):
        return "Failed to retrieve forecast data"

    properties = forecast_data.get("properties")
    periods = properties.get("periods") if isinstance(properties, dict) else None
    if not isinstance(periods, list) or not periods:
        return "No forecast periods available"

    return format_forecast(latitude, longitude, periods)


def run_server() -> None:
    """Run the MCP server over stdio (convenience wrapper)."""
    m = register_tools_with_mcp()
    logger.info("Toolbox MCP Server running on stdio")
    m.run(transport="stdio")


def main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    parser = argparse.ArgumentParser(description="Toolbox MCP server (stdio transport)")
    parser.parse_args(argv)

    load_dotenv()
    settings = Settings.from_env()
    os.makedirs(settings.log_dir, exist_ok=True)
    logging.basicConfig(
        filename=os.path.join(settings.log_dir, "toolbox_server.log"),
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        run_server()
    except Exception:
        logger.exception("Fatal error in main()")
        sys.exit(1)


if __name__ == "__main__":
    main()
