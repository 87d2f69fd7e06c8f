"""Plain-text renderers for tool responses. None of these raise on missing fields."""

from typing import Any, Iterable


def format_alert(feature: dict) -> str:
    """Format an alert feature into a readable string."""
    props = feature.get("properties") if isinstance(feature, dict) else None
    if not isinstance(props, dict):
        props = {}
    return "\n".join([
        f"Event: {props.get('event') or 'Unknown'}",
        f"Area: {props.get('areaDesc') or 'Unknown'}",
        f"Severity: {props.get('severity') or 'Unknown'}",
        f"Status: {props.get('status') or 'Unknown'}",
        f"Headline: {props.get('headline') or 'No headline'}",
        "---",
    ])


def format_forecast_period(period: dict) -> str:
    """Format a single forecast period; anything but a mapping renders as all defaults."""
    if not isinstance(period, dict):
        period = {}
    temperature = period.get("temperature")
    if temperature is None or temperature == "":
        temperature = "Unknown"
    return "\n".join([
        f"{period.get('name') or 'Unknown'}:",
        f"Temperature: {temperature}°{period.get('temperatureUnit') or 'F'}",
        f"Wind: {period.get('windSpeed') or 'Unknown'} {period.get('windDirection') or ''}",
        f"{period.get('shortForecast') or 'No forecast available'}",
        "---",
    ])


def format_coordinate(value: float) -> str:
    """Echo a coordinate as given: whole numbers lose the trailing ".0"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_forecast(latitude: float, longitude: float, periods: Iterable[dict]) -> str:
    body = "\n".join(format_forecast_period(period) for period in periods)
    return f"Forecast for {format_coordinate(latitude)}, {format_coordinate(longitude)}:\n\n{body}"


def format_location(data: dict[str, Any]) -> str:
    return "\n".join([
        "Current location:",
        f"Latitude: {data.get('latitude')}",
        f"Longitude: {data.get('longitude')}",
        f"City: {data.get('city') or 'Unknown'}",
        f"Region: {data.get('region') or 'Unknown'}",
        f"Country: {data.get('country_name') or 'Unknown'}",
    ])


def format_collections(names: list[str]) -> str:
    if not names:
        return "No collections found in the database"
    lines = "\n".join(f"- {name}" for name in names)
    return f"Collections in database:\n{lines}"
