"""
Clients for the hosted edge functions.

- get-current-weather: current conditions for a coordinate, shown on spill
  kit checks and incident forms.
- notify-incident: alerts the office when an incident is logged. Failures
  are logged and never fail the incident itself.
"""

import logging
from typing import Any, Dict, Optional
import httpx
from backend.app.core.config import settings
from backend.app.core.exceptions import ExternalServiceError
from backend.app.core.reliability import weather_circuit_breaker, notify_circuit_breaker, CircuitOpenError
from backend.app.schemas.spill_kit import WeatherResponse

logger = logging.getLogger(__name__)


def _function_url(configured: Optional[str], name: str) -> str:
    return configured or f"{settings.supabase_url.rstrip('/')}/functions/v1/{name}"


class EdgeFunctionClient:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def _invoke(self, url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        headers = {}
        if settings.supabase_service_key:
            headers["Authorization"] = f"Bearer {settings.supabase_service_key}"
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self.transport) as client:
            response = await client.post(url, json=body, headers=headers)
            response.raise_for_status()
            return response.json()

    async def get_current_weather(self, latitude: float, longitude: float) -> WeatherResponse:
        """
        Current conditions at a coordinate.

        Raises:
            ExternalServiceError: If the function fails or its circuit is open
        """
        url = _function_url(settings.weather_function_url, "get-current-weather")
        try:
            data = await weather_circuit_breaker.call(
                self._invoke, url, {"latitude": latitude, "longitude": longitude}
            )
        except CircuitOpenError:
            raise ExternalServiceError("get-current-weather", "Weather service temporarily unavailable")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Weather lookup failed: %s", exc)
            raise ExternalServiceError("get-current-weather", "Weather lookup failed")

        return WeatherResponse(
            description=data.get("description"),
            temp=data.get("temp"),
            humidity=data.get("humidity"),
            wind_speed=data.get("windSpeed"),
            city=data.get("city"),
            state=data.get("state"),
            summary=format_weather(data),
        )

    async def notify_incident(self, payload: Dict[str, Any]) -> bool:
        """Send an incident alert. Returns False on failure."""
        url = _function_url(settings.notify_incident_function_url, "notify-incident")
        try:
            await notify_circuit_breaker.call(self._invoke, url, payload)
        except CircuitOpenError:
            logger.warning("notify-incident skipped for %s: circuit open", payload.get("incident_id"))
            return False
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("notify-incident failed for %s: %s", payload.get("incident_id"), exc)
            return False
        return True


def format_weather(data: Dict[str, Any]) -> str:
    """
    One-line conditions text, e.g.
    "Light Rain • 61°F • 80% Humidity • Wind 5 MPH - Austin, TX".
    """
    description = (data.get("description") or "").strip()
    parts = [" ".join(word.capitalize() for word in description.split())] if description else []
    if data.get("temp") is not None:
        parts.append(f"{round(data['temp'])}°F")
    if data.get("humidity") is not None:
        parts.append(f"{round(data['humidity'])}% Humidity")
    if data.get("windSpeed") is not None:
        parts.append(f"Wind {round(data['windSpeed'])} MPH")

    summary = " • ".join(parts)
    if data.get("city") and data.get("state"):
        summary = f"{summary} - {data['city']}, {data['state']}"
    return summary


def get_edge_function_client() -> EdgeFunctionClient:
    """FastAPI dependency; overridden in tests."""
    return EdgeFunctionClient()
