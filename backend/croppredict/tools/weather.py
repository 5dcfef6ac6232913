# backend/croppredict/tools/weather.py
import time
import zlib
import logging
from typing import Dict, Any, List, Optional

from langchain_core.tools import tool

from croppredict.config import settings
from croppredict.http import ensure_http_client
from croppredict.schemas import WeatherForecast
from croppredict.utils.cache import get_json, set_json

log = logging.getLogger("croppredict.tools.weather")

def t(): return time.perf_counter()

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"

FALLBACK_FORECASTS = [
    "Sunny with highs around 30°C. Low chance of rain.",
    "Partly cloudy with a 40% chance of afternoon showers. Highs of 28°C.",
    "Heavy rainfall expected, totaling 50mm. Highs of 25°C.",
    "Clear skies and dry conditions. Highs around 32°C.",
    "Mixed sun and clouds, moderate temperatures. Highs of 27°C.",
]


def fallback_forecast(location: str) -> str:
    """Synthetic forecast, stable per location so repeated calls agree."""
    idx = zlib.crc32(location.strip().lower().encode("utf-8")) % len(FALLBACK_FORECASTS)
    return FALLBACK_FORECASTS[idx]


async def geocode_text(q: str) -> Optional[tuple[float, float]]:
    key = f"geo:search:{q.strip().lower()}"
    cached = await get_json(key)
    if cached:
        return tuple(cached)

    client = await ensure_http_client()
    params = {"q": q, "format": "json", "limit": 1}
    headers = {
        "User-Agent": "CropPredict/1.0 (contact: support@croppredict.example)",
        "Accept-Language": "en-IN",
    }
    r = await client.get(NOMINATIM_URL, params=params, headers=headers)
    r.raise_for_status()
    arr = r.json()
    if not arr:
        return None
    result = (float(arr[0]["lat"]), float(arr[0]["lon"]))
    await set_json(key, list(result), ttl_sec=settings.GEOCODE_TTL_SEC)
    return result


def summarize_daily(location: str, daily: Dict[str, Any]) -> Optional[str]:
    """Turn an Open-Meteo `daily` block into a one-paragraph forecast."""
    dtime: List[str] = daily.get("time") or []
    tmax = [x for x in (daily.get("temperature_2m_max") or []) if x is not None]
    tmin = [x for x in (daily.get("temperature_2m_min") or []) if x is not None]
    rain = [x or 0.0 for x in (daily.get("precipitation_sum") or [])]
    prob = [x for x in (daily.get("precipitation_probability_max") or []) if x is not None]
    if not dtime or not tmax or not tmin:
        return None

    wet_days = sum(1 for r in rain if r >= 1.0)
    parts = [
        f"{len(dtime)}-day forecast for {location}:",
        f"highs {min(tmax):.0f}–{max(tmax):.0f}°C, lows {min(tmin):.0f}–{max(tmin):.0f}°C;",
        f"total rain ≈{sum(rain):.0f} mm over {wet_days} wet day(s)",
    ]
    if prob:
        parts.append(f"(max rain chance {max(prob):.0f}%)")
    if rain and max(rain) >= 1.0:
        wettest = dtime[rain.index(max(rain))]
        parts.append(f"; wettest day {wettest} with {max(rain):.0f} mm")
    return " ".join(parts) + "."


async def fetch_live_forecast(location: str) -> Optional[str]:
    coords = await geocode_text(location)
    if coords is None:
        return None
    lat, lon = coords
    params = {
        "latitude": lat,
        "longitude": lon,
        "daily": "temperature_2m_max,temperature_2m_min,precipitation_sum,precipitation_probability_max",
        "forecast_days": settings.WX_FORECAST_DAYS,
        "timezone": "auto",
        "temperature_unit": "celsius",
    }
    client = await ensure_http_client()
    r = await client.get(OPEN_METEO_URL, params=params)
    r.raise_for_status()
    return summarize_daily(location, r.json().get("daily") or {})


async def get_weather_forecast(location: str) -> WeatherForecast:
    """Always returns a forecast; falls back to a synthetic one when live data is unavailable."""
    start = t()
    text: Optional[str] = None
    if settings.WEATHER_LIVE:
        try:
            text = await fetch_live_forecast(location)
        except Exception as e:
            log.warning("Live forecast failed for %r, using fallback: %s", location, e)

    source = "open-meteo" if text else "fallback"
    out = WeatherForecast(forecast=text or fallback_forecast(location))
    log.info("⏱️  Weather forecast for %s (%s): %dms", location, source, round((t() - start) * 1000))
    return out


@tool("getWeatherForecast")
async def weather_forecast_tool(location: str) -> dict:
    """Returns the weather forecast for a specified location (city or region) for the next 7 days,
    including temperature ranges, precipitation chances, and general conditions."""
    res = await get_weather_forecast(location)
    return res.model_dump()
