from .market_price import market_price_tool, get_market_price
from .weather import weather_forecast_tool, get_weather_forecast

# Capabilities declared to the model for yield estimation
ESTIMATION_TOOLS = [market_price_tool, weather_forecast_tool]

__all__ = [
    "market_price_tool",
    "weather_forecast_tool",
    "get_market_price",
    "get_weather_forecast",
    "ESTIMATION_TOOLS",
]
