"""OpenWeather current-weather provider."""
from __future__ import annotations

from typing import Any, Optional

from parkprice.core.abstractions import Weather
from parkprice.core.providers.base import HttpProvider, ProviderError

# OpenWeather "main" groups -> conditions the pricing rules understand
CONDITION_MAP = {
    "rain": "rainy",
    "drizzle": "rainy",
    "thunderstorm": "rainy",
    "snow": "snowy",
    "clear": "clear",
    "clouds": "cloudy",
}


def normalize_condition(value: Optional[str]) -> str:
    if not value:
        return "unknown"
    key = value.strip().lower()
    return CONDITION_MAP.get(key, key)


class OpenWeatherProvider(HttpProvider):
    """Integration with the OpenWeather current weather endpoint."""

    name = "openweather"
    base_url = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(self, *, api_key: str, base_url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url

    def get_weather(self, latitude: float, longitude: float) -> Weather:
        params = {"lat": latitude, "lon": longitude, "appid": self.api_key, "units": "metric"}
        response = self._request("GET", self.base_url, params=params)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: unexpected payload")

        conditions = data.get("weather") or []
        if not conditions:
            raise ProviderError(f"{self.name}: missing weather conditions")
        main = data.get("main") or {}
        temperature = main.get("temp")

        return Weather(
            temperature=float(temperature) if temperature is not None else None,
            condition=normalize_condition(conditions[0].get("main")),
        )


__all__ = ["CONDITION_MAP", "OpenWeatherProvider", "normalize_condition"]
