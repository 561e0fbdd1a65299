from parkprice.core.providers.base import HttpProvider, ProviderError, RequestConfig
from parkprice.core.providers.here import HereTrafficProvider
from parkprice.core.providers.openweather import OpenWeatherProvider

__all__ = ["HereTrafficProvider", "HttpProvider", "OpenWeatherProvider", "ProviderError", "RequestConfig"]
