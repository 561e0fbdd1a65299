from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class ProviderError(RuntimeError):
    """Raised when an external signal provider cannot deliver a value."""


@dataclass
class RequestConfig:
    timeout: float = 5.0
    retries: int = 0
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (429, 500, 502, 503, 504)


class HttpProvider:
    """Base class that adds timeouts and optional retries for HTTP providers."""

    name = "http"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(f"{__name__}.{self.name}")

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        if config.retries > 0:
            retry = Retry(
                total=config.retries,
                backoff_factor=config.backoff_factor,
                status_forcelist=tuple(config.status_forcelist),
                allowed_methods=frozenset({"GET"}),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        return session

    def _handle_response(self, response: Response) -> Response:
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text[:200])
            raise ProviderError(f"{self.name}: HTTP {response.status_code}")
        return response

    def _request(self, method: str, url: str, **kwargs: Any) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request to %s timed out", self.name)
            raise ProviderError(f"{self.name}: timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request to %s failed: %s", self.name, exc)
            raise ProviderError(f"{self.name}: request failed") from exc
        return self._handle_response(response)

    def _json(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON from %s", self.name)
            raise ProviderError(f"{self.name}: invalid json") from exc


__all__ = ["HttpProvider", "ProviderError", "RequestConfig"]
