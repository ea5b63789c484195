from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Protocol

import httpx

from school_finder.arcgis import build_query_params, build_query_url, extract_features


logger = logging.getLogger(__name__)

RETRY_STATUS = {429, 500, 502, 503, 504}


class SourceError(RuntimeError):
    """An upstream layer could not produce features for one request."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class RetryConfig:
    def __init__(self, retries=0, base_delay=0.2, factor=2.0, jitter=0.1):
        self.retries = retries
        self.base_delay = base_delay
        self.factor = factor
        self.jitter = jitter


def compute_backoff_delays(
    retries, base_delay=0.2, factor=2.0, jitter=0.1, rand_fn=None
):
    delays = []
    current = base_delay
    rand_fn = rand_fn or random.random
    for _ in range(retries):
        noise = (rand_fn() * 2 - 1) * jitter
        delays.append(max(0.0, current + noise))
        current *= factor
    return delays


class FeatureSource(Protocol):
    name: str

    async def query(self, where: str, limit: int) -> List[Dict[str, Any]]: ...

    async def aclose(self) -> None: ...


class ArcGISFeatureSource:
    """One ArcGIS feature layer queried over HTTP.

    ``query`` raises ``SourceError`` for anything that is not a usable
    feature envelope. Cancellation of the awaiting task is never caught here.
    """

    def __init__(
        self,
        name: str,
        layer_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
        retry_config: Optional[RetryConfig] = None,
        user_agent: str = "school-finder",
        sleep_fn=None,
    ):
        self.name = name
        self.layer_url = layer_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep_fn or asyncio.sleep

    def query_url(self, where: str, limit: int) -> str:
        return build_query_url(self.layer_url, where, limit)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request_json(self, params: Dict[str, Any]) -> Any:
        client = await self._ensure_client()
        response = await client.get(f"{self.layer_url}/query", params=params)
        if response.status_code in RETRY_STATUS:
            raise httpx.HTTPStatusError(
                f"transient status {response.status_code}",
                request=response.request,
                response=response,
            )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise SourceError(self.name, "response body is not JSON") from exc

    async def query(self, where: str, limit: int) -> List[Dict[str, Any]]:
        params = build_query_params(where, limit)
        delays = compute_backoff_delays(
            self.retry_config.retries,
            self.retry_config.base_delay,
            self.retry_config.factor,
            self.retry_config.jitter,
        )
        attempts = len(delays) + 1
        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                payload = await self._request_json(params)
                break
            except httpx.HTTPStatusError as exc:
                last_error = exc
                status = exc.response.status_code
                if status not in RETRY_STATUS or attempt >= len(delays):
                    raise SourceError(self.name, f"HTTP {status}") from exc
            except httpx.HTTPError as exc:
                last_error = exc
                if attempt >= len(delays):
                    raise SourceError(self.name, f"transport error: {exc!r}") from exc
            logger.debug(
                "retrying %s after %s (attempt %d/%d)",
                self.name,
                last_error,
                attempt + 1,
                attempts,
            )
            await self._sleep(delays[attempt])
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            error = payload["error"]
            raise SourceError(
                self.name,
                f"service error {error.get('code')}: {error.get('message')}",
            )
        return extract_features(payload)
