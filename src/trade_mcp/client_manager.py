"""Async client for the 0x aggregator HTTP API."""

import asyncio
from typing import Any, Mapping, Optional

import httpx

from .config import TradeConfig
from .errors import InternalError, UpstreamError, UpstreamTimeoutError
from .logger import get_logger

log = get_logger(__name__)

QUOTE_PATH = "/swap/v1/quote"


class ZeroXClientManager:
    """Owns the pooled HTTP client used for every aggregator request.

    Each request runs under an explicit deadline. Cancelling the awaiting
    task aborts the in-flight request instead of letting it finish unused.
    """

    def __init__(
        self,
        config: TradeConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._http_client = http_client

    @property
    def headers(self) -> dict[str, str]:
        return {
            "0x-api-key": self.config.api_key,
            "0x-version": self.config.api_version,
        }

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                headers=self.headers,
                timeout=httpx.Timeout(self.config.quote_timeout),
            )
        return self._http_client

    async def get_json(
        self,
        path: str,
        params: Mapping[str, Any],
        *,
        deadline: Optional[float] = None,
    ) -> dict[str, Any]:
        """GET ``path`` and decode the JSON body.

        Raises:
            UpstreamTimeoutError: no response within ``deadline`` seconds.
            UpstreamError: non-2xx status or transport failure.
            InternalError: the body is not a JSON object.
        """
        timeout = deadline if deadline is not None else self.config.quote_timeout
        url = f"{self.base_url}{path}"
        query = {key: str(value) for key, value in params.items() if value is not None}

        log.debug("[0X][GET][REQUEST] path=%s params=%s timeout=%.2fs", path, query, timeout)
        try:
            response = await asyncio.wait_for(
                self.http.get(url, params=query, headers=self.headers),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            log.warning("[0X][GET][TIMEOUT] path=%s timeout=%.2fs", path, timeout)
            raise UpstreamTimeoutError(timeout=timeout, endpoint=path) from exc
        except httpx.RequestError as exc:
            log.warning("[0X][GET][TRANSPORT] path=%s error=%s", path, exc)
            raise UpstreamError(
                message=f"Failed to reach the 0x API: {exc.__class__.__name__}",
            ) from exc

        if not response.is_success:
            log.warning(
                "[0X][GET][REJECTED] path=%s status=%s body=%s",
                path,
                response.status_code,
                response.text,
            )
            raise UpstreamError(
                message="Failed to get quote from 0x API",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            log.error("[0X][GET][DECODE] path=%s body is not JSON", path)
            raise InternalError("Aggregator returned a malformed response") from exc
        if not isinstance(payload, dict):
            raise InternalError("Aggregator returned a malformed response")

        log.info("[0X][GET][RECEIVE] path=%s status=%s", path, response.status_code)
        return payload

    async def get_quote(
        self,
        params: Mapping[str, Any],
        *,
        deadline: Optional[float] = None,
    ) -> dict[str, Any]:
        return await self.get_json(QUOTE_PATH, params, deadline=deadline)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
