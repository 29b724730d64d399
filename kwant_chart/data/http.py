"""Async JSON-over-HTTP client shared by the provider fetchers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from kwant_chart.data.cancel import CancelToken
from kwant_chart.data.errors import FetchCancelledError, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


def build_params(params: Mapping[str, Any]) -> Dict[str, str]:
    """Drop unset values and stringify the rest for the query string."""
    return {key: str(value) for key, value in params.items() if value is not None and value != ""}


class HttpClient:
    """Thin wrapper around an ``aiohttp.ClientSession``.

    The session is opened lazily inside the running loop. Requests given a
    ``CancelToken`` are raced against it and aborted as soon as it fires.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: Optional[aiohttp.ClientSession] = None) -> None:
        self.timeout = timeout
        self._session = session

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        provider: str,
        cancel: Optional[CancelToken] = None,
    ) -> Any:
        query = build_params(params or {})
        if cancel is None:
            return await self._get(url, query, provider)

        cancel.raise_if_cancelled()
        request = asyncio.ensure_future(self._get(url, query, provider))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, waiter):
                if not task.done():
                    task.cancel()
        if request.done() and not request.cancelled():
            return request.result()
        try:
            await request
        except asyncio.CancelledError:
            pass
        logger.debug(f"{provider} request to {url} aborted")
        raise FetchCancelledError()

    async def _get(self, url: str, params: Dict[str, str], provider: str) -> Any:
        session = await self._ensure_session()
        logger.debug(f"{provider} GET {url} params={params}")
        try:
            async with session.get(url, params=params) as response:
                status = response.status
                text = await response.text()
        except asyncio.TimeoutError as exc:
            raise ProviderError(provider, None, "request timed out") from exc
        except aiohttp.ClientError as exc:
            raise ProviderError(provider, None, str(exc)) from exc

        if status >= 400:
            raise ProviderError(provider, status, _error_message(text))
        try:
            return json.loads(text) if text else {}
        except ValueError as exc:
            raise ProviderError(provider, status, "invalid JSON response") from exc


def _error_message(text: str) -> Optional[str]:
    try:
        payload = json.loads(text)
    except ValueError:
        return text[:200] or None
    if isinstance(payload, dict):
        for key in ("msg", "retMsg", "message", "err-msg", "label", "error"):
            value = payload.get(key)
            if value:
                return str(value)
    return text[:200] or None
