# casamatch/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from ...config import settings

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class CircuitOpenError(httpx.HTTPError):
    pass


@dataclass
class _CircuitState:
    fails: int = 0
    opened_at: float | None = None


class ResilientHttpClient:
    """
    httpx wrapper for flaky third-party APIs: a minimum gap between requests,
    retries with exponential backoff on timeouts/network errors/retryable statuses,
    and a circuit breaker that refuses calls for a while after repeated failures.

    State is per instance, so each external service gets its own circuit.
    `transport` is for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        name: str = "http",
        timeout_s: float | None = None,
        max_retries: int | None = None,
        backoff_base_s: float | None = None,
        fail_threshold: int | None = None,
        reset_s: float | None = None,
        rate_limit_rps: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.HTTP_TIMEOUT_S)
        self.max_retries = int(max_retries if max_retries is not None else settings.HTTP_MAX_RETRIES)
        self.backoff_base_s = float(backoff_base_s if backoff_base_s is not None else settings.HTTP_BACKOFF_BASE_S)
        self.fail_threshold = int(fail_threshold if fail_threshold is not None else settings.HTTP_CIRCUIT_FAIL_THRESHOLD)
        self.reset_s = float(reset_s if reset_s is not None else settings.HTTP_CIRCUIT_RESET_S)
        self.rate_limit_rps = float(rate_limit_rps if rate_limit_rps is not None else settings.HTTP_RATE_LIMIT_RPS)
        self.transport = transport

        self._circuit = _CircuitState()
        self._rate_lock = asyncio.Lock()
        self._last_ts = 0.0

    # -------------------------
    # Circuit breaker
    # -------------------------

    def circuit_is_open(self, now: float | None = None) -> bool:
        if self._circuit.opened_at is None:
            return False
        now = time.monotonic() if now is None else now
        if (now - self._circuit.opened_at) < self.reset_s:
            return True
        # half-open: let the next call through, one more failure re-opens
        self._circuit.opened_at = None
        self._circuit.fails = max(0, self.fail_threshold - 1)
        return False

    def _on_success(self) -> None:
        self._circuit.fails = 0
        self._circuit.opened_at = None

    def _on_failure(self) -> None:
        self._circuit.fails += 1
        if self._circuit.fails >= self.fail_threshold:
            self._circuit.opened_at = time.monotonic()

    async def _rate_limit(self) -> None:
        if self.rate_limit_rps <= 0:
            return
        min_gap = 1.0 / self.rate_limit_rps
        async with self._rate_lock:
            wait = (self._last_ts + min_gap) - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_ts = time.monotonic()

    # -------------------------
    # Requests
    # -------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        data: Any | None = None,
        timeout_s: float | None = None,
    ) -> httpx.Response:
        if self.circuit_is_open():
            raise CircuitOpenError(f"circuit_open[{self.name}]: refusing external call to {url}")

        timeout = httpx.Timeout(float(timeout_s if timeout_s is not None else self.timeout_s))

        last_exc: Exception | None = None
        for attempt in range(self.max_retries + 1):
            await self._rate_limit()
            try:
                async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                    resp = await client.request(method, url, headers=headers, params=params, json=json, data=data)

                if resp.status_code in RETRYABLE_STATUS:
                    raise httpx.HTTPStatusError("retryable_status", request=resp.request, response=resp)

                # 4xx other than 429: caller error, retrying will not help
                resp.raise_for_status()
                self._on_success()
                return resp
            except httpx.HTTPStatusError as e:
                if e.response.status_code not in RETRYABLE_STATUS:
                    raise
                last_exc = e
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                last_exc = e

            self._on_failure()
            if attempt >= self.max_retries or self.circuit_is_open():
                break
            await asyncio.sleep(min(5.0, self.backoff_base_s * (2**attempt)))

        assert last_exc is not None
        raise last_exc

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)
