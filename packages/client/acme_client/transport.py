"""
HTTP transport: request ids, retries with backoff, rate-limit handling.

Retry policy:
- Transport failures and 5xx responses are retried for idempotent methods,
  and for POST only when the call carries an ``Idempotency-Key``
- 429 waits for ``Retry-After`` and retries
- Other 4xx responses are never retried
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog

from .config import ClientConfig
from .errors import NETWORK_ERROR, ApiClientError, generate_request_id
from .metrics import MetricsCollector

log = structlog.get_logger()

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})
# Connect, read, write, protocol and timeout failures
RETRYABLE_ERRORS = (httpx.TransportError,)


def _retry_after_seconds(response: httpx.Response, default: float) -> float:
    try:
        return max(float(response.headers.get("Retry-After", "")), 0.0)
    except ValueError:
        return default


class Transport:
    """One pooled ``httpx.AsyncClient`` plus the retry loop around it."""

    def __init__(
        self,
        config: ClientConfig,
        metrics: MetricsCollector | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._metrics = metrics
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def open(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/"),
            timeout=httpx.Timeout(self._config.timeout_seconds),
            verify=self._config.verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _inc(self, name: str) -> None:
        if self._metrics:
            self._metrics.inc(name)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> httpx.Response:
        """Send a request; returns the response or raises ``ApiClientError``."""
        if self._client is None:
            raise RuntimeError("Transport is not open")

        method = method.upper()
        request_id = generate_request_id()
        send_headers = {"x-request-id": request_id}
        if idempotency_key:
            send_headers["Idempotency-Key"] = idempotency_key
        send_headers.update(headers or {})

        retries = self._config.retries
        retryable = method in IDEMPOTENT_METHODS or idempotency_key is not None
        logging_cfg = self._config.logging
        started = time.monotonic()

        if logging_cfg.level == "debug":
            log.debug(
                "client.request",
                request_id=request_id,
                method=method,
                path=path,
                body=json if logging_cfg.include_body else None,
            )

        last_exc: Exception | None = None
        for attempt in range(retries.attempts):
            is_last = attempt == retries.attempts - 1
            self._inc("requests_total")
            try:
                resp = await self._client.request(method, path, json=json, headers=send_headers)
            except RETRYABLE_ERRORS as exc:
                last_exc = exc
                if not retryable or is_last:
                    break
                await self._backoff(attempt, request_id, str(exc))
                continue

            if resp.status_code == 429 and not is_last:
                wait = _retry_after_seconds(resp, retries.rate_limit_wait_seconds)
                log.warning("client.rate_limited", request_id=request_id, retry_after=wait)
                self._inc("rate_limited_total")
                await asyncio.sleep(wait)
                continue

            if resp.status_code >= 500 and retryable and not is_last:
                await self._backoff(attempt, request_id, f"HTTP {resp.status_code}")
                continue

            elapsed = time.monotonic() - started
            if self._metrics:
                self._metrics.observe("request_duration_seconds", elapsed)
            if logging_cfg.timing:
                log.info(
                    "client.response",
                    request_id=request_id,
                    method=method,
                    path=path,
                    status=resp.status_code,
                    duration_ms=round(elapsed * 1000),
                )

            if resp.status_code >= 400:
                self._inc("request_errors_total")
                raise ApiClientError.from_response(resp, request_id)
            return resp

        self._inc("request_errors_total")
        log.error(
            "client.request_failed",
            request_id=request_id,
            method=method,
            path=path,
            attempts=retries.attempts,
            error=str(last_exc),
        )
        raise ApiClientError(
            code=NETWORK_ERROR,
            message=str(last_exc) or "Request failed",
            status=0,
            request_id=request_id,
        ) from last_exc

    async def _backoff(self, attempt: int, request_id: str, reason: str) -> None:
        delay = self._config.retries.delay_for(attempt)
        log.warning(
            "client.retry",
            request_id=request_id,
            attempt=attempt + 1,
            backoff=delay,
            error=reason,
        )
        self._inc("retries_total")
        await asyncio.sleep(delay)
