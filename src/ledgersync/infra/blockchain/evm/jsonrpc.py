"""JSON-RPC 2.0 transport with failure classification and jittered exponential backoff."""

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random

from ledgersync.exceptions import ConfigurationError, FailureKind, TransientNetworkError, UpstreamProtocolError
from ledgersync.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

# -32005: limit exceeded / capacity, -32603: internal error, 429: Alchemy throughput
DEFAULT_RETRYABLE_RPC_CODES = frozenset({-32005, -32603, 429})

# Node errors that carry a generic code (usually -32000) but describe a transient condition
TRANSIENT_RPC_PHRASES = (
    "rate limit",
    "too many requests",
    "header not found",
    "timeout",
    "timed out",
    "temporarily unavailable",
)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_DELAY = 8.0


def classify_http_status(status_code: int) -> FailureKind:
    if status_code in RETRYABLE_HTTP_STATUSES:
        return FailureKind.HTTP_STATUS
    return FailureKind.REJECTED


def classify_rpc_code(code: int | None, retryable_codes: Iterable[int]) -> FailureKind:
    if code is not None and code in retryable_codes:
        return FailureKind.RPC_CODE
    return FailureKind.REJECTED


def classify_rpc_error(code: int | None, message: str, retryable_codes: Iterable[int]) -> FailureKind:
    """Map a JSON-RPC error object to a FailureKind. Codes win; known phrases cover generic codes."""
    kind = classify_rpc_code(code, retryable_codes)
    if kind.retryable:
        return kind
    lowered = message.lower()
    if any(phrase in lowered for phrase in TRANSIENT_RPC_PHRASES):
        return FailureKind.RPC_TRANSIENT
    return FailureKind.REJECTED


class JsonRpcClient:
    """Minimal JSON-RPC client. Request ids are per instance, starting at 1."""

    def __init__(
        self,
        rpc_url: str,
        http_client: RateLimitedClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        retryable_codes: Iterable[int] = DEFAULT_RETRYABLE_RPC_CODES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not rpc_url:
            raise ConfigurationError("JSON-RPC endpoint URL is not configured")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._rpc_url = rpc_url
        self._http = http_client
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._retryable_codes = frozenset(retryable_codes)
        self._sleep = sleep
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list | None = None) -> Any:
        """Execute a JSON-RPC call and return the `result` field, retrying transient failures."""
        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=retry_if_exception_type(TransientNetworkError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._base_delay, max=self._max_delay) + wait_random(0, self._base_delay),
            before_sleep=self._log_retry,
            reraise=True,
        )
        result: Any = None
        async for attempt in retrying:
            with attempt:
                result = await self._call_once(method, params or [])
        return result

    async def _call_once(self, method: str, params: list) -> Any:
        request_id = next(self._ids)
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }

        try:
            resp = await self._http.post(self._rpc_url, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"RPC {method} timed out", FailureKind.TIMEOUT) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"RPC {method} transport failure: {exc}", FailureKind.CONNECTION) from exc

        status = resp.status_code
        if status >= 400:
            kind = classify_http_status(status)
            message = f"RPC request {method} failed ({status}): {resp.text[:500]}"
            if kind.retryable:
                raise TransientNetworkError(message, kind, status_code=status)
            raise UpstreamProtocolError(message, kind)

        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamProtocolError(
                f"RPC {method} returned a non-JSON body", FailureKind.MALFORMED_RESPONSE
            ) from exc
        if not isinstance(body, dict):
            raise UpstreamProtocolError(f"RPC {method} returned a non-object body", FailureKind.MALFORMED_RESPONSE)

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            kind = classify_rpc_error(code, str(msg), self._retryable_codes)
            message = f"RPC error {code} ({method}): {msg}"
            if kind.retryable:
                raise TransientNetworkError(message, kind)
            raise UpstreamProtocolError(message, kind, code=code)

        if "result" not in body:
            raise UpstreamProtocolError(f"RPC {method} response missing result", FailureKind.MALFORMED_RESPONSE)
        return body["result"]

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "RPC attempt %d failed (%s), retrying in %.2fs",
            retry_state.attempt_number, exc, delay,
        )
