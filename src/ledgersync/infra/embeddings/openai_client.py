"""OpenAI-compatible embeddings client."""

import logging
import math
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledgersync.exceptions import ConfigurationError, FailureKind, TransientNetworkError, UpstreamProtocolError
from ledgersync.infra.blockchain.evm.jsonrpc import RETRYABLE_HTTP_STATUSES
from ledgersync.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_DIMENSION = 768


def normalize_vector(vector: list[float], target_dimension: int) -> list[float]:
    """Truncate or right-pad with zeros so the vector has exactly `target_dimension` entries."""
    if target_dimension <= 0:
        raise ValueError("target_dimension must be positive")
    values = [_component(v) for v in vector]
    if len(values) >= target_dimension:
        return values[:target_dimension]
    return values + [0.0] * (target_dimension - len(values))


class OpenAIEmbeddingProvider:
    def __init__(
        self,
        http_client: RateLimitedClient,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        target_dimension: int = DEFAULT_DIMENSION,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Embedding API key is not configured")
        self._http = http_client
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._target_dimension = target_dimension

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type(TransientNetworkError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """One vector per input text, in input order, each of the target dimension."""
        if not texts:
            return []
        try:
            response = await self._http.post(
                f"{self._base_url}/embeddings",
                json={"model": self._model, "input": texts},
                headers={"authorization": f"Bearer {self._api_key}"},
            )
        except httpx.TimeoutException as exc:
            raise TransientNetworkError("Embedding request timed out", FailureKind.TIMEOUT) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"Embedding transport failure: {exc}", FailureKind.CONNECTION) from exc

        if response.status_code in RETRYABLE_HTTP_STATUSES:
            raise TransientNetworkError(
                f"Embedding request failed ({response.status_code})", FailureKind.HTTP_STATUS,
                status_code=response.status_code,
            )
        if response.status_code != 200:
            raise UpstreamProtocolError(f"Embedding request failed ({response.status_code}): {response.text[:300]}")

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamProtocolError("Embedding API returned a non-JSON body", FailureKind.MALFORMED_RESPONSE) from exc
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or len(data) != len(texts):
            raise UpstreamProtocolError(
                f"Embedding API returned {len(data) if isinstance(data, list) else 'no'} vectors for {len(texts)} inputs",
                FailureKind.MALFORMED_RESPONSE,
            )

        ordered = sorted(enumerate(data), key=lambda pair: _item_index(pair[1], pair[0]))
        vectors = []
        for _, item in ordered:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise UpstreamProtocolError("Embedding item missing vector", FailureKind.MALFORMED_RESPONSE)
            vectors.append(normalize_vector(embedding, self._target_dimension))
        return vectors


def _component(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise UpstreamProtocolError(
            f"Embedding vector has a non-numeric component: {value!r}", FailureKind.MALFORMED_RESPONSE
        )
    return float(value)


def _item_index(item: Any, position: int) -> int:
    index = item.get("index") if isinstance(item, dict) else None
    return index if isinstance(index, int) else position
