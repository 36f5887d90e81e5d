"""Tests for OpenAIEmbeddingProvider and vector normalization."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ledgersync.exceptions import ConfigurationError, FailureKind, UpstreamProtocolError
from ledgersync.infra.embeddings.openai_client import OpenAIEmbeddingProvider, normalize_vector


def _mock_http(data, status_code: int = 200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = ""
    resp.json.return_value = data
    http = MagicMock()
    http.post = AsyncMock(return_value=resp)
    return http


class TestNormalizeVector:
    def test_pads_with_zeros(self):
        vector = [float(i) for i in range(512)]
        result = normalize_vector(vector, 768)
        assert len(result) == 768
        assert result[:512] == vector
        assert result[512:] == [0.0] * 256

    def test_truncates(self):
        assert normalize_vector([1.0, 2.0, 3.0], 2) == [1.0, 2.0]

    def test_exact_length_unchanged(self):
        assert normalize_vector([1.0, 2.0], 2) == [1.0, 2.0]

    def test_invalid_dimension(self):
        with pytest.raises(ValueError):
            normalize_vector([1.0], 0)

    @pytest.mark.parametrize("component", [None, "0.1", True, float("nan"), float("inf")])
    def test_non_numeric_component_is_malformed(self, component):
        with pytest.raises(UpstreamProtocolError) as exc_info:
            normalize_vector([0.1, component], 4)
        assert exc_info.value.kind == FailureKind.MALFORMED_RESPONSE

    def test_integer_components_are_accepted(self):
        assert normalize_vector([1, 0], 2) == [1.0, 0.0]


class TestOpenAIEmbeddingProvider:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            OpenAIEmbeddingProvider(http_client=MagicMock(), api_key="")

    async def test_request_and_ordering(self):
        http = _mock_http({
            "data": [
                {"index": 1, "embedding": [0.2, 0.2]},
                {"index": 0, "embedding": [0.1, 0.1]},
            ]
        })
        provider = OpenAIEmbeddingProvider(
            http_client=http, api_key="sk-test", base_url="https://llm.example/v1/", target_dimension=3
        )

        vectors = await provider.embed(["first", "second"])

        assert vectors == [[0.1, 0.1, 0.0], [0.2, 0.2, 0.0]]
        args, kwargs = http.post.call_args
        assert args[0] == "https://llm.example/v1/embeddings"
        assert kwargs["json"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}
        assert kwargs["headers"] == {"authorization": "Bearer sk-test"}

    async def test_count_mismatch(self):
        http = _mock_http({"data": [{"index": 0, "embedding": [0.1]}]})
        provider = OpenAIEmbeddingProvider(http_client=http, api_key="sk-test")

        with pytest.raises(UpstreamProtocolError):
            await provider.embed(["a", "b"])

    async def test_error_status(self):
        http = _mock_http({"error": {"message": "bad model"}}, status_code=400)
        provider = OpenAIEmbeddingProvider(http_client=http, api_key="sk-test")

        with pytest.raises(UpstreamProtocolError):
            await provider.embed(["a"])

    async def test_empty_input(self):
        http = _mock_http({})
        provider = OpenAIEmbeddingProvider(http_client=http, api_key="sk-test")

        assert await provider.embed([]) == []
        http.post.assert_not_called()
