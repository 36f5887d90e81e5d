"""Tests for JsonRpcClient — request shape, classification and retry."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ledgersync.exceptions import ConfigurationError, FailureKind, TransientNetworkError, UpstreamProtocolError
from ledgersync.infra.blockchain.evm.jsonrpc import (
    JsonRpcClient,
    classify_http_status,
    classify_rpc_code,
    classify_rpc_error,
)

RPC_URL = "https://eth-mainnet.example/v2/key"


def _mock_response(data=None, status_code: int = 200, text: str = ""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(data, Exception):
        resp.json.side_effect = data
    else:
        resp.json.return_value = data
    return resp


def _ok(result):
    return _mock_response({"jsonrpc": "2.0", "id": 1, "result": result})


class _RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def mock_http():
    return AsyncMock()


@pytest.fixture()
def sleeper():
    return _RecordingSleep()


@pytest.fixture()
def rpc(mock_http, sleeper):
    return JsonRpcClient(rpc_url=RPC_URL, http_client=mock_http, sleep=sleeper)


class TestCall:
    async def test_returns_result(self, rpc, mock_http):
        mock_http.post.return_value = _ok("0x10")

        assert await rpc.call("eth_blockNumber") == "0x10"
        payload = mock_http.post.call_args.kwargs["json"]
        assert payload == {"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber", "params": []}
        assert mock_http.post.call_args.args[0] == RPC_URL

    async def test_request_ids_are_per_instance(self, mock_http, sleeper):
        mock_http.post.return_value = _ok("0x1")
        first = JsonRpcClient(rpc_url=RPC_URL, http_client=mock_http, sleep=sleeper)
        second = JsonRpcClient(rpc_url=RPC_URL, http_client=mock_http, sleep=sleeper)

        await first.call("eth_blockNumber")
        await first.call("eth_blockNumber")
        await second.call("eth_blockNumber")

        ids = [c.kwargs["json"]["id"] for c in mock_http.post.call_args_list]
        assert ids == [1, 2, 1]

    async def test_null_result_is_returned(self, rpc, mock_http):
        mock_http.post.return_value = _ok(None)
        assert await rpc.call("eth_getBlockByNumber", ["0x1", False]) is None

    def test_missing_url_is_configuration_error(self, mock_http):
        with pytest.raises(ConfigurationError):
            JsonRpcClient(rpc_url="", http_client=mock_http)


class TestRetry:
    async def test_three_429s_then_success(self, rpc, mock_http, sleeper):
        throttled = _mock_response(status_code=429, text="Too Many Requests")
        mock_http.post.side_effect = [throttled, throttled, throttled, _ok("0x2a")]

        assert await rpc.call("eth_blockNumber") == "0x2a"
        assert mock_http.post.call_count == 4
        assert len(sleeper.delays) == 3
        for attempt, delay in enumerate(sleeper.delays, start=1):
            assert 0 <= delay <= min(0.5 * 2 ** (attempt - 1), 8.0) + 0.5

    async def test_retryable_rpc_code(self, rpc, mock_http, sleeper):
        limited = _mock_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "limit exceeded"}})
        mock_http.post.side_effect = [limited, _ok("0x1")]

        assert await rpc.call("eth_blockNumber") == "0x1"
        assert len(sleeper.delays) == 1

    async def test_generic_code_with_transient_message_is_retried(self, rpc, mock_http, sleeper):
        missing = _mock_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "header not found"}})
        mock_http.post.side_effect = [missing, _ok("0x2")]

        assert await rpc.call("eth_getBlockByNumber", ["0x2", False]) == "0x2"
        assert len(sleeper.delays) == 1

    async def test_generic_code_with_other_message_fails_immediately(self, rpc, mock_http, sleeper):
        mock_http.post.return_value = _mock_response(
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}
        )

        with pytest.raises(UpstreamProtocolError) as exc_info:
            await rpc.call("eth_call", [{}])
        assert exc_info.value.kind == FailureKind.REJECTED
        assert sleeper.delays == []

    async def test_timeout_is_retried(self, rpc, mock_http, sleeper):
        mock_http.post.side_effect = [httpx.ReadTimeout("slow"), _ok("0x1")]

        assert await rpc.call("eth_blockNumber") == "0x1"

    async def test_gives_up_after_max_attempts(self, mock_http, sleeper):
        rpc = JsonRpcClient(rpc_url=RPC_URL, http_client=mock_http, max_attempts=3, sleep=sleeper)
        mock_http.post.return_value = _mock_response(status_code=503, text="unavailable")

        with pytest.raises(TransientNetworkError) as exc_info:
            await rpc.call("eth_blockNumber")
        assert exc_info.value.kind == FailureKind.HTTP_STATUS
        assert exc_info.value.status_code == 503
        assert mock_http.post.call_count == 3
        assert len(sleeper.delays) == 2

    async def test_non_retryable_rpc_error_fails_immediately(self, rpc, mock_http, sleeper):
        mock_http.post.return_value = _mock_response(
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "invalid params"}}
        )

        with pytest.raises(UpstreamProtocolError) as exc_info:
            await rpc.call("alchemy_getAssetTransfers", [{}])
        assert exc_info.value.code == -32602
        assert mock_http.post.call_count == 1
        assert sleeper.delays == []

    async def test_client_error_status_fails_immediately(self, rpc, mock_http, sleeper):
        mock_http.post.return_value = _mock_response(status_code=401, text="unauthorized")

        with pytest.raises(UpstreamProtocolError):
            await rpc.call("eth_blockNumber")
        assert mock_http.post.call_count == 1

    async def test_non_json_body(self, rpc, mock_http):
        mock_http.post.return_value = _mock_response(ValueError("not json"))

        with pytest.raises(UpstreamProtocolError) as exc_info:
            await rpc.call("eth_blockNumber")
        assert exc_info.value.kind == FailureKind.MALFORMED_RESPONSE

    async def test_missing_result(self, rpc, mock_http):
        mock_http.post.return_value = _mock_response({"jsonrpc": "2.0", "id": 1})

        with pytest.raises(UpstreamProtocolError):
            await rpc.call("eth_blockNumber")


class TestClassification:
    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert classify_http_status(status).retryable

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_rejected(self, status):
        assert classify_http_status(status) == FailureKind.REJECTED

    def test_rpc_codes(self):
        assert classify_rpc_code(-32603, {-32603}) == FailureKind.RPC_CODE
        assert classify_rpc_code(-32000, {-32603}) == FailureKind.REJECTED
        assert classify_rpc_code(None, {-32603}) == FailureKind.REJECTED

    @pytest.mark.parametrize("message", ["Rate limit exceeded", "header not found", "request timed out"])
    def test_transient_messages_on_generic_code(self, message):
        assert classify_rpc_error(-32000, message, {-32603}) == FailureKind.RPC_TRANSIENT
        assert FailureKind.RPC_TRANSIENT.retryable

    def test_retryable_code_wins_over_message(self):
        assert classify_rpc_error(-32603, "internal error", {-32603}) == FailureKind.RPC_CODE
        assert classify_rpc_error(-32602, "invalid params", {-32603}) == FailureKind.REJECTED
