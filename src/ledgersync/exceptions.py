"""Exception hierarchy for ingestion and enrichment."""

from enum import Enum


class FailureKind(str, Enum):
    """Transport-level failure categories. Retry decisions dispatch on these."""

    HTTP_STATUS = "http_status"  # retryable HTTP status (408/429/5xx)
    RPC_CODE = "rpc_code"  # retryable JSON-RPC error code
    RPC_TRANSIENT = "rpc_transient"  # RPC error whose message names a known transient condition
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    MALFORMED_RESPONSE = "malformed_response"
    REJECTED = "rejected"  # well-formed but refused by the upstream

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset({
    FailureKind.HTTP_STATUS,
    FailureKind.RPC_CODE,
    FailureKind.RPC_TRANSIENT,
    FailureKind.TIMEOUT,
    FailureKind.CONNECTION,
})


class LedgerSyncError(Exception):
    """Base class for all ledgersync errors."""


class ConfigurationError(LedgerSyncError):
    """A required endpoint or credential is missing."""


class ExternalServiceError(LedgerSyncError):
    """A remote service (ledger RPC, price API, embedding API) failed."""


class TransientNetworkError(ExternalServiceError):
    def __init__(self, message: str, kind: FailureKind, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class UpstreamProtocolError(ExternalServiceError):
    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.REJECTED,
        code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code


UpstreamError = UpstreamProtocolError


class NormalizationError(LedgerSyncError):
    """A vendor transfer record could not be converted into a Transfer."""

    def __init__(self, message: str, payload: dict | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class PersistenceError(LedgerSyncError):
    """A batch write to the store failed."""
