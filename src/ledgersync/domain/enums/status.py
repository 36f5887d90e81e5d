from enum import Enum


class WalletSyncStatus(str, Enum):
    """Wallet sync state."""

    IDLE = "IDLE"
    SYNCING = "SYNCING"
    SYNCED = "SYNCED"
    ERROR = "ERROR"
