from ledgersync.domain.enums.status import WalletSyncStatus
from ledgersync.domain.enums.transfer import TransferCategory, TransferDirection

__all__ = [
    "TransferCategory",
    "TransferDirection",
    "WalletSyncStatus",
]
