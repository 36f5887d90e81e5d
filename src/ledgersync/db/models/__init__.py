from ledgersync.db.models.block import Block
from ledgersync.db.models.embedding import TransferEmbedding
from ledgersync.db.models.price_snapshot import PriceSnapshot
from ledgersync.db.models.quarantined_transfer import QuarantinedTransfer
from ledgersync.db.models.transfer import Transfer
from ledgersync.db.models.wallet import Wallet

__all__ = [
    "Block",
    "PriceSnapshot",
    "QuarantinedTransfer",
    "Transfer",
    "TransferEmbedding",
    "Wallet",
]
