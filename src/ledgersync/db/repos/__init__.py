from ledgersync.db.repos.block_repo import BlockRepo
from ledgersync.db.repos.embedding_repo import EmbeddingRepo
from ledgersync.db.repos.price_repo import PriceRepo
from ledgersync.db.repos.quarantine_repo import QuarantineRepo
from ledgersync.db.repos.transfer_repo import TransferRepo
from ledgersync.db.repos.wallet_repo import WalletRepo

__all__ = ["BlockRepo", "EmbeddingRepo", "PriceRepo", "QuarantineRepo", "TransferRepo", "WalletRepo"]
