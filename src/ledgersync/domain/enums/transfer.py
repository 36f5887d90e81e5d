from enum import Enum


class TransferDirection(str, Enum):
    """Which side of a transfer the tracked wallet is on."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


class TransferCategory(str, Enum):
    """Vendor asset-transfer categories. Only ERC20 is ingested."""

    ERC20 = "erc20"
