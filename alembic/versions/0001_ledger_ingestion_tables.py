"""ledger ingestion tables

Revision ID: 0001_ledger_ingestion
Revises:
Create Date: 2026-10-18 09:12:40.118422

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_ingestion"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "wallets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("sync_status", sa.String(20), nullable=False, server_default="IDLE"),
        sa.Column("last_synced_block", sa.BigInteger(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_wallets")),
        sa.UniqueConstraint("chain", "address", name="uq_wallets_chain_address"),
    )
    op.create_index(op.f("ix_wallets_address"), "wallets", ["address"])
    op.create_index("ix_wallets_chain_last_synced_at", "wallets", ["chain", "last_synced_at"])

    op.create_table(
        "blocks",
        sa.Column("number", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("hash", sa.String(100), nullable=False),
        sa.Column("parent_hash", sa.String(100), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("number", name=op.f("pk_blocks")),
        sa.UniqueConstraint("hash", name=op.f("uq_blocks_hash")),
    )

    op.create_table(
        "transfers",
        sa.Column("id", sa.String(200), nullable=False),
        sa.Column("tx_hash", sa.String(100), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token", sa.String(50), nullable=False),
        sa.Column("symbol", sa.String(100), nullable=True),
        sa.Column("decimals", sa.Integer(), nullable=True),
        sa.Column("from_addr", sa.String(50), nullable=False),
        sa.Column("to_addr", sa.String(50), nullable=False),
        sa.Column("amount_raw", sa.Numeric(78, 0), nullable=False),
        sa.Column("amount_dec", sa.Numeric(78, 18), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("stale", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_transfers")),
    )
    op.create_index("ix_transfers_chain_timestamp", "transfers", ["chain", "timestamp"])
    op.create_index(op.f("ix_transfers_block_number"), "transfers", ["block_number"])
    op.create_index(op.f("ix_transfers_token"), "transfers", ["token"])
    op.create_index(op.f("ix_transfers_from_addr"), "transfers", ["from_addr"])
    op.create_index(op.f("ix_transfers_to_addr"), "transfers", ["to_addr"])

    op.create_table(
        "prices",
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("token", sa.String(50), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("usd", sa.Numeric(38, 10), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("chain", "token", "ts", name=op.f("pk_prices")),
    )

    op.create_table(
        "tx_embeddings",
        sa.Column("id", sa.String(200), nullable=False),
        sa.Column("embedding", Vector(768), nullable=False),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["id"], ["transfers.id"], name=op.f("fk_tx_embeddings_id_transfers"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tx_embeddings")),
    )

    op.create_table(
        "quarantined_transfers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("wallet_id", sa.Uuid(), nullable=True),
        sa.Column("chain", sa.String(20), nullable=False),
        sa.Column("tx_hash", sa.String(100), nullable=True),
        sa.Column("unique_id", sa.String(200), nullable=True),
        sa.Column("fingerprint", sa.String(200), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["wallet_id"], ["wallets.id"], name=op.f("fk_quarantined_transfers_wallet_id_wallets"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_quarantined_transfers")),
        sa.UniqueConstraint("wallet_id", "fingerprint", name="uq_quarantined_transfers_wallet_fingerprint"),
    )
    op.create_index(
        "ix_quarantined_transfers_unresolved", "quarantined_transfers", ["chain", "resolved"]
    )


def downgrade() -> None:
    op.drop_index("ix_quarantined_transfers_unresolved", table_name="quarantined_transfers")
    op.drop_table("quarantined_transfers")
    op.drop_table("tx_embeddings")
    op.drop_table("prices")
    op.drop_index(op.f("ix_transfers_to_addr"), table_name="transfers")
    op.drop_index(op.f("ix_transfers_from_addr"), table_name="transfers")
    op.drop_index(op.f("ix_transfers_token"), table_name="transfers")
    op.drop_index(op.f("ix_transfers_block_number"), table_name="transfers")
    op.drop_index("ix_transfers_chain_timestamp", table_name="transfers")
    op.drop_table("transfers")
    op.drop_table("blocks")
    op.drop_index("ix_wallets_chain_last_synced_at", table_name="wallets")
    op.drop_index(op.f("ix_wallets_address"), table_name="wallets")
    op.drop_table("wallets")
