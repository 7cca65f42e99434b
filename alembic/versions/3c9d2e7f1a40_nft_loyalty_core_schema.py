"""nft_loyalty_core_schema

Revision ID: 3c9d2e7f1a40
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "3c9d2e7f1a40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("eth_wallet_address", sa.String(64), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("eth_wallet_address", name="uq_users_eth_wallet_address"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "collections",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("chain_type", sa.String(16), nullable=False),
        sa.Column("chain_id", sa.Integer(), nullable=False),
        sa.Column("contract_address", sa.String(128), nullable=False),
        sa.Column("standard", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "chain_type IN ('ethereum','filecoin','fuel')",
            name="ck_collections_chain_type",
        ),
        sa.CheckConstraint("standard IN ('erc721','erc1155')", name="ck_collections_standard"),
        sa.UniqueConstraint(
            "chain_type",
            "chain_id",
            "contract_address",
            name="uq_collections_contract",
        ),
    )
    op.create_index("idx_collections_owner", "collections", ["owner_id"])

    op.create_table(
        "items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "collection_id",
            sa.BigInteger(),
            sa.ForeignKey("collections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_uri", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("collection_id", "token_id", name="uq_items_collection_token"),
    )

    op.create_table(
        "nfts",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "item_id",
            sa.BigInteger(),
            sa.ForeignKey("items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_nfts_amount_non_negative"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_nfts_user_item"),
    )
    op.create_index("idx_nfts_item", "nfts", ["item_id"])

    op.create_table(
        "loyalties",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "type IN ('ONE_FIXED','FIXED','ONE_VARIABLE','VARIABLE',"
            "'ADMIN_ADD','ADMIN_SUBTRACT','REFERRAL','REDEEM')",
            name="ck_loyalties_type",
        ),
        sa.UniqueConstraint("owner_id", "code", name="uq_loyalties_owner_code"),
    )

    op.create_table(
        "loyalty_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("points", sa.Numeric(12, 2), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(8), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('success','failed')", name="ck_loyalty_transactions_status"),
    )
    op.create_index(
        "idx_loyalty_tx_user_owner_created",
        "loyalty_transactions",
        ["user_id", "owner_id", "created_at"],
    )
    op.create_index(
        "idx_loyalty_tx_user_owner_code",
        "loyalty_transactions",
        ["user_id", "owner_id", "code"],
    )
    op.create_index(
        "idx_loyalty_tx_owner_created",
        "loyalty_transactions",
        ["owner_id", "created_at"],
    )

    op.create_table(
        "user_loyalty_totals",
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("owner_id", sa.BigInteger(), primary_key=True),
        sa.Column("total_points", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "streaks",
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("owner_id", sa.BigInteger(), primary_key=True),
        sa.Column("streak_count", sa.Integer(), nullable=False),
        sa.Column("last_check_in", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("streak_count >= 1", name="ck_streaks_count_positive"),
    )


def downgrade() -> None:
    op.drop_table("streaks")
    op.drop_table("user_loyalty_totals")
    op.drop_index("idx_loyalty_tx_owner_created", table_name="loyalty_transactions")
    op.drop_index("idx_loyalty_tx_user_owner_code", table_name="loyalty_transactions")
    op.drop_index("idx_loyalty_tx_user_owner_created", table_name="loyalty_transactions")
    op.drop_table("loyalty_transactions")
    op.drop_table("loyalties")
    op.drop_index("idx_nfts_item", table_name="nfts")
    op.drop_table("nfts")
    op.drop_table("items")
    op.drop_index("idx_collections_owner", table_name="collections")
    op.drop_table("collections")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
