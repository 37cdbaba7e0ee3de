"""Initial schema for the user feed log and its enrichment collections.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Per-user feed event log
    op.create_table(
        "user_feed",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("data_type", sa.String(64), nullable=False),
        sa.Column("reason", sa.String(64), nullable=False),
        sa.Column("contract_id", sa.String(64), nullable=True),
        sa.Column("comment_id", sa.String(64), nullable=True),
        sa.Column("news_id", sa.String(64), nullable=True),
        sa.Column("creator_id", sa.String(64), nullable=True),
        sa.Column("seen_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_copied", sa.Boolean(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_feed_user_created", "user_feed", ["user_id", "created_time"])
    op.create_index(
        "idx_user_feed_user_type_created", "user_feed", ["user_id", "data_type", "created_time"]
    )

    op.create_table(
        "contracts",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("resolution_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_contracts_close_time", "contracts", ["close_time"])

    op.create_table(
        "contract_comments",
        sa.Column("comment_id", sa.String(64), nullable=False),
        sa.Column("contract_id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("comment_id"),
    )
    op.create_index("idx_contract_comments_contract", "contract_comments", ["contract_id"])

    op.create_table(
        "news",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("published_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "user_disinterests",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("contract_id", sa.String(64), nullable=False),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_user_disinterests_user_contract", "user_disinterests", ["user_id", "contract_id"]
    )

    op.create_table(
        "user_events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("contract_id", sa.String(64), nullable=True),
        sa.Column("comment_id", sa.String(64), nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_user_events_user_name_ts", "user_events", ["user_id", "name", "ts"])

    # Sponsored listings
    op.create_table(
        "market_ads",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("market_id", sa.String(64), nullable=False),
        sa.Column("creator_id", sa.String(64), nullable=False),
        sa.Column("funds", sa.Float(), nullable=False),
        sa.Column("cost_per_view", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_market_ads_market", "market_ads", ["market_id"])


def downgrade() -> None:
    op.drop_index("idx_market_ads_market", table_name="market_ads")
    op.drop_table("market_ads")

    op.drop_index("idx_user_events_user_name_ts", table_name="user_events")
    op.drop_table("user_events")

    op.drop_index("idx_user_disinterests_user_contract", table_name="user_disinterests")
    op.drop_table("user_disinterests")

    op.drop_table("news")

    op.drop_index("idx_contract_comments_contract", table_name="contract_comments")
    op.drop_table("contract_comments")

    op.drop_index("idx_contracts_close_time", table_name="contracts")
    op.drop_table("contracts")

    op.drop_index("idx_user_feed_user_type_created", table_name="user_feed")
    op.drop_index("idx_user_feed_user_created", table_name="user_feed")
    op.drop_table("user_feed")
