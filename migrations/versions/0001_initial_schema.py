"""Initial schema: events, domains, trend_scores, ai_insights, api_usage

Revision ID: a1c4e7f20001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Unique keys carry the pipeline's idempotency: events on unique_id,
trend_scores and ai_insights on domain_name, domains on name, and
api_usage on (service, usage_date).
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "a1c4e7f20001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("unique_id", sa.String(255), nullable=False),
        sa.Column("registry_event_id", sa.BigInteger(), nullable=True),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("domain_name", sa.String(255), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("tx_hash", sa.String(130), nullable=True),
        sa.Column("network_id", sa.String(100), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("unique_id", name="uq_events_unique_id"),
    )
    op.create_index("ix_events_domain_name", "events", ["domain_name"])
    op.create_index("ix_events_observed_at", "events", ["observed_at"])

    op.create_table(
        "domains",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("token_id", sa.String(100), nullable=True),
        sa.Column("owner", sa.String(255), nullable=True),
        sa.Column("claim_status", sa.String(20), nullable=False, server_default="UNCLAIMED"),
        sa.Column("network_id", sa.String(100), nullable=False, server_default="unknown"),
        sa.Column("token_address", sa.String(100), nullable=True),
        sa.Column("minted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name", name="uq_domains_name"),
    )
    op.create_index("ix_domains_owner", "domains", ["owner"])

    op.create_table(
        "trend_scores",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("domain_name", sa.String(255), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("search_volume", sa.Float(), nullable=False),
        sa.Column("trend_direction", sa.Float(), nullable=False),
        sa.Column("on_chain_activity", sa.Float(), nullable=False),
        sa.Column("rarity", sa.Float(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("data_points", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.5"),
        sa.UniqueConstraint("domain_name", name="uq_trend_scores_domain_name"),
    )
    op.create_index("ix_trend_scores_score", "trend_scores", ["score"])
    op.create_index("ix_trend_scores_last_updated", "trend_scores", ["last_updated"])

    op.create_table(
        "ai_insights",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("domain_name", sa.String(255), nullable=False),
        sa.Column("trend_score", sa.Float(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("sentiment", sa.String(20), nullable=False, server_default="neutral"),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("key_highlights", sa.JSON(), nullable=False),
        sa.Column("recommendations", sa.JSON(), nullable=False),
        sa.Column("risk_factors", sa.JSON(), nullable=False),
        sa.Column("data_points_used", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("domain_name", name="uq_ai_insights_domain_name"),
    )

    op.create_table(
        "api_usage",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("service", sa.String(100), nullable=False),
        sa.Column("usage_date", sa.Date(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("service", "usage_date", name="uq_api_usage_service_date"),
    )


def downgrade() -> None:
    op.drop_table("api_usage")
    op.drop_table("ai_insights")
    op.drop_index("ix_trend_scores_last_updated", table_name="trend_scores")
    op.drop_index("ix_trend_scores_score", table_name="trend_scores")
    op.drop_table("trend_scores")
    op.drop_index("ix_domains_owner", table_name="domains")
    op.drop_table("domains")
    op.drop_index("ix_events_observed_at", table_name="events")
    op.drop_index("ix_events_domain_name", table_name="events")
    op.drop_table("events")
