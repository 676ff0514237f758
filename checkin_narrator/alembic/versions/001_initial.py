"""initial

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB(astext_type=sa.Text())
NOW = sa.text("now()")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "check_ins",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_check_ins_user_created", "check_ins", ["user_id", "created_at"])

    op.create_table(
        "tone_profiles",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("voice", sa.Text(), nullable=True),
        sa.Column("sentence_style", sa.Text(), nullable=True),
        sa.Column("emotional_range", sa.Text(), nullable=True),
        sa.Column("common_phrases", JSONB, server_default="[]", nullable=False),
        sa.Column("custom_voice", sa.Text(), nullable=True),
        sa.Column("custom_sentence_style", sa.Text(), nullable=True),
        sa.Column("custom_emotional_range", sa.Text(), nullable=True),
        sa.Column("writing_goals", JSONB, server_default="[]", nullable=False),
        sa.Column("target_audience", JSONB, server_default="[]", nullable=False),
        sa.Column("content_purpose", sa.Text(), nullable=True),
        sa.Column("tone_characteristics", JSONB, server_default="{}", nullable=False),
        sa.Column("avoid_topics", JSONB, server_default="[]", nullable=False),
        sa.Column("preferred_length", sa.String(16), nullable=True),
        sa.Column("include_emojis", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("include_hashtags", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("manually_edited", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "generated_posts",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", JSONB, server_default="{}", nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("is_latest", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("generation_type", sa.String(16), server_default="AUTO", nullable=False),
        sa.Column("model_used", sa.String(255), nullable=True),
        sa.Column("tone_profile_id", UUID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tone_profile_id"], ["tone_profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "type", "date", "version", name="uq_generated_posts_version"),
    )
    # Tối đa một bản is_latest cho mỗi (user_id, type, date).
    op.create_index(
        "uq_generated_posts_latest",
        "generated_posts",
        ["user_id", "type", "date"],
        unique=True,
        postgresql_where=sa.text("is_latest"),
    )
    op.create_index(
        "ix_generated_posts_user_generation_created",
        "generated_posts",
        ["user_id", "generation_type", "created_at"],
    )

    op.create_table(
        "platform_posts",
        sa.Column("id", UUID, nullable=False),
        sa.Column("post_id", UUID, nullable=False),
        sa.Column("platform", sa.String(16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("hashtags", JSONB, server_default="[]", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["generated_posts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_platform_posts_post_id", "platform_posts", ["post_id"])

    op.create_table(
        "generation_jobs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), server_default="PENDING", nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(64), nullable=True),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generation_jobs_status_type_date", "generation_jobs", ["status", "type", "date"])
    op.create_index(
        "uq_generation_jobs_active",
        "generation_jobs",
        ["user_id", "type", "date"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING', 'PROCESSING')"),
    )

    op.create_table(
        "generation_schedules",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("daily_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("daily_time", sa.String(5), server_default="21:00", nullable=False),
        sa.Column("weekly_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("weekly_day", sa.Integer(), server_default="0", nullable=False),
        sa.Column("weekly_time", sa.String(5), server_default="20:00", nullable=False),
        sa.Column("monthly_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("monthly_day", sa.Integer(), server_default="28", nullable=False),
        sa.Column("monthly_time", sa.String(5), server_default="20:00", nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sa.CheckConstraint("weekly_day BETWEEN 0 AND 6", name="ck_generation_schedules_weekly_day"),
        sa.CheckConstraint("monthly_day BETWEEN 1 AND 28", name="ck_generation_schedules_monthly_day"),
    )

    op.create_table(
        "platform_settings",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("x_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("linkedin_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("reddit_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "token_usage_logs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("generated_post_id", UUID, nullable=True),
        sa.Column("platform_post_id", UUID, nullable=True),
        sa.Column("agent_type", sa.String(64), nullable=False),
        sa.Column("platform", sa.String(16), nullable=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("model_used", sa.String(255), nullable=True),
        sa.Column("prompt_tokens", sa.Integer(), server_default="0", nullable=False),
        sa.Column("completion_tokens", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_tokens", sa.Integer(), server_default="0", nullable=False),
        sa.Column("estimated_cost_usd", sa.Numeric(12, 6), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["generated_post_id"], ["generated_posts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["platform_post_id"], ["platform_posts.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_token_usage_logs_user_created", "token_usage_logs", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_token_usage_logs_user_created", table_name="token_usage_logs")
    op.drop_table("token_usage_logs")
    op.drop_table("platform_settings")
    op.drop_table("generation_schedules")
    op.drop_index("uq_generation_jobs_active", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_status_type_date", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    op.drop_index("ix_platform_posts_post_id", table_name="platform_posts")
    op.drop_table("platform_posts")
    op.drop_index("ix_generated_posts_user_generation_created", table_name="generated_posts")
    op.drop_index("uq_generated_posts_latest", table_name="generated_posts")
    op.drop_table("generated_posts")
    op.drop_table("tone_profiles")
    op.drop_index("ix_check_ins_user_created", table_name="check_ins")
    op.drop_table("check_ins")
    op.drop_table("users")
