"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("preferences", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "watch_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("tmdb_id", sa.Integer(), nullable=False),
        sa.Column("media_type", sa.String(length=10), nullable=False),
        sa.Column(
            "sub_type",
            sa.String(length=16),
            nullable=False,
            server_default="live_action",
        ),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("poster_path", sa.String(length=512), nullable=True),
        sa.Column("origin_country", sa.String(length=8), nullable=True),
        sa.Column("release_date", sa.String(length=32), nullable=True),
        sa.Column("genres", sa.JSON(), nullable=True),
        sa.Column("rating", sa.Integer(), server_default="0"),
        sa.Column("user_notes", sa.Text(), server_default=""),
        sa.Column("is_favorite", sa.Boolean(), server_default=sa.false()),
        sa.Column("watch_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("watch_time_minutes", sa.Integer(), server_default="0"),
        sa.Column("runtime", sa.Integer(), nullable=True),
        sa.Column("seasons", sa.Integer(), nullable=True),
        sa.Column("episodes", sa.Integer(), nullable=True),
        sa.Column("episode_duration", sa.Integer(), nullable=True),
        sa.Column("watched_seasons", sa.JSON(), nullable=True),
        sa.Column("watched_episodes", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")
        ),
        sa.UniqueConstraint(
            "user_id", "tmdb_id", "media_type", name="uq_watch_item_user_title"
        ),
    )
    op.create_index("ix_watch_items_user_id", "watch_items", ["user_id"])


def downgrade():
    op.drop_index("ix_watch_items_user_id", table_name="watch_items")
    op.drop_table("watch_items")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
