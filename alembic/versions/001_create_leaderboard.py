"""Create leaderboard users and entries."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_create_leaderboard"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "leaderboard_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("x_username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("x_user_id", sa.String(length=64), nullable=True),
        sa.Column("display_name", sa.String(length=128), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("leaderboard_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.SmallInteger(), nullable=True),
        sa.Column("total_tokens", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_input_tokens", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_output_tokens", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cost", sa.Numeric(14, 6), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_entry_user_year_month"),
    )
    op.create_index(
        "uq_entry_user_year_yearly",
        "leaderboard_entries",
        ["user_id", "year"],
        unique=True,
        postgresql_where=sa.text("month IS NULL"),
    )
    op.create_index(
        "ix_entries_scope_tokens",
        "leaderboard_entries",
        ["year", "month", "total_tokens"],
    )


def downgrade() -> None:
    op.drop_index("ix_entries_scope_tokens", table_name="leaderboard_entries")
    op.drop_index("uq_entry_user_year_yearly", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")
    op.drop_table("leaderboard_users")
