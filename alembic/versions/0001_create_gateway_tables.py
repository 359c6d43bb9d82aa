"""Create channel_config, api_token and settings tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_gateway_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "channel_config",
        sa.Column("key", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("value", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "api_token",
        sa.Column("key", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("usage", sa.Float(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.execute("INSERT INTO settings (key, value) VALUES ('db_version', '1')")


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("api_token")
    op.drop_table("channel_config")
