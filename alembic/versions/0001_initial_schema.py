"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 12:00:00.000000

Hey future me - the whole schema in one go:
- snapshot_chunks / snapshot_pointers: chunked, generation-versioned album snapshot
- spotify_credentials: the single stored refresh token (id='default')
- listening_history: now-playing observations keyed by millisecond timestamp
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "snapshot_chunks",
        sa.Column("namespace", sa.String(length=64), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False),
        sa.Column("chunk_key", sa.String(length=16), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("namespace", "generation", "chunk_key"),
    )
    op.create_table(
        "snapshot_pointers",
        sa.Column("namespace", sa.String(length=64), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("namespace"),
    )
    op.create_table(
        "spotify_credentials",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "listening_history",
        sa.Column("timestamp", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("artist", sa.Text(), nullable=False),
        sa.Column("album", sa.Text(), nullable=False),
        sa.Column("cover", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("uri", sa.String(length=128), nullable=False),
        sa.Column("genres", sa.JSON(), server_default="[]", nullable=False),
        sa.PrimaryKeyConstraint("timestamp"),
    )
    op.create_index(
        "ix_listening_history_uri", "listening_history", ["uri"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_listening_history_uri", table_name="listening_history")
    op.drop_table("listening_history")
    op.drop_table("spotify_credentials")
    op.drop_table("snapshot_pointers")
    op.drop_table("snapshot_chunks")
