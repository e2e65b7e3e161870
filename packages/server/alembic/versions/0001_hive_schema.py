"""Hive schema: people, workspaces, features, tickets, bounties and chat.

Revision ID: 0001_hive_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_hive_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _authors() -> list[sa.Column]:
    return [
        sa.Column("created_by", sa.Text(), nullable=False, server_default=""),
        sa.Column("updated_by", sa.Text(), nullable=False, server_default=""),
    ]


def _index(table: str, *columns: str, unique: bool = False) -> None:
    op.create_index(f"ix_{table}_{'_'.join(columns)}", table, list(columns), unique=unique)


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. People and workspaces
    # -----------------------------------------------------------------------

    op.create_table(
        "people",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pubkey", sa.Text(), nullable=False),
        sa.Column("alias", sa.Text(), nullable=False, server_default=""),
        sa.Column("unique_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("img", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
    )
    _index("people", "pubkey", unique=True)

    op.create_table(
        "workspaces",
        sa.Column("uuid", sa.Text(), primary_key=True),
        sa.Column("owner_pubkey", sa.Text(), nullable=False),
        sa.Column("name", sa.String(20), nullable=False),
        sa.Column("description", sa.String(120), nullable=False, server_default=""),
        sa.Column("github", sa.Text(), nullable=False, server_default=""),
        sa.Column("website", sa.Text(), nullable=False, server_default=""),
        sa.Column("img", sa.Text(), nullable=False, server_default=""),
        sa.Column("mission", sa.Text(), nullable=False, server_default=""),
        sa.Column("tactics", sa.Text(), nullable=False, server_default=""),
        sa.Column("schematic_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("budget", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    _index("workspaces", "uuid")
    _index("workspaces", "owner_pubkey")
    _index("workspaces", "name")

    op.create_table(
        "workspace_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workspace_uuid", sa.Text(), sa.ForeignKey("workspaces.uuid"), nullable=False),
        sa.Column("pubkey", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("workspace_uuid", "pubkey"),
    )
    _index("workspace_users", "workspace_uuid")
    _index("workspace_users", "pubkey")

    op.create_table(
        "workspace_user_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workspace_uuid", sa.Text(), sa.ForeignKey("workspaces.uuid"), nullable=False),
        sa.Column("pubkey", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    _index("workspace_user_roles", "workspace_uuid")
    _index("workspace_user_roles", "pubkey")

    op.create_table(
        "workspace_repositories",
        sa.Column("uuid", sa.Text(), primary_key=True),
        sa.Column("workspace_uuid", sa.Text(), sa.ForeignKey("workspaces.uuid"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        *_authors(),
        *_timestamps(),
    )
    _index("workspace_repositories", "uuid")
    _index("workspace_repositories", "workspace_uuid")

    op.create_table(
        "payment_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workspace_uuid", sa.Text(), nullable=False),
        sa.Column("bounty_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("sender_pubkey", sa.Text(), nullable=False, server_default=""),
        sa.Column("receiver_pubkey", sa.Text(), nullable=False, server_default=""),
        sa.Column("payment_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="COMPLETE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    _index("payment_history", "workspace_uuid")
    _index("payment_history", "bounty_id")
    _index("payment_history", "payment_type")

    # -----------------------------------------------------------------------
    # 2. Features, phases, stories and tickets
    # -----------------------------------------------------------------------

    op.create_table(
        "workspace_features",
        sa.Column("uuid", sa.Text(), primary_key=True),
        sa.Column("workspace_uuid", sa.Text(), sa.ForeignKey("workspaces.uuid"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column("url", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("brief", sa.Text(), nullable=False, server_default=""),
        sa.Column("requirements", sa.Text(), nullable=False, server_default=""),
        sa.Column("architecture", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_authors(),
        *_timestamps(),
    )
    _index("workspace_features", "uuid")
    _index("workspace_features", "workspace_uuid")

    for table, extra in (
        (
            "feature_phases",
            [
                sa.Column("name", sa.Text(), nullable=False, server_default=""),
                sa.Column("phase_purpose", sa.Text(), nullable=False, server_default=""),
                sa.Column("phase_outcome", sa.Text(), nullable=False, server_default=""),
                sa.Column("phase_scope", sa.Text(), nullable=False, server_default=""),
            ],
        ),
        (
            "feature_stories",
            [sa.Column("description", sa.Text(), nullable=False, server_default="")],
        ),
    ):
        op.create_table(
            table,
            sa.Column("uuid", sa.Text(), primary_key=True),
            sa.Column(
                "feature_uuid", sa.Text(), sa.ForeignKey("workspace_features.uuid"), nullable=False
            ),
            *extra,
            sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
            *_authors(),
            *_timestamps(),
        )
        _index(table, "uuid")
        _index(table, "feature_uuid")

    # Tickets reference features and phases by value only
    op.create_table(
        "tickets",
        sa.Column("uuid", sa.Text(), primary_key=True),
        sa.Column("feature_uuid", sa.Text(), nullable=False, server_default=""),
        sa.Column("phase_uuid", sa.Text(), nullable=False, server_default=""),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dependency", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("ticket_group", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("author", sa.Text(), nullable=True),
        sa.Column("author_id", sa.Text(), nullable=True),
        *_timestamps(),
    )
    _index("tickets", "uuid")
    _index("tickets", "feature_uuid")
    _index("tickets", "phase_uuid")
    _index("tickets", "ticket_group")

    # -----------------------------------------------------------------------
    # 3. Bounties
    # -----------------------------------------------------------------------

    op.create_table(
        "bounties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("price", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("type", sa.Text(), nullable=False, server_default=""),
        sa.Column("wanted_type", sa.Text(), nullable=False, server_default=""),
        sa.Column("assignee", sa.Text(), nullable=False, server_default=""),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("show", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("coding_languages", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("workspace_uuid", sa.Text(), nullable=True),
        sa.Column("feature_uuid", sa.Text(), nullable=True),
        sa.Column("phase_uuid", sa.Text(), nullable=True),
        sa.Column("phase_priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
    )
    for column in ("owner_id", "assignee", "workspace_uuid", "feature_uuid", "phase_uuid", "created"):
        _index("bounties", column)

    # -----------------------------------------------------------------------
    # 4. Hive chat
    # -----------------------------------------------------------------------

    op.create_table(
        "chats",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("workspace_id", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_timestamps(),
    )
    _index("chats", "workspace_id")

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("chat_id", sa.Text(), sa.ForeignKey("chats.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    _index("chat_messages", "chat_id")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Reverse dependency order
    op.drop_table("chat_messages")
    op.drop_table("chats")
    op.drop_table("bounties")
    op.drop_table("tickets")
    op.drop_table("feature_stories")
    op.drop_table("feature_phases")
    op.drop_table("workspace_features")
    op.drop_table("payment_history")
    op.drop_table("workspace_repositories")
    op.drop_table("workspace_user_roles")
    op.drop_table("workspace_users")
    op.drop_table("workspaces")
    op.drop_table("people")
