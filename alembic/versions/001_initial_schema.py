"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create enums with conditional check (Postgres doesn't support IF NOT EXISTS for TYPE)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE targettype AS ENUM ('event', 'poll', 'spotlight');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE rsvpstatus AS ENUM ('attending', 'maybe', 'declined');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)

    # Reference enums without auto-creating them
    target_type_enum = postgresql.ENUM(
        "event", "poll", "spotlight", name="targettype", create_type=False
    )
    rsvp_status_enum = postgresql.ENUM(
        "attending", "maybe", "declined", name="rsvpstatus", create_type=False
    )

    # Identity provider mirror
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True, index=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )

    # Content
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("start_at", sa.DateTime(), nullable=True),
        sa.Column("end_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "polls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("question", sa.String(500), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "poll_options",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id",
            sa.Integer(),
            sa.ForeignKey("polls.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("text", sa.String(200), nullable=False),
        sa.Column("votes", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "spotlights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=True, server_default="open"),
        sa.Column("submitted_by", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("priority", sa.String(50), nullable=True),
    )
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("priority", sa.String(50), nullable=True),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        ),
    )

    # Engagement ledger
    op.create_table(
        "likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64), nullable=False, index=True),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("target_type", target_type_enum, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
        sa.UniqueConstraint(
            "actor_id", "target_id", "target_type", name="uq_like_actor_target"
        ),
    )
    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64), nullable=False, index=True),
        sa.Column("target_id", sa.Integer(), nullable=False, index=True),
        sa.Column("target_type", target_type_enum, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )
    op.create_table(
        "poll_votes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "poll_id",
            sa.Integer(),
            sa.ForeignKey("polls.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "option_id",
            sa.Integer(),
            sa.ForeignKey("poll_options.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("actor_id", sa.String(64), nullable=False, index=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
        sa.UniqueConstraint("poll_id", "actor_id", name="uq_poll_vote_actor"),
    )
    op.create_table(
        "rsvps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("actor_id", sa.String(64), nullable=False, index=True),
        sa.Column("status", rsvp_status_enum, nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
        sa.UniqueConstraint("event_id", "actor_id", name="uq_rsvp_event_actor"),
    )
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(64), nullable=True, index=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("target_type", sa.String(20), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.func.now(), index=True
        ),
    )

    # Digest scheduling
    op.create_table(
        "digest_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("sent_by", sa.String(64), nullable=False, server_default="system"),
        sa.Column("trigger", sa.String(20), nullable=False, server_default="scheduler"),
        sa.Column("cutoff", sa.DateTime(), nullable=True),
        sa.Column("recipient_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("content_summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("emails_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("emails_failed", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "digest_leases",
        sa.Column("name", sa.String(100), primary_key=True),
        sa.Column("holder", sa.String(64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("digest_leases")
    op.drop_table("digest_runs")
    op.drop_table("activity_log")
    op.drop_table("rsvps")
    op.drop_table("poll_votes")
    op.drop_table("comments")
    op.drop_table("likes")
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("feedback")
    op.drop_table("spotlights")
    op.drop_table("poll_options")
    op.drop_table("polls")
    op.drop_table("events")
    op.drop_table("sessions")
    op.drop_table("users")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS rsvpstatus")
    op.execute("DROP TYPE IF EXISTS targettype")
