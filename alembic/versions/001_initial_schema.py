"""Initial schema: audit trail and signing status tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _row_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "audit_log",
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("signing_session_id", sa.String(100)),
        sa.Column("document_id", sa.String(100)),
        sa.Column("actor", sa.String(100), comment="'provider', 'system' or a signer email"),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text())),
        *_row_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_log"),
    )
    op.create_index("ix_audit_log_event_type", "audit_log", ["event_type"])
    op.create_index("ix_audit_log_signing_session_id", "audit_log", ["signing_session_id"])
    op.create_index("ix_audit_log_document_id", "audit_log", ["document_id"])

    op.create_table(
        "signing_sessions",
        sa.Column("provider_session_id", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("signing_url", sa.String(1000)),
        sa.Column("signer_email", sa.String(255)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("expired_at", sa.DateTime(timezone=True)),
        *_row_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_signing_sessions"),
    )
    op.create_index(
        "ix_signing_sessions_provider_session_id", "signing_sessions", ["provider_session_id"], unique=True
    )

    op.create_table(
        "signing_documents",
        sa.Column("provider_document_id", sa.String(100), nullable=False),
        sa.Column("provider_session_id", sa.String(100), comment="Set once the document joins a session"),
        sa.Column("kind", sa.String(20), comment="cancellation | application"),
        sa.Column("title", sa.String(255)),
        sa.Column("sequence_order", sa.Integer(), comment="Position in the signing session"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("signer_email", sa.String(255)),
        sa.Column("signed_at", sa.DateTime(timezone=True)),
        sa.Column("declined_at", sa.DateTime(timezone=True)),
        *_row_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_signing_documents"),
    )
    op.create_index(
        "ix_signing_documents_provider_document_id", "signing_documents", ["provider_document_id"], unique=True
    )
    op.create_index("ix_signing_documents_provider_session_id", "signing_documents", ["provider_session_id"])


def downgrade() -> None:
    op.drop_table("signing_documents")
    op.drop_table("signing_sessions")
    op.drop_table("audit_log")
