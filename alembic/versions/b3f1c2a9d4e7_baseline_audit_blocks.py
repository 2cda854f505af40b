"""Baseline: audit_blocks hash chain

Revision ID: b3f1c2a9d4e7
Revises:
Create Date: 2026-10-19 00:00:00.000000

Design notes:
  - audit_blocks is append-only (no UPDATE / DELETE permitted by policy)
  - digest is SHA-256 over the canonical JSON of: timestamp, actor, action,
    module, description, previous_digest (see barangay/app/db/ledger_hashing.py)
  - timestamp stored as TEXT so the hashed string is stored verbatim
  - sequence breaks ties between equal timestamps in causal ordering
  - unique previous_digest forbids two blocks claiming the same predecessor
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "b3f1c2a9d4e7"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the audit_blocks table."""

    # ------------------------------------------------------------------ #
    # WARNING: audit_blocks is append-only by policy.                     #
    # Any application-layer UPDATE or DELETE on this table is a violation.#
    # ------------------------------------------------------------------ #

    op.create_table(
        "audit_blocks",
        sa.Column("sequence", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("block_id", sa.Text, nullable=False, unique=True),
        sa.Column("timestamp", sa.Text, nullable=False),
        sa.Column("actor", sa.Text, nullable=False),
        sa.Column("action", sa.Text, nullable=False),
        sa.Column("module", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("previous_digest", sa.Text, nullable=False),
        sa.Column("digest", sa.Text, nullable=False),
        sa.Column("created_at_utc", sa.Text, nullable=False),
    )
    op.create_index(
        "idx_audit_blocks_digest", "audit_blocks", ["digest"], unique=True
    )
    op.create_index(
        "idx_audit_blocks_previous_digest",
        "audit_blocks",
        ["previous_digest"],
        unique=True,
    )
    op.create_index(
        "idx_audit_blocks_order", "audit_blocks", ["timestamp", "sequence"]
    )
    op.create_index("idx_audit_blocks_module", "audit_blocks", ["module", "action"])


def downgrade() -> None:
    """Drop the audit_blocks table."""
    op.drop_index("idx_audit_blocks_module", table_name="audit_blocks")
    op.drop_index("idx_audit_blocks_order", table_name="audit_blocks")
    op.drop_index("idx_audit_blocks_previous_digest", table_name="audit_blocks")
    op.drop_index("idx_audit_blocks_digest", table_name="audit_blocks")
    op.drop_table("audit_blocks")
