"""create generated_modules

Revision ID: 4f1a9c2e7b30
Revises:
Create Date: 2026-10-18 09:12:41.204518

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4f1a9c2e7b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

MODULE_STATUS_VALUES = ("pending", "ready", "failed")


def upgrade() -> None:
  """Upgrade schema."""
  module_status = postgresql.ENUM(*MODULE_STATUS_VALUES, name="module_status", create_type=False)
  module_status.create(op.get_bind(), checkfirst=True)

  op.create_table(
    "generated_modules",
    sa.Column("key", sa.CHAR(length=64), nullable=False),
    sa.Column("status", module_status, nullable=False),
    sa.Column("source_text", sa.Text(), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("key"),
  )
  # Waiters and lease takeover filter pending rows by age.
  op.create_index("ix_generated_modules_pending_updated_at", "generated_modules", ["updated_at"], postgresql_where=sa.text("status = 'pending'"))


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_generated_modules_pending_updated_at", table_name="generated_modules")
  op.drop_table("generated_modules")
  postgresql.ENUM(name="module_status").drop(op.get_bind(), checkfirst=True)
