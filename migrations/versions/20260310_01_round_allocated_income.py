"""add allocated_income_cents to dispatch_rounds

Revision ID: 20260310_01
Revises: 5d1f0c2a9b7e
Create Date: 2026-03-10 09:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260310_01"
down_revision = "5d1f0c2a9b7e"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("dispatch_rounds", sa.Column("allocated_income_cents", sa.Integer(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("dispatch_rounds") as batch_op:
        batch_op.drop_column("allocated_income_cents")
