"""allocation serials: one sr_no per resource and day

Revision ID: 20260315_0003
Revises: 20260301_0002
Create Date: 2026-03-15
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "20260315_0003"
down_revision = "20260301_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_allocations_resource_date_sr_no",
        "allocations",
        ["resource_id", "allocation_date", "sr_no"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_allocations_resource_date_sr_no", table_name="allocations")
