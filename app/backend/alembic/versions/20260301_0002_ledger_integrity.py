"""ledger integrity: role scope, request claims and pending delete requests

Revision ID: 20260301_0002
Revises: 20260301_0001
Create Date: 2026-03-01
"""

from __future__ import annotations

from alembic import op


# revision identifiers, used by Alembic.
revision = "20260301_0002"
down_revision = "20260301_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("role_assignments") as batch:
        batch.create_check_constraint(
            "ck_role_assignments_scope_matches_role",
            "((role = 'super_admin' AND client_id IS NULL) "
            "OR (role <> 'super_admin' AND client_id IS NOT NULL))",
        )
        batch.create_unique_constraint(
            "uq_role_assignments_user_role_client",
            ["user_id", "role", "client_id"],
        )

    op.execute(
        """
        CREATE UNIQUE INDEX uq_role_assignments_user_role_global
        ON role_assignments (user_id, role)
        WHERE client_id IS NULL
        """
    )

    # One live "New Request" claim per client and request id.
    op.execute(
        """
        CREATE UNIQUE INDEX uq_allocations_new_request_claim
        ON allocations (client_id, request_id)
        WHERE claims_request_id AND NOT is_deleted
        """
    )

    op.execute(
        """
        CREATE UNIQUE INDEX uq_delete_requests_pending
        ON allocation_delete_requests (allocation_id)
        WHERE status = 'pending'
        """
    )


def downgrade() -> None:
    op.drop_index("uq_delete_requests_pending", table_name="allocation_delete_requests")
    op.drop_index("uq_allocations_new_request_claim", table_name="allocations")
    op.drop_index("uq_role_assignments_user_role_global", table_name="role_assignments")

    with op.batch_alter_table("role_assignments") as batch:
        batch.drop_constraint("uq_role_assignments_user_role_client", type_="unique")
        batch.drop_constraint("ck_role_assignments_scope_matches_role", type_="check")
