"""Create drug_interaction_alerts table.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "drug_interaction_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("patient_id", sa.String(255), nullable=False),
        sa.Column("drug_pair", sa.String(512), nullable=False),
        sa.Column("severity", sa.String(32), nullable=False),
        sa.Column("interaction", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("acknowledged_by", sa.String(255), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_drug_interaction_alerts_patient_id", "drug_interaction_alerts", ["patient_id"]
    )
    op.create_index(
        "ix_drug_interaction_alerts_acknowledged", "drug_interaction_alerts", ["acknowledged"]
    )
    # Open-alert lookup by patient and drug pair
    op.create_index(
        "ix_drug_interaction_alerts_patient_pair",
        "drug_interaction_alerts",
        ["patient_id", "drug_pair"],
    )


def downgrade() -> None:
    op.drop_index("ix_drug_interaction_alerts_patient_pair", table_name="drug_interaction_alerts")
    op.drop_index("ix_drug_interaction_alerts_acknowledged", table_name="drug_interaction_alerts")
    op.drop_index("ix_drug_interaction_alerts_patient_id", table_name="drug_interaction_alerts")
    op.drop_table("drug_interaction_alerts")
