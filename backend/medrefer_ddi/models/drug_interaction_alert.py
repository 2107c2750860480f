"""SQLAlchemy model for persisted drug interaction alerts."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from medrefer_ddi.core.database import Base


class DrugInteractionAlertRecord(Base):
    """A per-patient drug interaction alert.

    The triggering interaction is stored as a JSON document so the alert
    keeps the exact record that was shown to the clinician, even after
    the knowledge base changes.
    """

    __tablename__ = "drug_interaction_alerts"

    patient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    # "drug_a|drug_b" with both names normalized and sorted
    drug_pair: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
    )
    severity: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    interaction: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    acknowledged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )
    acknowledged_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    __table_args__ = (
        Index("ix_drug_interaction_alerts_patient_pair", "patient_id", "drug_pair"),
    )

    def __repr__(self) -> str:
        return (
            f"<DrugInteractionAlertRecord(id={self.id}, patient_id={self.patient_id}, "
            f"drug_pair={self.drug_pair}, acknowledged={self.acknowledged})>"
        )
