"""Request and response schemas for the drug interaction API."""

from datetime import date, datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    DrugInteractionAlert,
    InteractionSeverity,
    InteractionType,
    Medication,
)
from medrefer_ddi.services.risk_assessment import RiskAssessment, RiskLevel


class MedicationIn(BaseModel):
    """A medication supplied by the caller."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Medication identifier")
    name: str = Field(..., min_length=1, description="Drug name (generic or brand)")
    dosage: str = Field("", description="Dose, e.g. '5 mg'")
    frequency: str = Field("", description="Dosing frequency")
    start_date: date | None = Field(None, description="First day of therapy")
    end_date: date | None = Field(None, description="Last day of therapy")
    prescribed_by: str | None = Field(None, description="Prescribing clinician")

    def to_medication(self, patient_id: str) -> Medication:
        return Medication(
            id=self.id,
            patient_id=patient_id,
            name=self.name,
            dosage=self.dosage,
            frequency=self.frequency,
            start_date=self.start_date,
            end_date=self.end_date,
            prescribed_by=self.prescribed_by,
        )


class NewMedicationCheckRequest(BaseModel):
    """Check a medication before adding it to the patient's list."""

    medication: MedicationIn = Field(..., description="Medication about to be prescribed")
    current_medications: list[MedicationIn] | None = Field(
        None,
        description="Current medications; read from the patient record when omitted",
    )
    raise_alerts: bool = Field(True, description="Raise alerts for qualifying interactions")


class MedicationListCheckRequest(BaseModel):
    """Review a full medication list."""

    medications: list[MedicationIn] = Field(..., description="Medications to check pairwise")
    raise_alerts: bool = Field(True, description="Raise alerts for qualifying interactions")


class AcknowledgeAlertRequest(BaseModel):
    """Acknowledge a drug interaction alert."""

    acknowledged_by: str = Field(..., min_length=1, description="Clinician acknowledging the alert")
    notes: str | None = Field(None, description="Optional clinical notes")


class DrugInteractionOut(BaseModel):
    """A detected drug interaction."""

    drug_a: str
    drug_b: str
    severity: InteractionSeverity
    interaction_type: InteractionType
    description: str
    mechanism: str
    symptoms: list[str]
    recommendations: list[str]
    confidence_score: float
    references: list[str]

    @classmethod
    def from_interaction(cls, interaction: DrugInteraction) -> "DrugInteractionOut":
        return cls(**interaction.to_dict())


class InteractionCheckResponse(BaseModel):
    """Interactions found by a check, most severe first."""

    patient_id: str
    total_interactions: int
    interactions: list[DrugInteractionOut]


class InteractionLookupResponse(BaseModel):
    """Result of a single pair lookup."""

    drug_a: str
    drug_b: str
    found: bool
    interaction: DrugInteractionOut | None = None


class AlertOut(BaseModel):
    """A drug interaction alert."""

    id: str
    patient_id: str
    interaction: DrugInteractionOut
    created_at: datetime
    is_active: bool
    acknowledged: bool
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    notes: str | None = None

    @classmethod
    def from_alert(cls, alert: DrugInteractionAlert) -> "AlertOut":
        return cls(
            id=alert.id,
            patient_id=alert.patient_id,
            interaction=DrugInteractionOut.from_interaction(alert.interaction),
            created_at=alert.created_at,
            is_active=alert.is_active,
            acknowledged=alert.acknowledged,
            acknowledged_by=alert.acknowledged_by,
            acknowledged_at=alert.acknowledged_at,
            notes=alert.notes,
        )


class AlertListResponse(BaseModel):
    """All alerts for a patient, most recent first."""

    patient_id: str
    total: int
    unacknowledged: int
    alerts: list[AlertOut]


class RiskAssessmentOut(BaseModel):
    """Aggregate risk for a patient's medication regimen."""

    patient_id: str
    score: float = Field(..., ge=0.0, le=1.0)
    level: RiskLevel
    message: str
    highest_severity: InteractionSeverity | None
    interaction_count: int
    by_severity: dict[str, int]
    pending_alerts: int
    recommendations: list[str]

    @classmethod
    def from_assessment(cls, patient_id: str, assessment: RiskAssessment) -> "RiskAssessmentOut":
        return cls(patient_id=patient_id, **assessment.to_dict())
