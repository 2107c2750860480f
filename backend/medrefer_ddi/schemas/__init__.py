"""Pydantic schemas for the drug interaction API."""

from medrefer_ddi.schemas.drug_interaction import (
    AcknowledgeAlertRequest,
    AlertListResponse,
    AlertOut,
    DrugInteractionOut,
    InteractionCheckResponse,
    InteractionLookupResponse,
    MedicationIn,
    MedicationListCheckRequest,
    NewMedicationCheckRequest,
    RiskAssessmentOut,
)

__all__ = [
    "AcknowledgeAlertRequest",
    "AlertListResponse",
    "AlertOut",
    "DrugInteractionOut",
    "InteractionCheckResponse",
    "InteractionLookupResponse",
    "MedicationIn",
    "MedicationListCheckRequest",
    "NewMedicationCheckRequest",
    "RiskAssessmentOut",
]
