"""Drug interaction check API endpoints."""

import logging

from fastapi import APIRouter, Query

from medrefer_ddi.api.dependencies import InteractionService, unwrap_result
from medrefer_ddi.schemas import (
    DrugInteractionOut,
    InteractionCheckResponse,
    InteractionLookupResponse,
    MedicationListCheckRequest,
    NewMedicationCheckRequest,
    RiskAssessmentOut,
)
from medrefer_ddi.services.interaction_checker import sort_by_severity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Drug Interactions"])


def _check_response(patient_id: str, interactions: list) -> InteractionCheckResponse:
    ordered = sort_by_severity(interactions)
    return InteractionCheckResponse(
        patient_id=patient_id,
        total_interactions=len(ordered),
        interactions=[DrugInteractionOut.from_interaction(i) for i in ordered],
    )


@router.post(
    "/patients/{patient_id}/interactions/check",
    response_model=InteractionCheckResponse,
    summary="Check a new medication",
    description="Check a medication against the patient's current medications before prescribing it.",
)
async def check_new_medication(
    patient_id: str,
    request: NewMedicationCheckRequest,
    service: InteractionService,
) -> InteractionCheckResponse:
    """Check a candidate medication for interactions.

    Args:
        patient_id: The patient identifier.
        request: Candidate medication and optional current medication list.
        service: Drug interaction engine.

    Returns:
        Interactions found, most severe first.
    """
    logger.info(f"Checking new medication {request.medication.name!r} for patient_id={patient_id}")
    current = None
    if request.current_medications is not None:
        current = [m.to_medication(patient_id) for m in request.current_medications]

    result = await service.check_medication_interactions(
        patient_id,
        request.medication.to_medication(patient_id),
        current_medications=current,
        raise_alerts=request.raise_alerts,
    )
    return _check_response(patient_id, unwrap_result(result))


@router.post(
    "/patients/{patient_id}/interactions/check-list",
    response_model=InteractionCheckResponse,
    summary="Check a medication list",
    description="Check every pair of medications in a list (full medication review).",
)
async def check_medication_list(
    patient_id: str,
    request: MedicationListCheckRequest,
    service: InteractionService,
) -> InteractionCheckResponse:
    """Check all pairwise combinations within a medication list."""
    medications = [m.to_medication(patient_id) for m in request.medications]
    result = await service.check_medication_list_interactions(
        patient_id,
        medications,
        raise_alerts=request.raise_alerts,
    )
    return _check_response(patient_id, unwrap_result(result))


@router.get(
    "/patients/{patient_id}/risk",
    response_model=RiskAssessmentOut,
    summary="Assess current medication risk",
    description="Risk score and recommendations for the patient's current medications on record.",
)
async def assess_current_risk(patient_id: str, service: InteractionService) -> RiskAssessmentOut:
    result = await service.assess_patient_risk(patient_id)
    return RiskAssessmentOut.from_assessment(patient_id, unwrap_result(result))


@router.post(
    "/patients/{patient_id}/risk",
    response_model=RiskAssessmentOut,
    summary="Assess medication risk",
    description="Compute the interaction risk score and recommendations for a medication list.",
)
async def assess_risk(
    patient_id: str,
    request: MedicationListCheckRequest,
    service: InteractionService,
) -> RiskAssessmentOut:
    """Risk score, tier and general recommendations for a medication list."""
    medications = [m.to_medication(patient_id) for m in request.medications]
    result = await service.assess_patient_risk(patient_id, medications)
    return RiskAssessmentOut.from_assessment(patient_id, unwrap_result(result))


@router.get(
    "/interactions/lookup",
    response_model=InteractionLookupResponse,
    summary="Look up a drug pair",
)
async def lookup_interaction(
    service: InteractionService,
    drug_a: str = Query(..., min_length=1, description="First drug"),
    drug_b: str = Query(..., min_length=1, description="Second drug"),
) -> InteractionLookupResponse:
    """Known interaction between two drugs, in either order."""
    interaction = unwrap_result(await service.get_interaction_details(drug_a, drug_b))
    return InteractionLookupResponse(
        drug_a=drug_a,
        drug_b=drug_b,
        found=interaction is not None,
        interaction=DrugInteractionOut.from_interaction(interaction) if interaction else None,
    )


@router.post(
    "/interactions/reload",
    summary="Reload interaction data",
    description="Reload the interaction knowledge base without restarting the service.",
)
async def reload_interactions(service: InteractionService) -> dict:
    """Hot-reload the knowledge base and return its statistics."""
    return unwrap_result(await service.update_interaction_database())
