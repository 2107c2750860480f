"""Drug interaction engine services."""

from medrefer_ddi.services.alert_feed import AlertCache, AlertFeed, AlertSubscription
from medrefer_ddi.services.alert_manager import AlertManager
from medrefer_ddi.services.alert_store import AlertStore, InMemoryAlertStore, SqlAlchemyAlertStore
from medrefer_ddi.services.drug_interaction_service import (
    DrugInteractionService,
    get_drug_interaction_service,
    reset_drug_interaction_service,
)
from medrefer_ddi.services.interaction_checker import InteractionChecker, sort_by_severity
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    DrugInteractionAlert,
    InteractionSeverity,
    InteractionType,
    Medication,
    PatientProfile,
)
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase
from medrefer_ddi.services.risk_assessment import RiskAssessment, RiskLevel, assess_risk, classify, compute_risk_score

__all__ = [
    "AlertCache",
    "AlertFeed",
    "AlertSubscription",
    "AlertManager",
    "AlertStore",
    "InMemoryAlertStore",
    "SqlAlchemyAlertStore",
    "DrugInteractionService",
    "get_drug_interaction_service",
    "reset_drug_interaction_service",
    "InteractionChecker",
    "sort_by_severity",
    "DrugInteraction",
    "DrugInteractionAlert",
    "InteractionSeverity",
    "InteractionType",
    "Medication",
    "PatientProfile",
    "InteractionKnowledgeBase",
    "RiskAssessment",
    "RiskLevel",
    "assess_risk",
    "classify",
    "compute_risk_score",
]
