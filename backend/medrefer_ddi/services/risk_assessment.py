"""Risk Aggregator.

Turns a patient's interaction set into a normalized risk score, a
qualitative tier and an ordered list of general recommendations. All
functions are total: they return a defined value for any input,
including an empty interaction set.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    DrugInteractionAlert,
    InteractionSeverity,
    severity_rank,
)

SEVERITY_WEIGHTS: dict[InteractionSeverity, float] = {
    InteractionSeverity.MINOR: 0.1,
    InteractionSeverity.MODERATE: 0.3,
    InteractionSeverity.MAJOR: 0.6,
    InteractionSeverity.CONTRAINDICATED: 1.0,
}

MODERATE_RISK_THRESHOLD = 0.3
HIGH_RISK_THRESHOLD = 0.6


class RiskLevel(str, Enum):
    """Qualitative risk tier."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


RISK_MESSAGES: dict[RiskLevel, str] = {
    RiskLevel.LOW: "Low risk - Current medication regimen appears safe with minimal interactions.",
    RiskLevel.MODERATE: (
        "Moderate risk - Some interactions present. Monitor patient closely and consider alternatives."
    ),
    RiskLevel.HIGH: (
        "High risk - Significant interactions detected. Immediate review and modification recommended."
    ),
}

REVIEW_CONTRAINDICATED = "Immediately review contraindicated drug combinations"
CONSIDER_ALTERNATIVES = "Consider alternative medications for major interactions"
REVIEW_PENDING_ALERTS = "Review and acknowledge all pending alerts"
ALWAYS_RECOMMENDED = (
    "Regular medication review with clinical pharmacist",
    "Patient education on drug interaction symptoms",
)


def compute_risk_score(interactions: Sequence[DrugInteraction]) -> float:
    """Mean severity weight of the interaction set, in [0.0, 1.0].

    Returns 0.0 for an empty set.
    """
    if not interactions:
        return 0.0
    total = sum(SEVERITY_WEIGHTS[interaction.severity] for interaction in interactions)
    return min(1.0, max(0.0, total / len(interactions)))


def classify(score: float) -> RiskLevel:
    """Tier for a risk score; boundaries are inclusive-lower."""
    if score < MODERATE_RISK_THRESHOLD:
        return RiskLevel.LOW
    if score < HIGH_RISK_THRESHOLD:
        return RiskLevel.MODERATE
    return RiskLevel.HIGH


def risk_assessment_message(level: RiskLevel) -> str:
    return RISK_MESSAGES[level]


def highest_severity(interactions: Sequence[DrugInteraction]) -> InteractionSeverity | None:
    """Most severe level present, or None for an empty set."""
    if not interactions:
        return None
    return max((i.severity for i in interactions), key=severity_rank)


def general_recommendations(
    interactions: Sequence[DrugInteraction],
    alerts: Sequence[DrugInteractionAlert] = (),
) -> list[str]:
    """Ordered recommendation list for a patient's interaction review."""
    severities = {interaction.severity for interaction in interactions}
    recommendations: list[str] = []

    if InteractionSeverity.CONTRAINDICATED in severities:
        recommendations.append(REVIEW_CONTRAINDICATED)
    if InteractionSeverity.MAJOR in severities:
        recommendations.append(CONSIDER_ALTERNATIVES)
    if any(not alert.acknowledged for alert in alerts):
        recommendations.append(REVIEW_PENDING_ALERTS)

    recommendations.extend(ALWAYS_RECOMMENDED)
    return recommendations


@dataclass
class RiskAssessment:
    """Everything a review screen needs to summarize a patient's risk."""

    score: float
    level: RiskLevel
    message: str
    highest_severity: InteractionSeverity | None
    interaction_count: int
    by_severity: dict[str, int] = field(default_factory=dict)
    pending_alerts: int = 0
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "message": self.message,
            "highest_severity": self.highest_severity.value if self.highest_severity else None,
            "interaction_count": self.interaction_count,
            "by_severity": dict(self.by_severity),
            "pending_alerts": self.pending_alerts,
            "recommendations": list(self.recommendations),
        }


def assess_risk(
    interactions: Sequence[DrugInteraction],
    alerts: Sequence[DrugInteractionAlert] = (),
) -> RiskAssessment:
    """Score, tier, message and recommendations in one result."""
    score = compute_risk_score(interactions)
    level = classify(score)

    by_severity: dict[str, int] = {}
    for interaction in interactions:
        sev = interaction.severity.value
        by_severity[sev] = by_severity.get(sev, 0) + 1

    return RiskAssessment(
        score=score,
        level=level,
        message=risk_assessment_message(level),
        highest_severity=highest_severity(interactions),
        interaction_count=len(interactions),
        by_severity=by_severity,
        pending_alerts=sum(1 for alert in alerts if not alert.acknowledged),
        recommendations=general_recommendations(interactions, alerts),
    )
