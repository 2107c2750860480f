"""Domain types shared by the drug interaction engine.

Severity ordering is defined once in ``SEVERITY_RANK``; nothing in the
engine compares severities by enum declaration order.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from medrefer_ddi.core.exceptions import ValidationError


class InteractionSeverity(str, Enum):
    """Severity levels for drug interactions."""

    MINOR = "minor"  # Usually not significant
    MODERATE = "moderate"  # Use with caution
    MAJOR = "major"  # Serious, avoid combination
    CONTRAINDICATED = "contraindicated"  # Should never be combined


SEVERITY_RANK: dict[InteractionSeverity, int] = {
    InteractionSeverity.MINOR: 1,
    InteractionSeverity.MODERATE: 2,
    InteractionSeverity.MAJOR: 3,
    InteractionSeverity.CONTRAINDICATED: 4,
}


def severity_rank(severity: InteractionSeverity) -> int:
    """Return the ordinal rank of a severity (higher is more dangerous)."""
    return SEVERITY_RANK[severity]


def parse_severity(value: str | InteractionSeverity) -> InteractionSeverity:
    """Convert a severity string to the enum.

    Accepts the synonyms used by external interaction datasets
    ("high" for major, "low" for minor).

    Raises:
        ValidationError: If the value is not a known severity.
    """
    if isinstance(value, InteractionSeverity):
        return value
    synonyms = {
        "high": InteractionSeverity.MAJOR,
        "low": InteractionSeverity.MINOR,
    }
    normalized = str(value).strip().lower()
    if normalized in synonyms:
        return synonyms[normalized]
    try:
        return InteractionSeverity(normalized)
    except ValueError:
        raise ValidationError(f"Unknown interaction severity: {value!r}") from None


class InteractionType(str, Enum):
    """What the drug interacts with."""

    DRUG_DRUG = "drug_drug"
    DRUG_FOOD = "drug_food"
    DRUG_DISEASE = "drug_disease"
    DRUG_ALLERGY = "drug_allergy"
    DRUG_AGE = "drug_age"


def normalize_name(name: str) -> str:
    """Case-fold and trim a drug name.

    Raises:
        ValidationError: If the name is empty after trimming.
    """
    if name is None or not str(name).strip():
        raise ValidationError("Drug name must not be empty")
    return " ".join(str(name).split()).lower()


def pair_key(drug_a: str, drug_b: str) -> tuple[str, str]:
    """Order-independent key for a drug pair."""
    a, b = normalize_name(drug_a), normalize_name(drug_b)
    return (a, b) if a <= b else (b, a)


@dataclass
class DrugInteraction:
    """A documented interaction between two agents.

    ``drug_b`` may also name a food, condition, allergen or age group
    depending on ``interaction_type``.
    """

    drug_a: str
    drug_b: str
    severity: InteractionSeverity
    description: str
    mechanism: str
    symptoms: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    interaction_type: InteractionType = InteractionType.DRUG_DRUG
    confidence_score: float = 1.0
    references: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.severity = parse_severity(self.severity)
        self.interaction_type = InteractionType(self.interaction_type)
        if normalize_name(self.drug_a) == normalize_name(self.drug_b):
            raise ValidationError(f"Drug cannot interact with itself: {self.drug_a!r}")
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValidationError(f"confidence_score out of range: {self.confidence_score}")

    @property
    def pair_key(self) -> tuple[str, str]:
        return pair_key(self.drug_a, self.drug_b)

    @property
    def rank(self) -> int:
        return severity_rank(self.severity)

    def involves(self, drug: str) -> bool:
        return normalize_name(drug) in self.pair_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DrugInteraction):
            return NotImplemented
        return (
            self.pair_key == other.pair_key
            and self.severity == other.severity
            and self.interaction_type == other.interaction_type
            and self.description == other.description
            and self.mechanism == other.mechanism
            and self.symptoms == other.symptoms
            and self.recommendations == other.recommendations
        )

    def __hash__(self) -> int:
        # Order-independent hash
        return hash((self.pair_key, self.severity, self.interaction_type))

    def to_dict(self) -> dict[str, Any]:
        return {
            "drug_a": self.drug_a,
            "drug_b": self.drug_b,
            "severity": self.severity.value,
            "interaction_type": self.interaction_type.value,
            "description": self.description,
            "mechanism": self.mechanism,
            "symptoms": list(self.symptoms),
            "recommendations": list(self.recommendations),
            "confidence_score": self.confidence_score,
            "references": list(self.references),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DrugInteraction":
        return cls(
            drug_a=data["drug_a"],
            drug_b=data["drug_b"],
            severity=parse_severity(data["severity"]),
            description=data.get("description", ""),
            mechanism=data.get("mechanism", ""),
            symptoms=list(data.get("symptoms") or []),
            recommendations=list(data.get("recommendations") or []),
            interaction_type=InteractionType(data.get("interaction_type", InteractionType.DRUG_DRUG.value)),
            confidence_score=float(data.get("confidence_score", 1.0)),
            references=list(data.get("references") or []),
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class DrugInteractionAlert:
    """A per-patient, acknowledgeable record of a qualifying interaction.

    Alerts reference the patient by id only. ``acknowledged`` moves from
    False to True exactly once; ``is_active`` goes False when dismissed.
    """

    patient_id: str
    interaction: DrugInteraction
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    is_active: bool = True
    acknowledged: bool = False
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    notes: str | None = None

    @property
    def is_open(self) -> bool:
        """True while the alert still needs clinician attention."""
        return self.is_active and not self.acknowledged

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "interaction": self.interaction.to_dict(),
            "created_at": self.created_at.isoformat(),
            "is_active": self.is_active,
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DrugInteractionAlert":
        acknowledged_at = data.get("acknowledged_at")
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            patient_id=data["patient_id"],
            interaction=DrugInteraction.from_dict(data["interaction"]),
            created_at=datetime.fromisoformat(created_at) if created_at else _utcnow(),
            is_active=data.get("is_active", True),
            acknowledged=data.get("acknowledged", False),
            acknowledged_by=data.get("acknowledged_by"),
            acknowledged_at=datetime.fromisoformat(acknowledged_at) if acknowledged_at else None,
            notes=data.get("notes"),
        )


@dataclass
class Medication:
    """A patient's medication, owned by the patient record system."""

    id: str
    patient_id: str
    name: str
    dosage: str = ""
    frequency: str = ""
    start_date: date | None = None
    end_date: date | None = None
    prescribed_by: str | None = None

    def is_current(self, on: date | None = None) -> bool:
        """Whether the medication is being taken on the given day."""
        on = on or date.today()
        if self.start_date is not None and self.start_date > on:
            return False
        return self.end_date is None or self.end_date >= on


@dataclass
class PatientProfile:
    """Patient context used for disease, age and allergy checks."""

    patient_id: str
    age: int | None = None
    allergies: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
