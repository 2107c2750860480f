"""Interaction Checker.

Computes the interaction set for a patient's medication list by
consulting the knowledge base. Checks are pure reads: raising alerts
for what is found is the alert manager's job.
"""

import logging
from collections.abc import Iterable, Sequence

from medrefer_ddi.core.exceptions import ValidationError
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    Medication,
    PatientProfile,
    severity_rank,
)
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase

logger = logging.getLogger(__name__)


def sort_by_severity(interactions: Iterable[DrugInteraction]) -> list[DrugInteraction]:
    """Most severe first; ties keep their original order."""
    return sorted(interactions, key=lambda i: severity_rank(i.severity), reverse=True)


def _dedupe(interactions: Iterable[DrugInteraction]) -> list[DrugInteraction]:
    seen: set[tuple[tuple[str, str], str]] = set()
    unique: list[DrugInteraction] = []
    for interaction in interactions:
        key = (interaction.pair_key, interaction.interaction_type.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(interaction)
    return unique


class InteractionChecker:
    """Pairwise interaction checks over medication lists.

    Usage:
        checker = InteractionChecker(knowledge_base)
        found = checker.check_medication_list("patient-1", medications)
        for interaction in sort_by_severity(found):
            print(interaction.drug_a, interaction.drug_b, interaction.severity)
    """

    def __init__(self, knowledge_base: InteractionKnowledgeBase) -> None:
        self._kb = knowledge_base

    @property
    def knowledge_base(self) -> InteractionKnowledgeBase:
        return self._kb

    def check_pair(self, drug_a: str, drug_b: str) -> DrugInteraction | None:
        """Look up a single pair, treating the same drug twice as no interaction."""
        if self._kb.normalize_drug_name(drug_a) == self._kb.normalize_drug_name(drug_b):
            return None
        return self._kb.lookup(drug_a, drug_b)

    def check_new_medication(
        self,
        patient_id: str,
        medications: Sequence[Medication],
        new_medication: Medication,
        profile: PatientProfile | None = None,
    ) -> list[DrugInteraction]:
        """Check a candidate medication against the patient's current list.

        The candidate is never compared with itself, whether it is already
        in ``medications`` under the same id or listed as the same drug.

        Args:
            patient_id: Patient the medications belong to.
            medications: Current medications.
            new_medication: Medication about to be added.
            profile: Optional patient context for disease, age and allergy rules.

        Returns:
            All interactions found; empty if none.

        Raises:
            ValidationError: If a medication name is empty.
            KnowledgeBaseUnavailableError: If the knowledge base is not loaded.
        """
        self._validate(new_medication)
        interactions: list[DrugInteraction] = []

        for medication in medications:
            if medication.id == new_medication.id:
                continue
            self._validate(medication)
            interaction = self.check_pair(new_medication.name, medication.name)
            if interaction is not None:
                interactions.append(interaction)

        if profile is not None:
            interactions.extend(self.check_patient_context(new_medication, profile))

        unique = _dedupe(interactions)
        logger.info(
            f"Checked new medication {new_medication.name!r} for patient_id={patient_id} "
            f"against {len(medications)} medications: {len(unique)} interactions"
        )
        return unique

    def check_medication_list(
        self,
        patient_id: str,
        medications: Sequence[Medication],
        profile: PatientProfile | None = None,
    ) -> list[DrugInteraction]:
        """Check every pairwise combination within a medication list.

        Args:
            patient_id: Patient the medications belong to.
            medications: Medications to review.
            profile: Optional patient context for disease, age and allergy rules.

        Returns:
            The full interaction set, without duplicates.
        """
        for medication in medications:
            self._validate(medication)

        interactions: list[DrugInteraction] = []
        for i, first in enumerate(medications):
            for second in medications[i + 1:]:
                if first.id == second.id:
                    continue
                interaction = self.check_pair(first.name, second.name)
                if interaction is not None:
                    interactions.append(interaction)

        if profile is not None:
            for medication in medications:
                interactions.extend(self.check_patient_context(medication, profile))

        unique = _dedupe(interactions)
        logger.info(
            f"Checked {len(medications)} medications for patient_id={patient_id}: "
            f"{len(unique)} interactions"
        )
        return unique

    def check_patient_context(self, medication: Medication, profile: PatientProfile) -> list[DrugInteraction]:
        """Disease, age and allergy interactions for one medication."""
        found: list[DrugInteraction] = []

        for condition in profile.conditions:
            interaction = self._kb.find_disease_interaction(medication.name, condition)
            if interaction is not None:
                found.append(interaction)

        age_interaction = self._kb.find_age_interaction(medication.name, profile.age)
        if age_interaction is not None:
            found.append(age_interaction)

        for allergy in profile.allergies:
            interaction = self._kb.find_allergy_interaction(medication.name, allergy)
            if interaction is not None:
                found.append(interaction)

        return found

    @staticmethod
    def _validate(medication: Medication) -> None:
        if not medication.name or not medication.name.strip():
            raise ValidationError(f"Medication {medication.id!r} has an empty name")
