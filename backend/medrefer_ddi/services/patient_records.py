"""Read-only access to patient medication records.

The patient record system owns patients and medications; the engine
only reads them through these protocols.
"""

from datetime import date
from typing import Protocol

from medrefer_ddi.core.exceptions import PatientNotFoundError
from medrefer_ddi.services.interaction_types import Medication, PatientProfile


class MedicationRepository(Protocol):
    """Supplies a patient's medication list."""

    async def get_patient_medications(self, patient_id: str) -> list[Medication]: ...


class PatientRepository(Protocol):
    """Supplies patient context (age, allergies, conditions)."""

    async def get_patient_profile(self, patient_id: str) -> PatientProfile | None: ...


class InMemoryPatientRecords:
    """In-process patient record store implementing both repositories."""

    def __init__(self, strict: bool = False) -> None:
        # strict: unknown patients raise PatientNotFoundError instead of reading as empty
        self.strict = strict
        self._medications: dict[str, list[Medication]] = {}
        self._profiles: dict[str, PatientProfile] = {}

    def add_medication(self, medication: Medication) -> None:
        self._medications.setdefault(medication.patient_id, []).append(medication)

    def set_medications(self, patient_id: str, medications: list[Medication]) -> None:
        self._medications[patient_id] = list(medications)

    def set_profile(self, profile: PatientProfile) -> None:
        self._profiles[profile.patient_id] = profile

    def has_patient(self, patient_id: str) -> bool:
        return patient_id in self._profiles or patient_id in self._medications

    async def get_patient_medications(self, patient_id: str, on: date | None = None) -> list[Medication]:
        """Current medications only; stopped or future prescriptions are excluded."""
        self._check_known(patient_id)
        return [m for m in self._medications.get(patient_id, []) if m.is_current(on)]

    async def get_patient_profile(self, patient_id: str) -> PatientProfile | None:
        self._check_known(patient_id)
        return self._profiles.get(patient_id)

    def _check_known(self, patient_id: str) -> None:
        if self.strict and not self.has_patient(patient_id):
            raise PatientNotFoundError(patient_id)
