"""Tests for the interaction checker."""

import pytest

from medrefer_ddi.core.exceptions import KnowledgeBaseUnavailableError, ValidationError
from medrefer_ddi.services.interaction_checker import InteractionChecker, sort_by_severity
from medrefer_ddi.services.interaction_types import (
    InteractionSeverity,
    InteractionType,
    PatientProfile,
)
from medrefer_ddi.services.knowledge_base import InteractionKnowledgeBase


class TestCheckNewMedication:
    """Test checking a candidate medication against a current list."""

    def setup_method(self):
        kb = InteractionKnowledgeBase()
        kb.load()
        self.checker = InteractionChecker(kb)

    def test_finds_major_interaction(self, medication_factory):
        current = [medication_factory("Warfarin")]
        found = self.checker.check_new_medication("patient-1", current, medication_factory("Aspirin"))
        assert len(found) == 1
        assert found[0].severity == InteractionSeverity.MAJOR

    def test_no_known_interaction_is_empty(self, medication_factory):
        current = [medication_factory("Lisinopril")]
        found = self.checker.check_new_medication("patient-1", current, medication_factory("Metformin"))
        assert found == []

    def test_empty_current_list(self, medication_factory):
        assert self.checker.check_new_medication("patient-1", [], medication_factory("Aspirin")) == []

    def test_candidate_already_in_list_is_skipped(self, medication_factory):
        aspirin = medication_factory("Aspirin")
        found = self.checker.check_new_medication("patient-1", [aspirin], aspirin)
        assert found == []

    def test_same_drug_under_new_id_is_not_an_interaction(self, medication_factory):
        current = [medication_factory("aspirin")]
        assert self.checker.check_new_medication("patient-1", current, medication_factory("ASPIRIN")) == []

    def test_brand_name_candidate(self, medication_factory):
        current = [medication_factory("warfarin"), medication_factory("ibuprofen")]
        found = self.checker.check_new_medication("patient-1", current, medication_factory("Coumadin"))
        assert len(found) == 1
        assert found[0].pair_key == ("ibuprofen", "warfarin")

    def test_empty_name_rejected(self, medication_factory):
        with pytest.raises(ValidationError):
            self.checker.check_new_medication("patient-1", [], medication_factory("   "))

    def test_profile_adds_allergy_interaction(self, medication_factory):
        profile = PatientProfile(patient_id="patient-1", allergies=["penicillin"])
        found = self.checker.check_new_medication("patient-1", [], medication_factory("amoxicillin"), profile)
        assert [i.interaction_type for i in found] == [InteractionType.DRUG_ALLERGY]


class TestCheckMedicationList:
    """Test full pairwise medication review."""

    def setup_method(self):
        kb = InteractionKnowledgeBase()
        kb.load()
        self.checker = InteractionChecker(kb)

    def test_single_pair(self, medication_factory):
        medications = [medication_factory("Warfarin"), medication_factory("Aspirin")]
        found = self.checker.check_medication_list("patient-1", medications)
        assert len(found) == 1
        assert found[0].severity == InteractionSeverity.MAJOR

    def test_no_interactions(self, medication_factory):
        medications = [medication_factory("Metformin"), medication_factory("Lisinopril")]
        assert self.checker.check_medication_list("patient-1", medications) == []

    def test_all_pairs_checked(self, medication_factory):
        medications = [
            medication_factory("warfarin"),
            medication_factory("aspirin"),
            medication_factory("ibuprofen"),
            medication_factory("fluconazole"),
        ]
        found = self.checker.check_medication_list("patient-1", medications)
        assert {i.pair_key for i in found} == {
            ("aspirin", "warfarin"),
            ("ibuprofen", "warfarin"),
            ("fluconazole", "warfarin"),
        }

    def test_result_independent_of_order(self, medication_factory):
        medications = [
            medication_factory("simvastatin"),
            medication_factory("clarithromycin"),
            medication_factory("amlodipine"),
        ]
        forward = self.checker.check_medication_list("patient-1", medications)
        backward = self.checker.check_medication_list("patient-1", list(reversed(medications)))
        assert {i.pair_key for i in forward} == {i.pair_key for i in backward}

    def test_duplicate_drug_reported_once(self, medication_factory):
        medications = [
            medication_factory("warfarin"),
            medication_factory("Coumadin"),
            medication_factory("aspirin"),
        ]
        found = self.checker.check_medication_list("patient-1", medications)
        assert len(found) == 1

    def test_never_reports_self_interaction(self, medication_factory):
        warfarin = medication_factory("warfarin")
        found = self.checker.check_medication_list("patient-1", [warfarin, warfarin])
        assert found == []

    def test_empty_list(self):
        assert self.checker.check_medication_list("patient-1", []) == []

    def test_profile_rules(self, medication_factory):
        profile = PatientProfile(
            patient_id="patient-1",
            age=78,
            conditions=["kidney disease"],
        )
        medications = [medication_factory("metformin"), medication_factory("alprazolam")]
        found = self.checker.check_medication_list("patient-1", medications, profile)
        types = {i.interaction_type for i in found}
        assert types == {InteractionType.DRUG_DISEASE, InteractionType.DRUG_AGE}

    def test_unloaded_knowledge_base(self, medication_factory):
        checker = InteractionChecker(InteractionKnowledgeBase())
        medications = [medication_factory("warfarin"), medication_factory("aspirin")]
        with pytest.raises(KnowledgeBaseUnavailableError):
            checker.check_medication_list("patient-1", medications)


class TestSortBySeverity:
    """Test severity ordering."""

    def test_most_severe_first(self, knowledge_base):
        interactions = [
            knowledge_base.lookup("acetaminophen", "caffeine"),
            knowledge_base.lookup("warfarin", "aspirin"),
            knowledge_base.lookup("metformin", "iodinated contrast"),
            knowledge_base.lookup("omeprazole", "clopidogrel"),
        ]
        ordered = [i.severity for i in sort_by_severity(interactions)]
        assert ordered == [
            InteractionSeverity.CONTRAINDICATED,
            InteractionSeverity.MAJOR,
            InteractionSeverity.MODERATE,
            InteractionSeverity.MINOR,
        ]
