"""Drug Interaction Knowledge Base.

Curated lookup of known drug-pair interactions plus the patient-context
rules (disease, age and allergy) used by the interaction checker.

The data set can be reloaded or extended at runtime. Readers always
work against an immutable snapshot, so a reload never exposes a
half-built index to a concurrent check.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from medrefer_ddi.core.config import settings
from medrefer_ddi.core.exceptions import KnowledgeBaseUnavailableError, ValidationError
from medrefer_ddi.services.interaction_types import (
    DrugInteraction,
    InteractionSeverity,
    InteractionType,
    normalize_name,
    pair_key,
    parse_severity,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Curated Interaction Data
# ============================================================================

CORE_INTERACTIONS: list[DrugInteraction] = [
    # ==========================================================================
    # CONTRAINDICATED COMBINATIONS
    # ==========================================================================
    DrugInteraction(
        drug_a="metformin",
        drug_b="iodinated contrast",
        severity=InteractionSeverity.CONTRAINDICATED,
        description="Risk of lactic acidosis when metformin is used with contrast agents",
        mechanism="Contrast agents can impair kidney function, leading to metformin accumulation",
        symptoms=["Lactic acidosis", "Kidney dysfunction", "Metabolic acidosis"],
        recommendations=[
            "Discontinue metformin 48 hours before contrast",
            "Check kidney function before restarting",
            "Monitor for lactic acidosis symptoms",
        ],
        confidence_score=0.98,
    ),
    DrugInteraction(
        drug_a="sildenafil",
        drug_b="nitroglycerin",
        severity=InteractionSeverity.CONTRAINDICATED,
        description="Severe hypotension when a PDE5 inhibitor is combined with a nitrate",
        mechanism="Both drugs cause vasodilation via the nitric oxide pathway",
        symptoms=["Severe hypotension", "Syncope", "Chest pain"],
        recommendations=[
            "Do not use nitrates within 24 hours of sildenafil",
            "Use an alternative anti-anginal agent",
        ],
        references=["FDA sildenafil label"],
    ),
    DrugInteraction(
        drug_a="linezolid",
        drug_b="sertraline",
        severity=InteractionSeverity.CONTRAINDICATED,
        description="Linezolid is an MAO inhibitor; sertraline is an SSRI",
        mechanism="Combined serotonergic activity causes serotonin toxicity",
        symptoms=["Hyperthermia", "Muscle rigidity", "Autonomic instability", "Agitation"],
        recommendations=[
            "Wait 2 weeks after stopping sertraline before starting linezolid",
            "Monitor for serotonin syndrome if combination is unavoidable",
        ],
        references=["FDA linezolid label"],
    ),
    DrugInteraction(
        drug_a="simvastatin",
        drug_b="clarithromycin",
        severity=InteractionSeverity.CONTRAINDICATED,
        description="Clarithromycin markedly increases simvastatin exposure",
        mechanism="Strong CYP3A4 inhibition blocks simvastatin metabolism",
        symptoms=["Muscle pain", "Weakness", "Dark urine"],
        recommendations=[
            "Suspend simvastatin during the clarithromycin course",
            "Use an antibiotic without CYP3A4 inhibition",
        ],
        references=["FDA clarithromycin label"],
    ),
    # ==========================================================================
    # MAJOR INTERACTIONS
    # ==========================================================================
    DrugInteraction(
        drug_a="warfarin",
        drug_b="aspirin",
        severity=InteractionSeverity.MAJOR,
        description="Increased risk of bleeding when warfarin is combined with aspirin",
        mechanism="Both drugs affect blood clotting mechanisms",
        symptoms=["Unusual bleeding", "Easy bruising", "Blood in urine/stool"],
        recommendations=[
            "Monitor INR closely",
            "Consider alternative pain management",
            "Educate patient on bleeding signs",
        ],
        confidence_score=0.95,
    ),
    DrugInteraction(
        drug_a="digoxin",
        drug_b="furosemide",
        severity=InteractionSeverity.MAJOR,
        description="Furosemide can increase digoxin toxicity by causing hypokalemia",
        mechanism="Furosemide-induced hypokalemia increases digoxin sensitivity",
        symptoms=["Nausea", "Vomiting", "Cardiac arrhythmias", "Visual disturbances"],
        recommendations=[
            "Monitor serum potassium levels",
            "Monitor digoxin levels",
            "Consider potassium supplementation",
        ],
        confidence_score=0.92,
    ),
    DrugInteraction(
        drug_a="warfarin",
        drug_b="ibuprofen",
        severity=InteractionSeverity.MAJOR,
        description="NSAIDs inhibit platelet function and may increase warfarin levels",
        mechanism="Antiplatelet effect plus displacement of warfarin from plasma proteins",
        symptoms=["GI bleeding", "Easy bruising", "Black stools"],
        recommendations=["Avoid combination", "Use acetaminophen for pain"],
    ),
    DrugInteraction(
        drug_a="spironolactone",
        drug_b="lisinopril",
        severity=InteractionSeverity.MAJOR,
        description="Both drugs increase potassium retention",
        mechanism="Aldosterone antagonism plus reduced aldosterone production",
        symptoms=["Muscle weakness", "Palpitations", "Cardiac arrhythmia"],
        recommendations=[
            "Monitor potassium frequently",
            "Avoid if potassium above 5.0 or eGFR below 30",
        ],
    ),
    DrugInteraction(
        drug_a="tramadol",
        drug_b="sertraline",
        severity=InteractionSeverity.MAJOR,
        description="Both drugs increase serotonin activity",
        mechanism="Additive serotonergic effect and lowered seizure threshold",
        symptoms=["Agitation", "Tremor", "Seizures"],
        recommendations=["Avoid combination", "Use an alternative analgesic"],
    ),
    DrugInteraction(
        drug_a="alprazolam",
        drug_b="oxycodone",
        severity=InteractionSeverity.MAJOR,
        description="Additive CNS and respiratory depression",
        mechanism="Benzodiazepine and opioid act on complementary CNS depressant pathways",
        symptoms=["Profound sedation", "Slow breathing", "Unresponsiveness"],
        recommendations=["Avoid combination", "Prescribe naloxone if co-prescribing is unavoidable"],
        references=["FDA boxed warning"],
    ),
    # ==========================================================================
    # MODERATE INTERACTIONS
    # ==========================================================================
    DrugInteraction(
        drug_a="simvastatin",
        drug_b="grapefruit",
        severity=InteractionSeverity.MODERATE,
        interaction_type=InteractionType.DRUG_FOOD,
        description="Grapefruit juice increases simvastatin levels, increasing risk of myopathy",
        mechanism="Grapefruit inhibits CYP3A4 enzyme that metabolizes simvastatin",
        symptoms=["Muscle pain", "Weakness", "Dark urine", "Liver problems"],
        recommendations=[
            "Avoid grapefruit juice",
            "Monitor for muscle symptoms",
            "Consider alternative statin if needed",
        ],
        confidence_score=0.88,
    ),
    DrugInteraction(
        drug_a="omeprazole",
        drug_b="clopidogrel",
        severity=InteractionSeverity.MODERATE,
        description="Omeprazole reduces clopidogrel activation",
        mechanism="CYP2C19 inhibition lowers conversion to the active metabolite",
        symptoms=["Chest pain", "Signs of stent thrombosis"],
        recommendations=["Consider pantoprazole instead", "Or use an H2 blocker"],
    ),
    DrugInteraction(
        drug_a="levothyroxine",
        drug_b="calcium",
        severity=InteractionSeverity.MODERATE,
        description="Calcium binds levothyroxine in the GI tract, reducing absorption",
        mechanism="Chelation in the gut",
        symptoms=["Fatigue", "Weight gain", "Cold intolerance"],
        recommendations=["Separate doses by at least 4 hours", "Monitor TSH"],
    ),
    DrugInteraction(
        drug_a="hydrochlorothiazide",
        drug_b="lithium",
        severity=InteractionSeverity.MODERATE,
        description="Thiazides reduce lithium clearance",
        mechanism="Sodium depletion increases proximal tubular lithium reabsorption",
        symptoms=["Tremor", "Confusion", "Arrhythmia"],
        recommendations=["Monitor lithium levels closely", "Reduce lithium dose if needed"],
    ),
    # ==========================================================================
    # MINOR INTERACTIONS
    # ==========================================================================
    DrugInteraction(
        drug_a="acetaminophen",
        drug_b="caffeine",
        severity=InteractionSeverity.MINOR,
        description="Caffeine slightly increases acetaminophen absorption",
        mechanism="Faster gastric emptying",
        symptoms=["Jitteriness"],
        recommendations=["No action usually required"],
    ),
    DrugInteraction(
        drug_a="amoxicillin",
        drug_b="allopurinol",
        severity=InteractionSeverity.MINOR,
        description="Higher incidence of skin rash when combined",
        mechanism="Unclear; possibly hyperuricemia-related hypersensitivity",
        symptoms=["Skin rash"],
        recommendations=["Monitor for rash", "Discontinue amoxicillin if rash develops"],
    ),
]

# Brand names and abbreviations mapped to the generic names used above
DRUG_ALIASES: dict[str, str] = {
    "coumadin": "warfarin",
    "jantoven": "warfarin",
    "bayer": "aspirin",
    "asa": "aspirin",
    "tylenol": "acetaminophen",
    "apap": "acetaminophen",
    "advil": "ibuprofen",
    "motrin": "ibuprofen",
    "lanoxin": "digoxin",
    "lasix": "furosemide",
    "glucophage": "metformin",
    "zocor": "simvastatin",
    "biaxin": "clarithromycin",
    "viagra": "sildenafil",
    "ntg": "nitroglycerin",
    "nitrostat": "nitroglycerin",
    "zyvox": "linezolid",
    "zoloft": "sertraline",
    "ultram": "tramadol",
    "xanax": "alprazolam",
    "percocet": "oxycodone",
    "aldactone": "spironolactone",
    "zestril": "lisinopril",
    "prinivil": "lisinopril",
    "prilosec": "omeprazole",
    "plavix": "clopidogrel",
    "synthroid": "levothyroxine",
    "hctz": "hydrochlorothiazide",
    "zyloprim": "allopurinol",
    "contrast dye": "iodinated contrast",
    "grapefruit juice": "grapefruit",
}

# (drug, condition) pairs that are dangerous regardless of co-medication
DISEASE_INTERACTIONS: list[DrugInteraction] = [
    DrugInteraction(
        drug_a="metformin",
        drug_b="kidney disease",
        severity=InteractionSeverity.CONTRAINDICATED,
        interaction_type=InteractionType.DRUG_DISEASE,
        description="Metformin is contraindicated in kidney disease due to risk of lactic acidosis",
        mechanism="Reduced kidney clearance leads to metformin accumulation",
        symptoms=["Lactic acidosis", "Kidney dysfunction"],
        recommendations=["Use alternative diabetes medication", "Monitor kidney function"],
        confidence_score=0.95,
    ),
    DrugInteraction(
        drug_a="ibuprofen",
        drug_b="peptic ulcer disease",
        severity=InteractionSeverity.MAJOR,
        interaction_type=InteractionType.DRUG_DISEASE,
        description="NSAIDs increase the risk of ulcer bleeding and perforation",
        mechanism="Inhibition of protective gastric prostaglandins",
        symptoms=["Abdominal pain", "Black stools", "Vomiting blood"],
        recommendations=["Avoid NSAIDs", "Use acetaminophen for pain"],
    ),
]

# Beers Criteria: potentially inappropriate medications in older adults
BEERS_LIST_DRUGS: frozenset[str] = frozenset({
    "diphenhydramine",
    "promethazine",
    "hydroxyzine",
    "diazepam",
    "lorazepam",
    "alprazolam",
})

PEDIATRIC_CONTRAINDICATIONS: frozenset[str] = frozenset({
    "aspirin",
    "tetracycline",
    "fluoroquinolones",
})

# Allergy class -> drugs with cross-reactivity
CROSS_ALLERGIES: dict[str, tuple[str, ...]] = {
    "penicillin": ("amoxicillin", "ampicillin", "penicillin"),
    "sulfa": ("sulfamethoxazole", "sulfadiazine"),
    "cephalosporin": ("cephalexin", "ceftriaxone"),
}

ELDERLY_AGE = 65
PEDIATRIC_AGE = 18


# ============================================================================
# Fixture Loading
# ============================================================================


def interaction_from_record(record: dict[str, Any]) -> DrugInteraction:
    """Build an interaction from a fixture record.

    Accepts list or single-string ``symptoms``/``recommendations`` and the
    severity synonyms understood by ``parse_severity``.

    Raises:
        ValidationError: If a required field is missing or invalid.
    """
    try:
        drug_a = record["drug_a"]
        drug_b = record["drug_b"]
        severity = record["severity"]
    except KeyError as e:
        raise ValidationError(f"Interaction record missing field {e.args[0]!r}") from None

    def _as_list(value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    return DrugInteraction(
        drug_a=normalize_name(drug_a),
        drug_b=normalize_name(drug_b),
        severity=parse_severity(severity),
        interaction_type=InteractionType(record.get("interaction_type", InteractionType.DRUG_DRUG.value)),
        description=record.get("description", ""),
        mechanism=record.get("mechanism", ""),
        symptoms=_as_list(record.get("symptoms")),
        recommendations=_as_list(record.get("recommendations")),
        confidence_score=float(record.get("confidence_score", 1.0)),
        references=_as_list(record.get("references")),
    )


def load_fixture_interactions(path: Path) -> list[DrugInteraction]:
    """Load interactions from a JSON fixture file.

    The file holds ``{"interactions": [...]}``. Malformed records are
    skipped with a warning; a missing file yields an empty list.

    Raises:
        KnowledgeBaseUnavailableError: If the file exists but cannot be parsed.
    """
    if not path.exists():
        logger.warning(f"Drug interactions fixture file not found: {path}")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise KnowledgeBaseUnavailableError(f"Cannot read interaction fixture {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("interactions", []), list):
        raise KnowledgeBaseUnavailableError(
            f"Interaction fixture {path} must be an object with an 'interactions' list"
        )

    interactions: list[DrugInteraction] = []
    for i, record in enumerate(data.get("interactions", [])):
        try:
            interactions.append(interaction_from_record(record))
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed interaction record #{i} in {path}: {e}")

    return interactions


@dataclass(frozen=True)
class _Snapshot:
    """Immutable index over one version of the data set."""

    pairs: dict[tuple[str, str], DrugInteraction] = field(default_factory=dict)
    drug_index: dict[str, frozenset[tuple[str, str]]] = field(default_factory=dict)
    version: int = 0


def _build_snapshot(
    interactions: list[DrugInteraction],
    version: int,
    resolve: Callable[[str], str],
) -> _Snapshot:
    pairs: dict[tuple[str, str], DrugInteraction] = {}
    for interaction in interactions:
        key = pair_key(resolve(interaction.drug_a), resolve(interaction.drug_b))
        if key[0] == key[1]:
            logger.warning(f"Skipping self-interaction record for {key[0]!r}")
            continue
        # Later records win, so fixture data overrides the curated defaults.
        # Stored under resolved names so brand spellings share one pair.
        pairs[key] = replace(interaction, drug_a=resolve(interaction.drug_a), drug_b=resolve(interaction.drug_b))

    drug_index: dict[str, set[tuple[str, str]]] = {}
    for key in pairs:
        for drug in key:
            drug_index.setdefault(drug, set()).add(key)

    return _Snapshot(
        pairs=pairs,
        drug_index={drug: frozenset(keys) for drug, keys in drug_index.items()},
        version=version,
    )


# ============================================================================
# Knowledge Base
# ============================================================================


class InteractionKnowledgeBase:
    """Lookup store of known drug-pair interactions.

    Usage:
        kb = InteractionKnowledgeBase()
        kb.load()
        interaction = kb.lookup("Coumadin", "aspirin")
        if interaction is not None:
            print(interaction.severity)
    """

    def __init__(
        self,
        fixture_path: Path | None = None,
        seed: list[DrugInteraction] | None = None,
        aliases: dict[str, str] | None = None,
    ) -> None:
        self._fixture_path = fixture_path if fixture_path is not None else settings.interaction_fixture_path
        self._seed = list(CORE_INTERACTIONS if seed is None else seed)
        self._aliases = dict(DRUG_ALIASES if aliases is None else aliases)
        self._extra: dict[tuple[str, str], DrugInteraction] = {}
        self._snapshot: _Snapshot | None = None
        self._write_lock = Lock()

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def version(self) -> int:
        return self._snapshot.version if self._snapshot is not None else 0

    def load(self) -> int:
        """Load the data set if not yet loaded.

        Returns:
            Number of interactions available.
        """
        if self._snapshot is None:
            return self.reload()
        return len(self._snapshot.pairs)

    def reload(self) -> int:
        """Rebuild the index from seed data, fixture and runtime upserts.

        Lookups running concurrently keep using the previous snapshot
        until the new one is swapped in.

        Returns:
            Number of interactions available after the reload.

        Raises:
            KnowledgeBaseUnavailableError: If the fixture cannot be parsed.
        """
        with self._write_lock:
            interactions = list(self._seed)
            interactions.extend(load_fixture_interactions(Path(self._fixture_path)))
            interactions.extend(self._extra.values())
            self._snapshot = _build_snapshot(interactions, self.version + 1, self.normalize_drug_name)

        logger.info(
            f"Drug interaction knowledge base loaded: {len(self._snapshot.pairs)} interactions "
            f"(version {self._snapshot.version})"
        )
        return len(self._snapshot.pairs)

    def upsert(self, interaction: DrugInteraction) -> None:
        """Add or replace one interaction without a full reload."""
        self._require_snapshot()
        key = pair_key(self.normalize_drug_name(interaction.drug_a), self.normalize_drug_name(interaction.drug_b))
        if key[0] == key[1]:
            raise ValidationError(f"Drug cannot interact with itself: {interaction.drug_a!r}")
        with self._write_lock:
            self._extra[key] = interaction
            current = self._require_snapshot()
            pairs = dict(current.pairs)
            pairs[key] = interaction
            self._snapshot = _build_snapshot(list(pairs.values()), current.version + 1, self.normalize_drug_name)
        logger.info(f"Upserted interaction {key[0]} + {key[1]} ({interaction.severity.value})")

    def normalize_drug_name(self, drug: str) -> str:
        """Normalize a drug name and resolve brand names to generics.

        Raises:
            ValidationError: If the name is empty.
        """
        normalized = normalize_name(drug)
        return self._aliases.get(normalized, normalized)

    def lookup(self, drug_a: str, drug_b: str) -> DrugInteraction | None:
        """Find the interaction between two drugs, in either order.

        Args:
            drug_a: First drug name.
            drug_b: Second drug name.

        Returns:
            DrugInteraction if one is known, None otherwise.

        Raises:
            ValidationError: If a name is empty or both names are the same drug.
            KnowledgeBaseUnavailableError: If the knowledge base is not loaded.
        """
        snapshot = self._require_snapshot()
        a = self.normalize_drug_name(drug_a)
        b = self.normalize_drug_name(drug_b)
        if a == b:
            raise ValidationError(f"Cannot check a drug against itself: {drug_a!r} / {drug_b!r}")
        return snapshot.pairs.get(pair_key(a, b))

    def get_interactions_for_drug(self, drug: str) -> list[DrugInteraction]:
        """Get all known interactions involving a drug."""
        snapshot = self._require_snapshot()
        keys = snapshot.drug_index.get(self.normalize_drug_name(drug), frozenset())
        return [snapshot.pairs[key] for key in sorted(keys)]

    # ------------------------------------------------------------------
    # Patient-context rules
    # ------------------------------------------------------------------

    def find_disease_interaction(self, drug: str, condition: str) -> DrugInteraction | None:
        """Find a drug-disease interaction for one of the patient's conditions."""
        self._require_snapshot()
        key = pair_key(self.normalize_drug_name(drug), condition)
        for interaction in DISEASE_INTERACTIONS:
            if interaction.pair_key == key:
                return interaction
        return None

    def find_age_interaction(self, drug: str, age: int | None) -> DrugInteraction | None:
        """Check Beers list (older adults) and pediatric contraindications."""
        self._require_snapshot()
        if age is None:
            return None
        name = self.normalize_drug_name(drug)

        if age >= ELDERLY_AGE and name in BEERS_LIST_DRUGS:
            return DrugInteraction(
                drug_a=name,
                drug_b="elderly patient",
                severity=InteractionSeverity.MODERATE,
                interaction_type=InteractionType.DRUG_AGE,
                description="Potentially inappropriate medication for elderly patients",
                mechanism="Increased sensitivity and adverse effects in elderly",
                symptoms=["Sedation", "Falls risk", "Cognitive impairment"],
                recommendations=[
                    "Consider alternative medication",
                    "Use lowest effective dose",
                    "Monitor closely for adverse effects",
                ],
                confidence_score=0.85,
                references=["AGS Beers Criteria"],
            )

        if age < PEDIATRIC_AGE and name in PEDIATRIC_CONTRAINDICATIONS:
            return DrugInteraction(
                drug_a=name,
                drug_b="pediatric patient",
                severity=InteractionSeverity.CONTRAINDICATED,
                interaction_type=InteractionType.DRUG_AGE,
                description="Contraindicated in pediatric patients",
                mechanism="Age-specific toxicity or developmental concerns",
                symptoms=["Age-specific adverse effects"],
                recommendations=[
                    "Use pediatric-appropriate alternative",
                    "Consult pediatric specialist",
                ],
                confidence_score=0.95,
            )

        return None

    def find_allergy_interaction(self, drug: str, allergy: str) -> DrugInteraction | None:
        """Match a drug against a documented allergy, including cross-allergies."""
        self._require_snapshot()
        name = self.normalize_drug_name(drug)
        allergen = normalize_name(allergy)
        if name == allergen:
            matched = True
        elif name in allergen or allergen in name:
            matched = True
        else:
            matched = any(
                allergy_class in allergen and any(member in name for member in members)
                for allergy_class, members in CROSS_ALLERGIES.items()
            )
        if not matched:
            return None

        return DrugInteraction(
            drug_a=name,
            drug_b=f"{allergen} allergy",
            severity=InteractionSeverity.CONTRAINDICATED,
            interaction_type=InteractionType.DRUG_ALLERGY,
            description=f"Patient has documented allergy to {allergy}",
            mechanism="Known allergic reaction",
            symptoms=["Allergic reaction", "Anaphylaxis", "Skin rash"],
            recommendations=[
                "Do not administer",
                "Find alternative medication",
                "Update allergy list",
            ],
        )

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about the interaction data set."""
        snapshot = self._require_snapshot()
        by_severity: dict[str, int] = {}
        by_type: dict[str, int] = {}
        for interaction in snapshot.pairs.values():
            sev = interaction.severity.value
            typ = interaction.interaction_type.value
            by_severity[sev] = by_severity.get(sev, 0) + 1
            by_type[typ] = by_type.get(typ, 0) + 1

        return {
            "total_interactions": len(snapshot.pairs),
            "unique_drugs": len(snapshot.drug_index),
            "aliases_count": len(self._aliases),
            "version": snapshot.version,
            "by_severity": by_severity,
            "by_type": by_type,
        }

    def _require_snapshot(self) -> _Snapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise KnowledgeBaseUnavailableError("Drug interaction knowledge base is not loaded")
        return snapshot
