"""
Visa-type configuration table.

Single source of truth for each filing path: core forms, the evidence
checklist and the generation gate (evidence ids and form inputs that must be
satisfied before a packet can be generated).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

DEFAULT_VISA_TYPE = "H1B"


@dataclass(frozen=True)
class EvidenceItem:
    id: str
    title: str
    required: bool
    description: Optional[str] = None
    accepts: Tuple[str, ...] = ()
    needs_language_choice: bool = False
    requires_translation_if_not_english: bool = False


@dataclass(frozen=True)
class GenerationGate:
    required_evidence_ids: Tuple[str, ...]
    required_inputs: Tuple[str, ...]


@dataclass(frozen=True)
class UseCaseConfig:
    visa_type: str
    title: str
    core_forms: Tuple[str, ...]
    evidence: Tuple[EvidenceItem, ...]
    generation_gates: GenerationGate
    recommended_notes: Tuple[str, ...] = field(default_factory=tuple)

    def evidence_item(self, evidence_id: str) -> Optional[EvidenceItem]:
        for item in self.evidence:
            if item.id == evidence_id:
                return item
        return None


_IMAGES = ("pdf", "jpg", "png")
_DOCS = ("pdf", "docx")


USE_CASES: Dict[str, UseCaseConfig] = {
    "Marriage-Green-Card": UseCaseConfig(
        visa_type="Marriage-Green-Card",
        title="Marriage Green Card",
        core_forms=("I-130 (Petition)", "I-485 (Adjustment)", "I-864 (Affidavit of Support)", "I-693 (Medical)"),
        evidence=(
            EvidenceItem("ids-passports", "Passports / Government IDs", True,
                         "If not in English, add certified translation.", _IMAGES,
                         needs_language_choice=True, requires_translation_if_not_english=True),
            EvidenceItem("marriage-certificate", "Marriage Certificate", True,
                         "Certified copy. Translate if needed.", _IMAGES,
                         needs_language_choice=True, requires_translation_if_not_english=True),
            EvidenceItem("proof-bona-fide", "Proof of Bona Fide Marriage", True,
                         "Joint lease/mortgage, bank statements, insurance, photos with captions.", _IMAGES),
            EvidenceItem("affidavits-friends", "Affidavits from Friends/Family", False,
                         "Name, address, status, relationship, anecdotes with dates.", _DOCS),
            EvidenceItem("i864-income", "I-864 Income Evidence", True,
                         "Taxes (3y), W-2s, pay stubs, employment letter, assets.", ("pdf",)),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("ids-passports", "marriage-certificate", "proof-bona-fide", "i864-income"),
            required_inputs=("sponsorIncome", "householdSize", "petitionerName", "beneficiaryName"),
        ),
        recommended_notes=(
            "Add 10+ photos with captions (date/place/people).",
            "Include 2-3 affidavits for extra strength.",
        ),
    ),
    "K1-Fiance": UseCaseConfig(
        visa_type="K1-Fiance",
        title="K-1 Fiancé(e)",
        core_forms=("I-129F (Petition)",),
        evidence=(
            EvidenceItem("meeting-proof", "Proof of In-Person Meeting (last 2 yrs)", True, accepts=_IMAGES),
            EvidenceItem("intent-to-marry", "Intent to Marry Letters (both)", True, accepts=_DOCS),
            EvidenceItem("relationship-evidence", "Relationship Evidence", False, accepts=_IMAGES),
            EvidenceItem("identity-docs", "Identity Documents", True, accepts=_IMAGES,
                         needs_language_choice=True, requires_translation_if_not_english=True),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("meeting-proof", "intent-to-marry", "identity-docs"),
            required_inputs=("petitionerName", "beneficiaryName", "dateOfMeeting"),
        ),
    ),
    "Removal-of-Conditions": UseCaseConfig(
        visa_type="Removal-of-Conditions",
        title="Removal of Conditions (I-751)",
        core_forms=("I-751",),
        evidence=(
            EvidenceItem("joint-docs", "Joint Docs Since Marriage", True, accepts=_IMAGES),
            EvidenceItem("children-birth-cert", "Children's Birth Certificates (if any)", False, accepts=_IMAGES,
                         needs_language_choice=True, requires_translation_if_not_english=True),
            EvidenceItem("affidavits-friends-roc", "Affidavits from Friends/Family", False, accepts=_DOCS),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("joint-docs",),
            required_inputs=("petitionerName", "beneficiaryName"),
        ),
    ),
    "Immigrant-Spouse": UseCaseConfig(
        visa_type="Immigrant-Spouse",
        title="Immigrant Spouse",
        core_forms=("I-130", "I-485 (if adjusting in U.S.)", "I-864"),
        evidence=(
            EvidenceItem("marriage-certificate", "Marriage Certificate", True, accepts=_IMAGES,
                         needs_language_choice=True, requires_translation_if_not_english=True),
            EvidenceItem("bona-fide", "Bona Fide Marriage Evidence", True, accepts=_IMAGES),
            EvidenceItem("petitioner-status", "Petitioner Proof of Status", True, accepts=_IMAGES),
            EvidenceItem("i864-income", "I-864 Income Evidence", True, accepts=("pdf",)),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("marriage-certificate", "bona-fide", "petitioner-status", "i864-income"),
            required_inputs=("sponsorIncome", "householdSize", "petitionerName", "beneficiaryName"),
        ),
    ),
    "Green-Card": UseCaseConfig(
        visa_type="Green-Card",
        title="Employment-Based Green Card",
        core_forms=("I-140", "I-485 (when eligible)"),
        evidence=(
            EvidenceItem("degrees", "Degrees & Evaluations", True, accepts=("pdf",)),
            EvidenceItem("experience-letters", "Experience Letters", True, accepts=_DOCS),
            EvidenceItem("employer-letter", "Employer Support Letter", True, accepts=_DOCS),
            EvidenceItem("translations", "Translations (if needed)", False, accepts=("pdf",)),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("degrees", "experience-letters", "employer-letter"),
            required_inputs=("petitionerName", "beneficiaryName", "category"),
        ),
    ),
    "H1B": UseCaseConfig(
        visa_type="H1B",
        title="H-1B Specialty Occupation",
        core_forms=("LCA (DOL)", "I-129"),
        evidence=(
            EvidenceItem("lca", "LCA Approval", True, accepts=("pdf",)),
            EvidenceItem("soc-wage", "SOC Code & Wage Level", True, accepts=_DOCS),
            EvidenceItem("degree-eval", "Degree Transcripts/Evaluations", True, accepts=("pdf",),
                         needs_language_choice=True, requires_translation_if_not_english=True),
            EvidenceItem("employer-letter", "Employer Support Letter (duties)", True, accepts=_DOCS),
            EvidenceItem("client-letter", "Client Letter/SOW (if third-party)", False, accepts=_DOCS),
        ),
        generation_gates=GenerationGate(
            required_evidence_ids=("lca", "soc-wage", "degree-eval", "employer-letter"),
            required_inputs=("employerName", "socCode", "wageLevel", "petitionerName", "beneficiaryName"),
        ),
    ),
}


# Human / quiz labels -> canonical slugs
_VISA_TYPE_ALIASES: Dict[str, str] = {
    "h1b": "H1B",
    "h-1b": "H1B",
    "marriage green card": "Marriage-Green-Card",
    "marriage-green-card": "Marriage-Green-Card",
    "marriage gc": "Marriage-Green-Card",
    "k1 fiance": "K1-Fiance",
    "k-1 fiance": "K1-Fiance",
    "k1-fiance": "K1-Fiance",
    "k1-fiancé": "K1-Fiance",
    "k1": "K1-Fiance",
    "removal of conditions": "Removal-of-Conditions",
    "removal-of-conditions": "Removal-of-Conditions",
    "roc": "Removal-of-Conditions",
    "immigrant spouse": "Immigrant-Spouse",
    "immigrant-spouse": "Immigrant-Spouse",
    "spouse immigrant": "Immigrant-Spouse",
    "green card": "Green-Card",
    "green-card": "Green-Card",
    "employment-based": "Green-Card",
    "employment": "Green-Card",
}


def normalize_visa_type(label: Optional[str]) -> str:
    """Map a quiz/UI label to its canonical slug (unknown labels are hyphenated)."""
    s = (label or "").strip()
    hit = _VISA_TYPE_ALIASES.get(s.lower())
    if hit:
        return hit
    return "-".join(s.split())


def is_known_visa_type(visa_type: Optional[str]) -> bool:
    return normalize_visa_type(visa_type) in USE_CASES


def get_config(visa_type: Optional[str]) -> UseCaseConfig:
    """Config for a visa type; unknown types fall back to H1B."""
    return USE_CASES.get(normalize_visa_type(visa_type), USE_CASES[DEFAULT_VISA_TYPE])


def default_task_items(config: UseCaseConfig) -> List[dict]:
    """Seed list for a new case: one upload task per checklist item plus the fixed steps."""
    items = [
        {
            "title": ("Upload (Required) " if item.required else "Upload (Recommended) ") + item.title,
            "evidence_id": item.id,
        }
        for item in config.evidence
    ]
    items.append({"title": "Book Mock Interview session", "evidence_id": None})
    items.append({"title": "Review Forms Checklist", "evidence_id": None})
    items.append({"title": "Generate USCIS packet", "evidence_id": None})
    return items


def config_to_api(config: UseCaseConfig) -> dict:
    return {
        "visaType": config.visa_type,
        "title": config.title,
        "coreForms": list(config.core_forms),
        "evidence": [
            {
                "id": e.id,
                "title": e.title,
                "description": e.description,
                "required": e.required,
                "accepts": list(e.accepts),
                "needsLanguageChoice": e.needs_language_choice,
                "requiresTranslationIfNotEnglish": e.requires_translation_if_not_english,
            }
            for e in config.evidence
        ],
        "generationGates": {
            "requiredEvidenceIds": list(config.generation_gates.required_evidence_ids),
            "requiredInputs": list(config.generation_gates.required_inputs),
        },
        "recommendedNotes": list(config.recommended_notes),
    }
