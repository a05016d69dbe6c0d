"""
Medication escalation cascades.

Each cascade is an ordered tuple of steps. A step is "handled" once the drug
is active, documented as not tolerated, or explicitly declined; the first
unhandled step produces the single recommendation for that cascade. An
active drug name that is not in the potency table (legacy or migrated
values) counts as not started.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from health_core.domain.medications import (
    GLP1_TABLE,
    SGLT2_DRUGS,
    STATIN_TABLE,
    PotencyTable,
    display_drug_name,
)
from health_core.domain.models import (
    BMICategory,
    HealthInputs,
    HealthResults,
    MedicationSlot,
    MedicationState,
    MedicationStatus,
    Priority,
    Suggestion,
    SuggestionCategory,
)
from health_core.domain.units import (
    BP_THRESHOLDS,
    HBA1C_THRESHOLDS,
    TRIGLYCERIDES_THRESHOLDS,
    WHTR_THRESHOLD,
)
from health_core.observability import get_logger

logger = get_logger(__name__)

# On-treatment lipid targets (canonical units)
LIPID_TREATMENT_TARGETS: Final = {
    "apob": 0.5,  # g/L (50 mg/dL)
    "ldl": 1.4,  # mmol/L (~54 mg/dL)
    "non_hdl": 1.4,  # mmol/L (~54 mg/dL)
}

WEIGHT_CASCADE_BMI: Final = 27

WEIGHT_CASCADE_CATEGORIES: Final = frozenset(
    {
        BMICategory.OVERWEIGHT,
        BMICategory.MEASURE_WAIST,
        BMICategory.OBESE_CLASS_I,
        BMICategory.OBESE_CLASS_II,
        BMICategory.OBESE_CLASS_III,
    }
)


@dataclass(frozen=True)
class CascadeStep:
    """One rung of a cascade: a handled check plus the recommendation to emit."""

    name: str
    is_handled: Callable[[MedicationState], bool]
    recommend: Callable[[MedicationState], Suggestion]


def run_cascade(
    cascade: str, steps: tuple[CascadeStep, ...], medications: MedicationState
) -> Suggestion | None:
    """Walk the steps top-down and stop at the first unhandled one."""
    for step in steps:
        if not step.is_handled(medications):
            suggestion = step.recommend(medications)
            logger.debug(
                "cascade_step_selected",
                cascade=cascade,
                step=step.name,
                suggestion_id=suggestion.id,
            )
            return suggestion
    logger.debug("cascade_exhausted", cascade=cascade)
    return None


def _medication_card(id: str, title: str, description: str) -> Suggestion:
    return Suggestion(
        id=id,
        category=SuggestionCategory.MEDICATION,
        priority=Priority.ATTENTION,
        title=title,
        description=description,
        discuss_with_doctor=True,
    )


def _refused(slot: MedicationSlot) -> bool:
    return slot.status in (MedicationStatus.NOT_TOLERATED, MedicationStatus.DECLINED)


def _on_known_drug(slot: MedicationSlot, table: PotencyTable) -> bool:
    return slot.is_active and table.knows(slot.drug)


def _first_line_handled(slot: MedicationSlot, table: PotencyTable) -> bool:
    return _refused(slot) or _on_known_drug(slot, table)


def _escalation_handled(
    base: MedicationSlot, escalation: MedicationSlot, table: PotencyTable
) -> bool:
    # Nothing to escalate unless tolerating a known drug below max potency
    if not _on_known_drug(base, table):
        return True
    if table.is_on_max_potency(base.drug, base.dose):
        return True
    return escalation.is_handled


# ---------------------------------------------------------------------------
# Lipid cascade
# ---------------------------------------------------------------------------


def _recommend_statin_escalation(meds: MedicationState) -> Suggestion:
    statin = meds.statin
    if STATIN_TABLE.can_increase_dose(statin.drug, statin.dose):
        return _medication_card(
            "med-statin-increase",
            "Consider increasing statin dose",
            "Your lipid levels remain above target. Discuss increasing your statin dose "
            "with your doctor.",
        )
    return _medication_card(
        "med-statin-switch",
        "Consider switching to a more potent statin",
        f"You're on the maximum dose of {display_drug_name(statin.drug or '')}. Discuss "
        "switching to a more potent statin (e.g. Rosuvastatin) with your doctor.",
    )


LIPID_CASCADE: Final = (
    CascadeStep(
        name="statin",
        is_handled=lambda meds: _first_line_handled(meds.statin, STATIN_TABLE),
        recommend=lambda meds: _medication_card(
            "med-statin",
            "Consider starting a statin",
            "Your lipid levels are above target. Discuss starting a statin "
            "(e.g. Rosuvastatin 5mg) with your doctor.",
        ),
    ),
    CascadeStep(
        name="ezetimibe",
        is_handled=lambda meds: meds.ezetimibe.is_handled,
        recommend=lambda meds: _medication_card(
            "med-ezetimibe",
            "Consider adding Ezetimibe",
            "Your lipid levels remain above target. Discuss adding Ezetimibe 10mg with "
            "your doctor.",
        ),
    ),
    CascadeStep(
        name="statin_escalation",
        is_handled=lambda meds: _escalation_handled(
            meds.statin, meds.statin_escalation, STATIN_TABLE
        ),
        recommend=_recommend_statin_escalation,
    ),
    CascadeStep(
        name="pcsk9i",
        is_handled=lambda meds: meds.pcsk9i.is_handled,
        recommend=lambda meds: _medication_card(
            "med-pcsk9i",
            "Consider a PCSK9 inhibitor",
            "Your lipid levels remain above target despite current medications. Discuss a "
            "PCSK9 inhibitor with your doctor.",
        ),
    ),
)


def lipid_cascade_triggered(inputs: HealthInputs, results: HealthResults) -> bool:
    """Any tracked atherogenic marker above its on-treatment target."""
    non_hdl = results.non_hdl_cholesterol
    return (
        (inputs.apob is not None and inputs.apob > LIPID_TREATMENT_TARGETS["apob"])
        or (inputs.ldl_c is not None and inputs.ldl_c > LIPID_TREATMENT_TARGETS["ldl"])
        or (non_hdl is not None and non_hdl > LIPID_TREATMENT_TARGETS["non_hdl"])
    )


def evaluate_lipid_cascade(
    inputs: HealthInputs, results: HealthResults, medications: MedicationState
) -> Suggestion | None:
    if not lipid_cascade_triggered(inputs, results):
        return None
    return run_cascade("lipid", LIPID_CASCADE, medications)


# ---------------------------------------------------------------------------
# Weight / diabetes cascade
# ---------------------------------------------------------------------------


def _recommend_glp1_escalation(meds: MedicationState) -> Suggestion:
    glp1 = meds.glp1
    if GLP1_TABLE.can_increase_dose(glp1.drug, glp1.dose):
        return _medication_card(
            "med-glp1-increase",
            "Consider increasing GLP-1 dose",
            "Your weight or metabolic markers remain above target. Discuss increasing your "
            f"{display_drug_name(glp1.drug or '')} dose with your doctor.",
        )
    preferred = display_drug_name(GLP1_TABLE.preferred_drug)
    return _medication_card(
        "med-glp1-switch",
        f"Consider switching to {preferred}",
        f"You're on the maximum dose of {display_drug_name(glp1.drug or '')}. Discuss "
        f"switching to {preferred}, the most potent option in this class, with your doctor.",
    )


WEIGHT_CASCADE: Final = (
    CascadeStep(
        name="glp1",
        is_handled=lambda meds: _first_line_handled(meds.glp1, GLP1_TABLE),
        recommend=lambda meds: _medication_card(
            "med-glp1",
            "Consider a GLP-1 medication",
            "Your weight and metabolic markers suggest you may benefit from discussing "
            "Tirzepatide (preferred) or Semaglutide with your doctor, in addition to diet, "
            "exercise, and sleep optimization.",
        ),
    ),
    CascadeStep(
        name="glp1_escalation",
        is_handled=lambda meds: _escalation_handled(meds.glp1, meds.glp1_escalation, GLP1_TABLE),
        recommend=_recommend_glp1_escalation,
    ),
    CascadeStep(
        name="sglt2i",
        is_handled=lambda meds: _refused(meds.sglt2i)
        or (meds.sglt2i.is_active and meds.sglt2i.drug in SGLT2_DRUGS),
        recommend=lambda meds: _medication_card(
            "med-sglt2i",
            "Consider adding an SGLT2 inhibitor",
            "Your weight or metabolic markers remain above target. Discuss adding an SGLT2 "
            "inhibitor (e.g. Empagliflozin) with your doctor.",
        ),
    ),
    CascadeStep(
        name="metformin",
        is_handled=lambda meds: meds.metformin.is_handled,
        recommend=lambda meds: _medication_card(
            "med-metformin",
            "Consider adding Metformin",
            "Your weight or metabolic markers remain above target despite current "
            "medications. Discuss adding Metformin with your doctor.",
        ),
    ),
)


def bp_stage1_or_higher(inputs: HealthInputs) -> bool:
    sys_bp, dia_bp = inputs.systolic_bp, inputs.diastolic_bp
    return (sys_bp is not None and sys_bp >= BP_THRESHOLDS["stage1_sys"]) or (
        dia_bp is not None and dia_bp > BP_THRESHOLDS["stage1_dia"]
    )


def weight_cascade_triggered(inputs: HealthInputs, results: HealthResults) -> bool:
    """Overweight or obese, and either BMI above 27 or a secondary metabolic flag."""
    if results.bmi is None or results.bmi_category not in WEIGHT_CASCADE_CATEGORIES:
        return False
    if results.bmi > WEIGHT_CASCADE_BMI:
        return True

    whtr = results.waist_to_height_ratio
    secondary_flags = (
        inputs.hba1c is not None and inputs.hba1c >= HBA1C_THRESHOLDS["prediabetes"],
        inputs.triglycerides is not None
        and inputs.triglycerides >= TRIGLYCERIDES_THRESHOLDS["borderline"],
        bp_stage1_or_higher(inputs),
        whtr is not None and whtr >= WHTR_THRESHOLD,
    )
    return any(secondary_flags)


def evaluate_weight_cascade(
    inputs: HealthInputs, results: HealthResults, medications: MedicationState
) -> Suggestion | None:
    if not weight_cascade_triggered(inputs, results):
        return None
    return run_cascade("weight", WEIGHT_CASCADE, medications)
