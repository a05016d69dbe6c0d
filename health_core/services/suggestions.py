"""
Suggestion engine.

Pure function of inputs, calculated results, display unit system and the
optional medication / screening state. Suggestions come out in insertion
order; grouping by priority is left to the caller.

All comparisons use canonical (SI) values. The unit system only affects how
values are written into titles and descriptions.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Final

from health_core.domain.models import (
    BMICategory,
    HealthInputs,
    HealthResults,
    MedicationState,
    Priority,
    ScreeningState,
    ScreeningType,
    Sex,
    SmokingHistory,
    Suggestion,
    SuggestionCategory,
)
from health_core.domain.units import (
    APOB_THRESHOLDS,
    BP_THRESHOLDS,
    EGFR_THRESHOLDS,
    HBA1C_THRESHOLDS,
    HDL_THRESHOLDS,
    LDL_THRESHOLDS,
    LPA_THRESHOLDS,
    NON_HDL_THRESHOLDS,
    PSA_THRESHOLDS,
    TOTAL_CHOLESTEROL_THRESHOLDS,
    TRIGLYCERIDES_THRESHOLDS,
    WHTR_THRESHOLD,
    MetricType,
    UnitSystem,
    format_display,
    format_with_unit,
    to_fixed,
)
from health_core.observability import get_logger
from health_core.services.cascades import (
    bp_stage1_or_higher,
    evaluate_lipid_cascade,
    evaluate_weight_cascade,
    lipid_cascade_triggered,
    weight_cascade_triggered,
)
from health_core.services.screening import (
    ScreeningAssessment,
    ScreeningStatus,
    assess_screening,
    is_eligible,
)

logger = get_logger(__name__)

DOCTOR_CATEGORIES: Final = frozenset(
    {
        SuggestionCategory.BLOODWORK,
        SuggestionCategory.BLOOD_PRESSURE,
        SuggestionCategory.MEDICATION,
        SuggestionCategory.SCREENING,
    }
)

SODIUM_SYSTOLIC_THRESHOLD: Final = 116
SODIUM_SYSTOLIC_THRESHOLD_65_PLUS: Final = 126
OLDER_ADULT_AGE: Final = 65

GLP1_BMI_THRESHOLD: Final = 27
OVERWEIGHT_BMI: Final = 25

SUPPLEMENTS: Final = (
    (
        "supplement-microvitamin",
        "MicroVitamin+",
        "Daily all-in-one to support mental function, skin elasticity, exercise performance, "
        "and gut health.",
        "https://drstanfield.com/pages/my-supplements",
    ),
    (
        "supplement-omega3",
        "Omega-3",
        "Essential fatty acids for cardiovascular and brain health.",
        "https://amzn.to/4kgwthG",
    ),
    (
        "supplement-sleep",
        "Sleep by Dr Brad",
        "Support for quality sleep and recovery.",
        "https://drstanfield.com/products/sleep",
    ),
)


class SuggestionList:
    """Ordered suggestions with unique ids."""

    def __init__(self) -> None:
        self._items: list[Suggestion] = []
        self._ids: set[str] = set()

    def add(self, suggestion: Suggestion | None) -> None:
        if suggestion is None:
            return
        if suggestion.id in self._ids:
            raise ValueError(f"Duplicate suggestion id: {suggestion.id}")
        self._ids.add(suggestion.id)
        self._items.append(suggestion)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._ids

    def to_list(self) -> list[Suggestion]:
        return list(self._items)


def _card(
    id: str,
    category: SuggestionCategory,
    priority: Priority,
    title: str,
    description: str,
    link: str | None = None,
) -> Suggestion:
    return Suggestion(
        id=id,
        category=category,
        priority=priority,
        title=title,
        description=description,
        link=link,
        discuss_with_doctor=category in DOCTOR_CATEGORIES,
    )


def _bloodwork(id: str, priority: Priority, title: str, description: str) -> Suggestion:
    return _card(id, SuggestionCategory.BLOODWORK, priority, title, description)


# ---------------------------------------------------------------------------
# Lifestyle
# ---------------------------------------------------------------------------


def _protein_target(results: HealthResults, us: UnitSystem) -> Suggestion:
    weight = format_with_unit(MetricType.WEIGHT, results.ideal_body_weight, us)
    return _card(
        "protein-target",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        f"Daily protein target: {results.protein_target}g",
        f"Based on your ideal body weight of {weight}, aim for {results.protein_target}g of "
        "protein daily. This supports muscle maintenance and metabolic health.",
    )


def _low_salt(inputs: HealthInputs, results: HealthResults) -> Suggestion | None:
    if inputs.systolic_bp is None:
        return None
    threshold = SODIUM_SYSTOLIC_THRESHOLD
    if results.age is not None and results.age >= OLDER_ADULT_AGE:
        threshold = SODIUM_SYSTOLIC_THRESHOLD_65_PLUS
    if inputs.systolic_bp < threshold:
        return None
    return _card(
        "low-salt",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        "Reduce sodium intake",
        "Aim for less than 2,300mg of sodium daily. Most excess sodium comes from processed "
        "foods. Reducing sodium can help lower blood pressure.",
    )


def _high_potassium(results: HealthResults) -> Suggestion | None:
    if results.egfr is None or results.egfr < EGFR_THRESHOLDS["mildly_decreased"]:
        return None
    return _card(
        "high-potassium",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        "Increase potassium-rich foods",
        "Aim for 3,500-5,000mg of potassium daily from fruits, vegetables, and legumes. High "
        "potassium intake supports healthy blood pressure and cardiovascular function.",
    )


def _triglycerides_nutrition(inputs: HealthInputs, us: UnitSystem) -> Suggestion | None:
    trig = inputs.triglycerides
    if trig is None or trig < TRIGLYCERIDES_THRESHOLDS["borderline"]:
        return None
    value = format_with_unit(MetricType.TRIGLYCERIDES, trig, us)
    advice = (
        "Key measures: limit alcohol, reduce sugar and refined carbohydrate intake, and reduce "
        "total fat and calorie intake."
    )
    if trig >= TRIGLYCERIDES_THRESHOLDS["very_high"]:
        return _card(
            "trig-nutrition",
            SuggestionCategory.NUTRITION,
            Priority.ATTENTION,
            "Lower triglycerides with diet now",
            f"Your triglycerides of {value} are very high. Diet changes work within weeks and "
            f"are essential alongside medical care. {advice} Avoid alcohol entirely.",
        )
    if trig >= TRIGLYCERIDES_THRESHOLDS["high"]:
        return _card(
            "trig-nutrition",
            SuggestionCategory.NUTRITION,
            Priority.ATTENTION,
            "Reduce triglycerides with diet",
            f"Your triglycerides of {value} are high. Blood triglycerides are very "
            f"diet-sensitive, and improvements can be seen within 2-3 weeks. {advice}",
        )
    return _card(
        "trig-nutrition",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        "Improve triglycerides with diet",
        f"Your triglycerides of {value} are borderline high. Blood triglycerides are very "
        f"diet-sensitive, and improvements can be seen within 2-3 weeks. {advice}",
    )


def _reduce_alcohol(inputs: HealthInputs, results: HealthResults) -> Suggestion | None:
    category = results.bmi_category
    obese = category is not None and category.is_obese
    central_adiposity = category is BMICategory.OVERWEIGHT
    trigs_elevated = (
        inputs.triglycerides is not None
        and inputs.triglycerides >= TRIGLYCERIDES_THRESHOLDS["borderline"]
    )
    if not (obese or central_adiposity or trigs_elevated):
        return None
    return _card(
        "reduce-alcohol",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        "Reduce alcohol intake",
        "Alcohol adds calories without nutrition and raises triglycerides and blood pressure. "
        "Aim for alcohol-free days each week and no more than 1-2 standard drinks on any day.",
    )


def _always_exercise() -> Suggestion:
    return _card(
        "exercise",
        SuggestionCategory.EXERCISE,
        Priority.INFO,
        "Regular cardio and resistance training",
        "Aim for at least 150 minutes of moderate-intensity cardio plus 2-3 resistance training "
        "sessions per week. This combination supports cardiovascular health, muscle mass, and "
        "metabolic function.",
    )


def _always_sleep() -> Suggestion:
    return _card(
        "sleep",
        SuggestionCategory.SLEEP,
        Priority.INFO,
        "Prioritize quality sleep",
        "Aim for 7-9 hours of sleep per night. Maintain a consistent sleep schedule, limit "
        "screens before bed, and keep your bedroom cool and dark.",
    )


def _always_fiber() -> Suggestion:
    return _card(
        "fiber",
        SuggestionCategory.NUTRITION,
        Priority.INFO,
        "Maximize fiber intake",
        "Aim for 25-35g of fiber daily from whole grains, fruits, and vegetables. Increase "
        "gradually to avoid discomfort. If you have IBS or IBD, discuss appropriate fiber "
        "levels with your doctor.",
    )


def _weight_glp1(inputs: HealthInputs, results: HealthResults) -> Suggestion | None:
    """Standalone weight medication card, used only without medication tracking."""
    bmi = results.bmi
    if bmi is None or bmi <= OVERWEIGHT_BMI:
        return None

    if bmi > GLP1_BMI_THRESHOLD:
        reason = f"a BMI over {GLP1_BMI_THRESHOLD}"
    else:
        whtr = results.waist_to_height_ratio
        trigs_elevated = (
            inputs.triglycerides is not None
            and inputs.triglycerides >= TRIGLYCERIDES_THRESHOLDS["borderline"]
        )
        if whtr is not None and whtr >= WHTR_THRESHOLD:
            reason = "elevated BMI and waist measurements"
        elif trigs_elevated:
            reason = "elevated BMI and triglycerides"
        else:
            return None

    return _card(
        "weight-glp1",
        SuggestionCategory.MEDICATION,
        Priority.ATTENTION,
        "Weight management medication",
        f"With {reason}, you may benefit from discussing Tirzepatide (preferred) or Semaglutide "
        "with your doctor, in addition to diet, exercise, and sleep optimization.",
    )


# ---------------------------------------------------------------------------
# Blood work
# ---------------------------------------------------------------------------


def _hba1c(inputs: HealthInputs, us: UnitSystem) -> Suggestion | None:
    if inputs.hba1c is None:
        return None
    value = format_with_unit(MetricType.HBA1C, inputs.hba1c, us)
    if inputs.hba1c >= HBA1C_THRESHOLDS["diabetes"]:
        return _bloodwork(
            "hba1c-diabetic",
            Priority.URGENT,
            "HbA1c in diabetic range",
            f"Your HbA1c of {value} indicates diabetes. This requires medical management and "
            "lifestyle intervention.",
        )
    if inputs.hba1c >= HBA1C_THRESHOLDS["prediabetes"]:
        return _bloodwork(
            "hba1c-prediabetic",
            Priority.ATTENTION,
            "HbA1c indicates prediabetes",
            f"Your HbA1c of {value} is in the prediabetic range. Lifestyle changes now can "
            "prevent progression to diabetes.",
        )
    return _bloodwork(
        "hba1c-normal",
        Priority.INFO,
        "HbA1c in normal range",
        f"Your HbA1c of {value} is in the normal range. Continue healthy habits to maintain this.",
    )


def _apob_card(apob: float, us: UnitSystem) -> Suggestion | None:
    value = format_with_unit(MetricType.APOB, apob, us)
    if apob >= APOB_THRESHOLDS["very_high"]:
        return _bloodwork(
            "apob-very-high",
            Priority.URGENT,
            "Very high ApoB",
            f"Your ApoB of {value} is very high, indicating significantly elevated "
            "cardiovascular risk. Statin therapy and lifestyle intervention are typically "
            "recommended.",
        )
    if apob >= APOB_THRESHOLDS["high"]:
        return _bloodwork(
            "apob-high",
            Priority.ATTENTION,
            "High ApoB",
            f"Your ApoB of {value} is elevated. Consider lifestyle modifications and discuss "
            "treatment options to reduce cardiovascular risk.",
        )
    if apob >= APOB_THRESHOLDS["borderline"]:
        optimal = format_with_unit(MetricType.APOB, APOB_THRESHOLDS["borderline"], us)
        return _bloodwork(
            "apob-borderline",
            Priority.INFO,
            "Borderline high ApoB",
            f"Your ApoB of {value} is borderline. Optimal is <{optimal}.",
        )
    return None


def _non_hdl_card(non_hdl: float, us: UnitSystem) -> Suggestion | None:
    # Non-HDL is a cholesterol fraction, so it shares LDL's unit and precision
    value = format_with_unit(MetricType.LDL, non_hdl, us)
    if non_hdl >= NON_HDL_THRESHOLDS["very_high"]:
        return _bloodwork(
            "non-hdl-very-high",
            Priority.URGENT,
            "Very high non-HDL cholesterol",
            f"Your non-HDL cholesterol of {value} is very high. This reflects total atherogenic "
            "particle burden and indicates significantly elevated cardiovascular risk.",
        )
    if non_hdl >= NON_HDL_THRESHOLDS["high"]:
        return _bloodwork(
            "non-hdl-high",
            Priority.ATTENTION,
            "High non-HDL cholesterol",
            f"Your non-HDL cholesterol of {value} is high. Consider lifestyle modifications to "
            "reduce cardiovascular risk.",
        )
    if non_hdl >= NON_HDL_THRESHOLDS["borderline"]:
        optimal = format_with_unit(MetricType.LDL, NON_HDL_THRESHOLDS["borderline"], us)
        return _bloodwork(
            "non-hdl-borderline",
            Priority.INFO,
            "Borderline high non-HDL cholesterol",
            f"Your non-HDL cholesterol of {value} is borderline. Optimal is <{optimal}.",
        )
    return None


def _ldl_card(ldl: float, us: UnitSystem) -> Suggestion | None:
    value = format_with_unit(MetricType.LDL, ldl, us)
    if ldl >= LDL_THRESHOLDS["very_high"]:
        return _bloodwork(
            "ldl-very-high",
            Priority.URGENT,
            "Very high LDL cholesterol",
            f"Your LDL of {value} is significantly elevated. This may indicate familial "
            "hypercholesterolemia. Statin therapy is typically recommended.",
        )
    if ldl >= LDL_THRESHOLDS["high"]:
        return _bloodwork(
            "ldl-high",
            Priority.ATTENTION,
            "High LDL cholesterol",
            f"Your LDL of {value} is high. Consider lifestyle modifications and discuss "
            "medication options.",
        )
    if ldl >= LDL_THRESHOLDS["borderline"]:
        optimal = format_with_unit(MetricType.LDL, LDL_THRESHOLDS["optimal"], us)
        return _bloodwork(
            "ldl-borderline",
            Priority.INFO,
            "Borderline high LDL cholesterol",
            f"Your LDL of {value} is borderline high. Optimal is <{optimal} for most adults.",
        )
    return None


@dataclass(frozen=True)
class AtherogenicMarker:
    name: str
    value: Callable[[HealthInputs, HealthResults], float | None]
    evaluate: Callable[[float, UnitSystem], Suggestion | None]


# Highest priority first; only the first marker with a value is surfaced
ATHEROGENIC_HIERARCHY: Final = (
    AtherogenicMarker("apob", lambda inputs, results: inputs.apob, _apob_card),
    AtherogenicMarker(
        "non_hdl", lambda inputs, results: results.non_hdl_cholesterol, _non_hdl_card
    ),
    AtherogenicMarker("ldl", lambda inputs, results: inputs.ldl_c, _ldl_card),
)


def select_atherogenic_marker(
    inputs: HealthInputs, results: HealthResults
) -> tuple[AtherogenicMarker, float] | None:
    """The best available atherogenic marker and its value."""
    for marker in ATHEROGENIC_HIERARCHY:
        value = marker.value(inputs, results)
        if value is not None:
            return marker, value
    return None


def _total_cholesterol(inputs: HealthInputs, us: UnitSystem) -> Suggestion | None:
    total = inputs.total_cholesterol
    if total is None or total < TOTAL_CHOLESTEROL_THRESHOLDS["borderline"]:
        return None
    value = format_with_unit(MetricType.TOTAL_CHOLESTEROL, total, us)
    desirable = format_with_unit(
        MetricType.TOTAL_CHOLESTEROL, TOTAL_CHOLESTEROL_THRESHOLDS["borderline"], us
    )
    if total >= TOTAL_CHOLESTEROL_THRESHOLDS["high"]:
        return _bloodwork(
            "total-chol-high",
            Priority.ATTENTION,
            "High total cholesterol",
            f"Your total cholesterol of {value} is high. Desirable is <{desirable}.",
        )
    return _bloodwork(
        "total-chol-borderline",
        Priority.INFO,
        "Borderline high total cholesterol",
        f"Your total cholesterol of {value} is borderline high. Desirable is <{desirable}.",
    )


def _hdl_low(inputs: HealthInputs, us: UnitSystem) -> Suggestion | None:
    if inputs.hdl_c is None:
        return None
    male = inputs.sex is Sex.MALE
    low = HDL_THRESHOLDS["low_male"] if male else HDL_THRESHOLDS["low_female"]
    if inputs.hdl_c >= low:
        return None
    value = format_with_unit(MetricType.HDL, inputs.hdl_c, us)
    target = format_with_unit(MetricType.HDL, low, us)
    return _bloodwork(
        "hdl-low",
        Priority.ATTENTION,
        "Low HDL cholesterol",
        f"Your HDL of {value} is below optimal ({target} for {'men' if male else 'women'}). "
        "Exercise and healthy fats can help raise HDL.",
    )


def _triglycerides_very_high(inputs: HealthInputs, us: UnitSystem) -> Suggestion | None:
    trig = inputs.triglycerides
    if trig is None or trig < TRIGLYCERIDES_THRESHOLDS["very_high"]:
        return None
    return _bloodwork(
        "trig-very-high",
        Priority.URGENT,
        "Very high triglycerides",
        f"Your triglycerides of {format_with_unit(MetricType.TRIGLYCERIDES, trig, us)} are very "
        "high, increasing risk of pancreatitis. Immediate intervention is recommended.",
    )


def lpa_risk_factors(
    inputs: HealthInputs, results: HealthResults, screenings: ScreeningState | None
) -> list[str]:
    """Modifiable risk factors that matter more when Lp(a) is elevated."""
    factors = []
    if lipid_cascade_triggered(inputs, results):
        factors.append("bring ApoB / LDL cholesterol down to target")
    if bp_stage1_or_higher(inputs):
        factors.append("lower your blood pressure")
    if inputs.hba1c is not None and inputs.hba1c >= HBA1C_THRESHOLDS["prediabetes"]:
        factors.append("improve your blood sugar (HbA1c)")
    if results.bmi is not None and results.bmi >= OVERWEIGHT_BMI:
        factors.append("reduce body weight")
    if screenings is not None and screenings.lung_smoking_history is SmokingHistory.CURRENT_SMOKER:
        factors.append("stop smoking")
    return factors


def _lpa(
    inputs: HealthInputs, results: HealthResults, screenings: ScreeningState | None
) -> Suggestion | None:
    if inputs.lpa is None:
        return None
    value = format_with_unit(MetricType.LPA, inputs.lpa, UnitSystem.SI)
    if inputs.lpa < LPA_THRESHOLDS["normal"]:
        return _bloodwork(
            "lpa-normal",
            Priority.INFO,
            "Lp(a) in normal range",
            f"Your Lp(a) of {value} is in the normal range. Lp(a) is largely genetic, so a "
            "single normal result usually does not need repeating.",
        )
    if inputs.lpa < LPA_THRESHOLDS["elevated"]:
        return _bloodwork(
            "lpa-borderline",
            Priority.INFO,
            "Borderline Lp(a)",
            f"Your Lp(a) of {value} is borderline. Keeping other cardiovascular risk factors in "
            "check is the most effective response.",
        )

    factors = lpa_risk_factors(inputs, results, screenings)
    if factors:
        checklist = "; ".join(factors)
        action = f"Focus on the risk factors you can change: {checklist}."
    else:
        action = "Your other measured risk factors are in range, so keep them there."
    return _bloodwork(
        "lpa-elevated",
        Priority.ATTENTION,
        "Elevated Lp(a)",
        f"Your Lp(a) of {value} is elevated, which raises cardiovascular risk independently of "
        f"other lipids. Lp(a) is largely genetic and not changed by lifestyle. {action}",
    )


def _blood_pressure(inputs: HealthInputs, results: HealthResults) -> Suggestion | None:
    if inputs.systolic_bp is None or inputs.diastolic_bp is None:
        return None
    sys_bp, dia_bp = inputs.systolic_bp, inputs.diastolic_bp
    reading = "/".join(
        format_display(metric, value, UnitSystem.SI)
        for metric, value in ((MetricType.SYSTOLIC_BP, sys_bp), (MetricType.DIASTOLIC_BP, dia_bp))
    )

    if sys_bp >= BP_THRESHOLDS["crisis_sys"] or dia_bp >= BP_THRESHOLDS["crisis_dia"]:
        return _card(
            "bp-crisis",
            SuggestionCategory.BLOOD_PRESSURE,
            Priority.URGENT,
            "Hypertensive crisis",
            f"Your BP of {reading} mmHg is dangerously high. Seek immediate medical attention "
            "if accompanied by symptoms.",
        )
    if sys_bp >= BP_THRESHOLDS["stage2_sys"] or dia_bp >= BP_THRESHOLDS["stage2_dia"]:
        return _card(
            "bp-stage2",
            SuggestionCategory.BLOOD_PRESSURE,
            Priority.URGENT,
            "Stage 2 hypertension",
            f"Your BP of {reading} mmHg indicates stage 2 hypertension. Medication is typically "
            "recommended in addition to lifestyle changes.",
        )
    # Diastolic is strict here: 80 itself is not stage 1
    if sys_bp >= BP_THRESHOLDS["stage1_sys"] or dia_bp > BP_THRESHOLDS["stage1_dia"]:
        older = results.age is not None and results.age >= OLDER_ADULT_AGE
        target = "<130/80" if older else "<120/80"
        return _card(
            "bp-stage1",
            SuggestionCategory.BLOOD_PRESSURE,
            Priority.ATTENTION,
            "Stage 1 hypertension",
            f"Your BP of {reading} mmHg indicates stage 1 hypertension. Lifestyle modifications "
            f"are recommended. Target is {target}.",
        )
    return None


def _psa_elevated(inputs: HealthInputs, screenings: ScreeningState | None) -> Suggestion | None:
    if inputs.sex is not Sex.MALE:
        return None
    psa = inputs.psa
    if psa is None and screenings is not None:
        psa = screenings.prostate_psa_value
    if psa is None or psa <= PSA_THRESHOLDS["normal"]:
        return None
    return _card(
        "psa-elevated",
        SuggestionCategory.SCREENING,
        Priority.ATTENTION,
        "Elevated PSA",
        f"Your PSA of {to_fixed(psa, 1)} ng/mL is above the typical reference range "
        f"(<={to_fixed(PSA_THRESHOLDS['normal'], 1)}). Discuss with your doctor, as elevated "
        "PSA can have multiple causes.",
    )


# ---------------------------------------------------------------------------
# Screening
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScreeningCopy:
    """Card text for one screening type."""

    start_title: str
    start_description: Callable[[int, ScreeningState], str]
    test_name: str
    overdue_title: str
    upcoming_title: str
    start_priority: Callable[[int], Priority] = lambda age: Priority.ATTENTION


SCREENING_COPY: Final[dict[ScreeningType, ScreeningCopy]] = {
    ScreeningType.COLORECTAL: ScreeningCopy(
        start_title="Start colorectal cancer screening",
        start_description=lambda age, state: (
            "Colorectal screening is recommended. Options include annual FIT testing or "
            "colonoscopy every 10 years. Discuss with your doctor."
        ),
        test_name="colorectal screening",
        overdue_title="Colorectal screening overdue",
        upcoming_title="Colorectal screening up to date",
    ),
    ScreeningType.BREAST: ScreeningCopy(
        start_title="Start breast cancer screening",
        start_description=lambda age, state: (
            "Mammography is recommended at your age. Discuss with your doctor."
            if age >= 45
            else "Mammography is optional at your age (40-44). Discuss with your doctor."
        ),
        test_name="mammogram",
        overdue_title="Mammogram overdue",
        upcoming_title="Mammogram up to date",
        start_priority=lambda age: Priority.ATTENTION if age >= 45 else Priority.INFO,
    ),
    ScreeningType.CERVICAL: ScreeningCopy(
        start_title="Start cervical cancer screening",
        start_description=lambda age, state: (
            "HPV testing every 5 years (preferred) or Pap test every 3 years is recommended. "
            "Discuss with your doctor."
        ),
        test_name="cervical screening",
        overdue_title="Cervical screening overdue",
        upcoming_title="Cervical screening up to date",
    ),
    ScreeningType.LUNG: ScreeningCopy(
        start_title="Start lung cancer screening",
        start_description=lambda age, state: (
            f"With {state.lung_pack_years:g} pack-years of smoking history, annual low-dose CT "
            "screening is recommended. Discuss with your doctor."
        ),
        test_name="low-dose CT",
        overdue_title="Lung screening overdue",
        upcoming_title="Lung screening up to date",
    ),
    ScreeningType.PROSTATE: ScreeningCopy(
        start_title="Discuss prostate cancer screening",
        start_description=lambda age, state: (
            "PSA testing is an option after an informed discussion with your doctor. Benefits "
            "and risks vary by individual."
        ),
        test_name="PSA test",
        overdue_title="PSA test overdue",
        upcoming_title="PSA test up to date",
        start_priority=lambda age: Priority.INFO,
    ),
    ScreeningType.DEXA: ScreeningCopy(
        start_title="Discuss a bone density (DEXA) scan",
        start_description=lambda age, state: (
            "A DEXA scan checks for osteoporosis and is recommended at your age. Discuss with "
            "your doctor."
        ),
        test_name="DEXA bone density scan",
        overdue_title="DEXA bone density scan overdue",
        upcoming_title="DEXA bone density scan up to date",
    ),
}


def _screening_card(
    assessment: ScreeningAssessment, age: int, state: ScreeningState
) -> Suggestion | None:
    copy = SCREENING_COPY[assessment.screening_type]
    base_id = f"screening-{assessment.screening_type.value}"
    due_label = assessment.next_due.label() if assessment.next_due else ""

    if assessment.status is ScreeningStatus.NOT_STARTED:
        return _card(
            base_id,
            SuggestionCategory.SCREENING,
            copy.start_priority(age),
            copy.start_title,
            copy.start_description(age, state),
        )
    if assessment.status is ScreeningStatus.OVERDUE:
        return _card(
            f"{base_id}-overdue",
            SuggestionCategory.SCREENING,
            Priority.ATTENTION,
            copy.overdue_title,
            f"Your next {copy.test_name} was due {due_label}. Please schedule your screening.",
        )
    if assessment.status is ScreeningStatus.UPCOMING:
        return _card(
            f"{base_id}-upcoming",
            SuggestionCategory.SCREENING,
            Priority.INFO,
            copy.upcoming_title,
            f"Next {copy.test_name} due {due_label}.",
        )
    if assessment.status is ScreeningStatus.FOLLOWUP_NOT_ORGANIZED:
        return _card(
            f"{base_id}-followup",
            SuggestionCategory.SCREENING,
            Priority.ATTENTION,
            f"Organize follow-up for your {copy.test_name}",
            f"Your last {copy.test_name} result was abnormal. Please arrange the recommended "
            "follow-up with your doctor.",
        )
    if assessment.status is ScreeningStatus.FOLLOWUP_SCHEDULED:
        return _card(
            f"{base_id}-followup-scheduled",
            SuggestionCategory.SCREENING,
            Priority.INFO,
            f"Follow-up for your {copy.test_name} is scheduled",
            "Record the follow-up date once it is done so your next screening can be planned.",
        )
    return None


def _screening_suggestions(
    inputs: HealthInputs, age: int, screenings: ScreeningState, now: date | datetime
) -> list[Suggestion]:
    cards = []
    for screening_type in ScreeningType:
        if not is_eligible(screening_type, age, inputs.sex, screenings):
            continue
        card = _screening_card(assess_screening(screening_type, screenings, now), age, screenings)
        if card is not None:
            cards.append(card)

    if inputs.sex is Sex.FEMALE and age >= 45:
        if screenings.endometrial_abnormal_bleeding == "yes_need_to_report":
            cards.append(
                _card(
                    "screening-endometrial-bleeding",
                    SuggestionCategory.SCREENING,
                    Priority.URGENT,
                    "Report abnormal uterine bleeding",
                    "Abnormal uterine bleeding should be evaluated by your doctor promptly, "
                    "especially after menopause.",
                )
            )
        if screenings.endometrial_discussion in (None, "not_yet"):
            cards.append(
                _card(
                    "screening-endometrial",
                    SuggestionCategory.SCREENING,
                    Priority.INFO,
                    "Discuss endometrial cancer awareness",
                    "Women at menopause should be informed about the risks and symptoms of "
                    "endometrial cancer. Discuss with your doctor.",
                )
            )
    return cards


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def generate_suggestions(
    inputs: HealthInputs,
    results: HealthResults,
    unit_system: UnitSystem | str = UnitSystem.SI,
    medications: MedicationState | None = None,
    screenings: ScreeningState | None = None,
    now: date | datetime | None = None,
) -> list[Suggestion]:
    """Build the ordered suggestion list for one evaluation."""
    us = UnitSystem(unit_system)
    now = now or datetime.now(UTC)
    out = SuggestionList()

    # Lifestyle
    out.add(_protein_target(results, us))
    out.add(_low_salt(inputs, results))
    out.add(_always_fiber())
    out.add(_high_potassium(results))
    out.add(_triglycerides_nutrition(inputs, us))
    out.add(_reduce_alcohol(inputs, results))
    out.add(_always_exercise())
    out.add(_always_sleep())

    # With medication tracking the weight cascade replaces the standalone card
    if medications is None:
        out.add(_weight_glp1(inputs, results))

    out.add(_hba1c(inputs, us))

    # Atherogenic hierarchy: one marker only
    marker_card = None
    selected = select_atherogenic_marker(inputs, results)
    if selected is not None:
        marker, value = selected
        marker_card = marker.evaluate(value, us)
        out.add(marker_card)

    cascade_active = medications is not None and (
        lipid_cascade_triggered(inputs, results) or weight_cascade_triggered(inputs, results)
    )
    marker_flagged = marker_card is not None and marker_card.priority in (
        Priority.ATTENTION,
        Priority.URGENT,
    )
    if not (marker_flagged or cascade_active):
        out.add(_total_cholesterol(inputs, us))

    out.add(_hdl_low(inputs, us))
    out.add(_triglycerides_very_high(inputs, us))
    out.add(_lpa(inputs, results, screenings))
    out.add(_blood_pressure(inputs, results))

    if medications is not None:
        out.add(evaluate_lipid_cascade(inputs, results, medications))
        out.add(evaluate_weight_cascade(inputs, results, medications))

    if screenings is not None and results.age is not None:
        for card in _screening_suggestions(inputs, results.age, screenings, now):
            out.add(card)

    out.add(_psa_elevated(inputs, screenings))

    for id, title, description, link in SUPPLEMENTS:
        out.add(_card(id, SuggestionCategory.SUPPLEMENTS, Priority.INFO, title, description, link))

    suggestions = out.to_list()
    logger.info(
        "suggestions_generated",
        count=len(suggestions),
        urgent=sum(1 for s in suggestions if s.priority is Priority.URGENT),
        attention=sum(1 for s in suggestions if s.priority is Priority.ATTENTION),
    )
    return suggestions
