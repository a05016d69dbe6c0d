"""
Metrics calculator: derives clinical indices from raw inputs.

Every derived value is optional: when its inputs are missing the field is
left as None in `HealthResults` and the dependent suggestions are skipped.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Final

from health_core.config import get_config
from health_core.domain.models import (
    BMICategory,
    HealthInputs,
    HealthResults,
    MedicationState,
    ScreeningState,
    Sex,
)
from health_core.domain.units import (
    CREATININE_FACTOR,
    EGFR_THRESHOLDS,
    WHTR_THRESHOLD,
    UnitSystem,
    round_half_up,
)
from health_core.observability import get_logger
from health_core.services.suggestions import generate_suggestions

logger = get_logger(__name__)

# Devine formula
IBW_BASE_KG: Final = {Sex.MALE: 50.0, Sex.FEMALE: 45.5}
IBW_REFERENCE_HEIGHT_CM: Final = 152.4
IBW_KG_PER_CM: Final = 0.91
IBW_MINIMUM_KG: Final = 30.0

PROTEIN_G_PER_KG: Final = 1.2
PROTEIN_G_PER_KG_REDUCED_KIDNEY: Final = 1.0


def calculate_ibw(height_cm: float, sex: Sex) -> float:
    """Ideal body weight (kg), floored at 30 kg."""
    ibw = IBW_BASE_KG[Sex(sex)] + IBW_KG_PER_CM * (height_cm - IBW_REFERENCE_HEIGHT_CM)
    return max(ibw, IBW_MINIMUM_KG)


def calculate_protein_target(ibw_kg: float, egfr: float | None = None) -> int:
    """Daily protein grams; the lower multiplier applies only below eGFR 45."""
    multiplier = PROTEIN_G_PER_KG
    if egfr is not None and egfr < EGFR_THRESHOLDS["mildly_decreased"]:
        multiplier = PROTEIN_G_PER_KG_REDUCED_KIDNEY
    return int(round_half_up(ibw_kg * multiplier))


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    height_m = height_cm / 100
    return weight_kg / (height_m * height_m)


def calculate_waist_to_height(waist_cm: float, height_cm: float) -> float:
    return waist_cm / height_cm


def _standard_bmi_band(bmi: float) -> BMICategory:
    if bmi < 18.5:
        return BMICategory.UNDERWEIGHT
    if bmi < 25:
        return BMICategory.NORMAL
    if bmi < 30:
        return BMICategory.OVERWEIGHT
    if bmi < 35:
        return BMICategory.OBESE_CLASS_I
    if bmi < 40:
        return BMICategory.OBESE_CLASS_II
    return BMICategory.OBESE_CLASS_III


def get_bmi_category(bmi: float, whtr: float | None = None) -> BMICategory:
    """
    BMI band, with the 25-29.9 band refined by waist-to-height ratio.

    Signals are tried in priority order; the first that applies wins. Only the
    overweight band is ever reclassified.
    """
    band = _standard_bmi_band(bmi)
    if band is not BMICategory.OVERWEIGHT:
        return band

    signals: tuple[Callable[[], BMICategory | None], ...] = (
        lambda: None
        if whtr is None
        else (BMICategory.NORMAL if whtr < WHTR_THRESHOLD else BMICategory.OVERWEIGHT),
        lambda: BMICategory.MEASURE_WAIST,
    )
    for signal in signals:
        category = signal()
        if category is not None:
            return category
    return band


def calculate_age(
    birth_year: int, birth_month: int | None = None, now: date | datetime | None = None
) -> int:
    """Whole years, minus one while the birth month is still ahead this year."""
    today = now or datetime.now(UTC)
    age = today.year - birth_year
    if birth_month is not None and today.month < birth_month:
        age -= 1
    return max(age, 0)


def calculate_egfr(creatinine_umol: float, age: int, sex: Sex) -> int:
    """
    CKD-EPI 2021 (race-free) estimated GFR in mL/min/1.73m2.

    eGFR = 142 x min(Scr/k, 1)^a x max(Scr/k, 1)^-1.200 x 0.9938^age [x 1.012 if female]
    with Scr in mg/dL, k = 0.7 (F) / 0.9 (M), a = -0.241 (F) / -0.302 (M).
    """
    scr = creatinine_umol / CREATININE_FACTOR
    female = Sex(sex) is Sex.FEMALE
    kappa = 0.7 if female else 0.9
    alpha = -0.241 if female else -0.302
    ratio = scr / kappa

    egfr = 142 * min(ratio, 1) ** alpha * max(ratio, 1) ** -1.200 * 0.9938**age
    if female:
        egfr *= 1.012
    return int(round_half_up(egfr))


def calculate_non_hdl(total_cholesterol: float, hdl_c: float) -> float:
    return total_cholesterol - hdl_c


def resolve_unit_system(inputs: HealthInputs, unit_system: UnitSystem | str | None) -> UnitSystem:
    """Explicit argument, then the stored preference, then the configured default."""
    if unit_system is not None:
        return UnitSystem(unit_system)
    if inputs.unit_system is not None:
        return inputs.unit_system
    return get_config().units.default_unit_system


def calculate_health_results(
    inputs: HealthInputs,
    unit_system: UnitSystem | str | None = None,
    medications: MedicationState | None = None,
    screenings: ScreeningState | None = None,
    now: datetime | None = None,
) -> HealthResults:
    """Derive all metrics and attach suggestions."""
    now = now or datetime.now(UTC)
    system = resolve_unit_system(inputs, unit_system)

    age = None
    if inputs.birth_year is not None:
        age = calculate_age(inputs.birth_year, inputs.birth_month, now)

    egfr = None
    if inputs.creatinine is not None and age is not None:
        egfr = calculate_egfr(inputs.creatinine, age, inputs.sex)

    ibw = calculate_ibw(inputs.height_cm, inputs.sex)

    bmi = None
    if inputs.weight_kg is not None:
        bmi = round_half_up(calculate_bmi(inputs.weight_kg, inputs.height_cm), 1)

    whtr = None
    if inputs.waist_cm is not None:
        whtr = round_half_up(calculate_waist_to_height(inputs.waist_cm, inputs.height_cm), 2)

    non_hdl = None
    if inputs.total_cholesterol is not None and inputs.hdl_c is not None:
        non_hdl = calculate_non_hdl(inputs.total_cholesterol, inputs.hdl_c)

    results = HealthResults(
        ideal_body_weight=round_half_up(ibw, 1),
        protein_target=calculate_protein_target(ibw, egfr),
        bmi=bmi,
        waist_to_height_ratio=whtr,
        bmi_category=get_bmi_category(bmi, whtr) if bmi is not None else None,
        non_hdl_cholesterol=non_hdl,
        apob=inputs.apob,
        ldl_c=inputs.ldl_c,
        lpa=inputs.lpa,
        egfr=egfr,
        age=age,
    )

    suggestions = generate_suggestions(inputs, results, system, medications, screenings, now)
    logger.debug("health_results_calculated", suggestion_count=len(suggestions))
    return results.model_copy(update={"suggestions": suggestions})
