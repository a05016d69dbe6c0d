"""
Unit system definitions, conversions, and locale detection.

All values in HealthInputs (and in storage) are SI canonical units. This
module converts between SI and conventional (US) display units.

Canonical units:
  height/waist: cm        | weight: kg          | BP: mmHg (universal)
  HbA1c: mmol/mol (IFCC)  | lipids: mmol/L      | ApoB: g/L
  creatinine: umol/L      | PSA: ng/mL          | Lp(a): nmol/L
"""

import math
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Final


class MetricType(str, Enum):
    """Measurements the unit layer knows how to convert."""

    HEIGHT = "height"
    WEIGHT = "weight"
    WAIST = "waist"
    HBA1C = "hba1c"
    LDL = "ldl"
    HDL = "hdl"
    TRIGLYCERIDES = "triglycerides"
    TOTAL_CHOLESTEROL = "total_cholesterol"
    SYSTOLIC_BP = "systolic_bp"
    DIASTOLIC_BP = "diastolic_bp"
    APOB = "apob"
    CREATININE = "creatinine"
    PSA = "psa"
    LPA = "lpa"


class UnitSystem(str, Enum):
    """SI = metric + mmol/L (NZ, UK, AU, EU). Conventional = imperial + mg/dL (US)."""

    SI = "si"
    CONVENTIONAL = "conventional"


@dataclass(frozen=True)
class ValueRange:
    min: float
    max: float


@dataclass(frozen=True)
class UnitDef:
    """Per-metric conversion rules, keyed by unit system."""

    canonical: str
    label: dict[UnitSystem, str]
    to_canonical: dict[UnitSystem, Callable[[float], float]]
    from_canonical: dict[UnitSystem, Callable[[float], float]]
    validation_range: dict[UnitSystem, ValueRange]
    decimal_places: dict[UnitSystem, int]


# ---------------------------------------------------------------------------
# Conversion constants
# ---------------------------------------------------------------------------

LBS_PER_KG: Final = 2.20462
CM_PER_INCH: Final = 2.54
INCHES_PER_FOOT: Final = 12

# Lipid molecular-weight factors (mg/dL per mmol/L)
CHOLESTEROL_FACTOR: Final = 38.67  # LDL, HDL, total cholesterol
TRIGLYCERIDES_FACTOR: Final = 88.57

APOB_FACTOR: Final = 100  # mg/dL per g/L
CREATININE_FACTOR: Final = 88.4  # umol/L per mg/dL


# HbA1c: NGSP % = 0.09148 x IFCC + 2.152
def hba1c_ngsp_to_ifcc(ngsp: float) -> float:
    return (ngsp - 2.152) / 0.09148


def hba1c_ifcc_to_ngsp(ifcc: float) -> float:
    return 0.09148 * ifcc + 2.152


def _identity(value: float) -> float:
    return value


def _mmol_mgdl_unit(
    factor: float,
    si_range: ValueRange,
    conv_range: ValueRange,
    si_dp: int = 1,
    conv_dp: int = 0,
) -> UnitDef:
    """mmol/L <-> mg/dL conversion using a multiplication factor."""
    return UnitDef(
        canonical="mmol/L",
        label={UnitSystem.SI: "mmol/L", UnitSystem.CONVENTIONAL: "mg/dL"},
        to_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: lambda v: v / factor},
        from_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: lambda v: v * factor},
        validation_range={UnitSystem.SI: si_range, UnitSystem.CONVENTIONAL: conv_range},
        decimal_places={UnitSystem.SI: si_dp, UnitSystem.CONVENTIONAL: conv_dp},
    )


def _identity_unit(canonical: str, value_range: ValueRange, dp: int) -> UnitDef:
    """Same unit in both systems."""
    return UnitDef(
        canonical=canonical,
        label={UnitSystem.SI: canonical, UnitSystem.CONVENTIONAL: canonical},
        to_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: _identity},
        from_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: _identity},
        validation_range={UnitSystem.SI: value_range, UnitSystem.CONVENTIONAL: value_range},
        decimal_places={UnitSystem.SI: dp, UnitSystem.CONVENTIONAL: dp},
    )


def _length_unit(si_range: ValueRange, conv_range: ValueRange) -> UnitDef:
    return UnitDef(
        canonical="cm",
        label={UnitSystem.SI: "cm", UnitSystem.CONVENTIONAL: "in"},
        to_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v * CM_PER_INCH,
        },
        from_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v / CM_PER_INCH,
        },
        validation_range={UnitSystem.SI: si_range, UnitSystem.CONVENTIONAL: conv_range},
        decimal_places={UnitSystem.SI: 0, UnitSystem.CONVENTIONAL: 1},
    )


UNIT_DEFS: Final[dict[MetricType, UnitDef]] = {
    MetricType.HEIGHT: _length_unit(ValueRange(50, 250), ValueRange(20, 98)),
    MetricType.WAIST: _length_unit(ValueRange(40, 200), ValueRange(16, 79)),
    MetricType.WEIGHT: UnitDef(
        canonical="kg",
        label={UnitSystem.SI: "kg", UnitSystem.CONVENTIONAL: "lbs"},
        to_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v / LBS_PER_KG,
        },
        from_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v * LBS_PER_KG,
        },
        validation_range={
            UnitSystem.SI: ValueRange(20, 300),
            UnitSystem.CONVENTIONAL: ValueRange(44, 661),
        },
        decimal_places={UnitSystem.SI: 1, UnitSystem.CONVENTIONAL: 0},
    ),
    MetricType.HBA1C: UnitDef(
        canonical="mmol/mol",
        label={UnitSystem.SI: "mmol/mol", UnitSystem.CONVENTIONAL: "%"},
        to_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: hba1c_ngsp_to_ifcc},
        from_canonical={UnitSystem.SI: _identity, UnitSystem.CONVENTIONAL: hba1c_ifcc_to_ngsp},
        validation_range={
            UnitSystem.SI: ValueRange(9, 195),
            UnitSystem.CONVENTIONAL: ValueRange(3, 20),
        },
        decimal_places={UnitSystem.SI: 0, UnitSystem.CONVENTIONAL: 1},
    ),
    MetricType.LDL: _mmol_mgdl_unit(CHOLESTEROL_FACTOR, ValueRange(0, 12.9), ValueRange(0, 500)),
    MetricType.HDL: _mmol_mgdl_unit(CHOLESTEROL_FACTOR, ValueRange(0, 5.2), ValueRange(0, 200)),
    MetricType.TOTAL_CHOLESTEROL: _mmol_mgdl_unit(
        CHOLESTEROL_FACTOR, ValueRange(0, 15), ValueRange(0, 580)
    ),
    MetricType.TRIGLYCERIDES: _mmol_mgdl_unit(
        TRIGLYCERIDES_FACTOR, ValueRange(0, 22.6), ValueRange(0, 2000)
    ),
    MetricType.SYSTOLIC_BP: _identity_unit("mmHg", ValueRange(60, 250), 0),
    MetricType.DIASTOLIC_BP: _identity_unit("mmHg", ValueRange(40, 150), 0),
    MetricType.APOB: UnitDef(
        canonical="g/L",
        label={UnitSystem.SI: "g/L", UnitSystem.CONVENTIONAL: "mg/dL"},
        to_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v / APOB_FACTOR,
        },
        from_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v * APOB_FACTOR,
        },
        validation_range={
            UnitSystem.SI: ValueRange(0, 3),
            UnitSystem.CONVENTIONAL: ValueRange(0, 300),
        },
        decimal_places={UnitSystem.SI: 2, UnitSystem.CONVENTIONAL: 0},
    ),
    MetricType.CREATININE: UnitDef(
        canonical="µmol/L",
        label={UnitSystem.SI: "µmol/L", UnitSystem.CONVENTIONAL: "mg/dL"},
        to_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v * CREATININE_FACTOR,
        },
        from_canonical={
            UnitSystem.SI: _identity,
            UnitSystem.CONVENTIONAL: lambda v: v / CREATININE_FACTOR,
        },
        validation_range={
            UnitSystem.SI: ValueRange(10, 2650),
            UnitSystem.CONVENTIONAL: ValueRange(0.1, 30),
        },
        decimal_places={UnitSystem.SI: 0, UnitSystem.CONVENTIONAL: 2},
    ),
    MetricType.PSA: _identity_unit("ng/mL", ValueRange(0, 100), 1),
    MetricType.LPA: _identity_unit("nmol/L", ValueRange(0, 750), 0),
}


# ---------------------------------------------------------------------------
# Key coercion
# ---------------------------------------------------------------------------


def _metric(metric: MetricType | str) -> MetricType:
    try:
        return MetricType(metric)
    except ValueError:
        raise ValueError(f"Unknown metric type: {metric!r}") from None


def _system(system: UnitSystem | str) -> UnitSystem:
    try:
        return UnitSystem(system)
    except ValueError:
        raise ValueError(f"Unknown unit system: {system!r}") from None


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with ties away from negative infinity (x.5 -> x+1)."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def to_fixed(value: float, decimal_places: int) -> str:
    """Stringify with a fixed number of decimals, ties rounding up."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------


def to_canonical(metric: MetricType | str, value: float, system: UnitSystem | str) -> float:
    """Convert a display-unit value to the canonical (SI) unit."""
    return UNIT_DEFS[_metric(metric)].to_canonical[_system(system)](value)


def from_canonical(metric: MetricType | str, value: float, system: UnitSystem | str) -> float:
    """Convert a canonical (SI) value to the display unit."""
    return UNIT_DEFS[_metric(metric)].from_canonical[_system(system)](value)


def format_display(metric: MetricType | str, value: float, system: UnitSystem | str) -> str:
    """Format a canonical value for display (converted + rounded)."""
    unit = UNIT_DEFS[_metric(metric)]
    system = _system(system)
    return to_fixed(unit.from_canonical[system](value), unit.decimal_places[system])


def get_label(metric: MetricType | str, system: UnitSystem | str) -> str:
    """Display unit label, e.g. 'mg/dL' or 'mmol/L'."""
    return UNIT_DEFS[_metric(metric)].label[_system(system)]


def get_range(metric: MetricType | str, system: UnitSystem | str) -> ValueRange:
    """Valid input range in the given system's display units."""
    return UNIT_DEFS[_metric(metric)].validation_range[_system(system)]


def get_decimal_places(metric: MetricType | str, system: UnitSystem | str) -> int:
    return UNIT_DEFS[_metric(metric)].decimal_places[_system(system)]


def format_with_unit(metric: MetricType | str, value: float, system: UnitSystem | str) -> str:
    """Value plus unit label, e.g. '5.7 %' or '39 mmol/mol'."""
    return f"{format_display(metric, value, system)} {get_label(metric, system)}"


# ---------------------------------------------------------------------------
# Locale detection
# ---------------------------------------------------------------------------

# US, Liberia, Myanmar
CONVENTIONAL_COUNTRIES: Final = frozenset({"US", "LR", "MM"})

US_TIMEZONES: Final = frozenset(
    {
        "America/New_York", "America/Chicago", "America/Denver", "America/Los_Angeles",
        "America/Anchorage", "America/Phoenix", "America/Adak", "America/Detroit",
        "America/Boise", "America/Juneau", "America/Sitka", "America/Yakutat",
        "America/Nome", "America/Menominee", "America/Metlakatla",
        "Pacific/Honolulu",
    }
)

US_TIMEZONE_PREFIXES: Final = (
    "America/Indiana/",
    "America/Kentucky/",
    "America/North_Dakota/",
)


def is_us_timezone(timezone: str) -> bool:
    return timezone in US_TIMEZONES or timezone.startswith(US_TIMEZONE_PREFIXES)


def detect_system(locale: str | None, timezone: str | None = None) -> UnitSystem:
    """
    Detect the preferred unit system from a locale such as 'en-US' or 'en_NZ'.

    Many non-US users run their browser in US English, so a US locale is
    cross-checked against the timezone: a timezone clearly outside the US
    (e.g. Pacific/Auckland) falls back to SI. Unknown input falls back to SI.
    """
    if not locale:
        return UnitSystem.SI

    parts = locale.replace("_", "-").split("-")
    country = parts[-1].upper() if len(parts) > 1 else None

    if country in CONVENTIONAL_COUNTRIES:
        if country == "US" and timezone and not is_us_timezone(timezone):
            return UnitSystem.SI
        return UnitSystem.CONVENTIONAL

    return UnitSystem.SI


# ---------------------------------------------------------------------------
# Clinical thresholds (canonical units)
# ---------------------------------------------------------------------------

# mmol/mol (IFCC)
HBA1C_THRESHOLDS: Final = {
    "prediabetes": hba1c_ngsp_to_ifcc(5.7),  # ~38.8
    "diabetes": hba1c_ngsp_to_ifcc(6.5),  # ~47.5
}

# mmol/L
LDL_THRESHOLDS: Final = {
    "optimal": 100 / CHOLESTEROL_FACTOR,  # ~2.59
    "borderline": 130 / CHOLESTEROL_FACTOR,  # ~3.36
    "high": 160 / CHOLESTEROL_FACTOR,  # ~4.14
    "very_high": 190 / CHOLESTEROL_FACTOR,  # ~4.91
}

TOTAL_CHOLESTEROL_THRESHOLDS: Final = {
    "borderline": 200 / CHOLESTEROL_FACTOR,  # ~5.17
    "high": 240 / CHOLESTEROL_FACTOR,  # ~6.21
}

# LDL thresholds + 30 mg/dL for VLDL
NON_HDL_THRESHOLDS: Final = {
    "borderline": 160 / CHOLESTEROL_FACTOR,  # ~4.14
    "high": 190 / CHOLESTEROL_FACTOR,  # ~4.91
    "very_high": 220 / CHOLESTEROL_FACTOR,  # ~5.69
}

HDL_THRESHOLDS: Final = {
    "low_male": 40 / CHOLESTEROL_FACTOR,  # ~1.03
    "low_female": 50 / CHOLESTEROL_FACTOR,  # ~1.29
}

TRIGLYCERIDES_THRESHOLDS: Final = {
    "borderline": 150 / TRIGLYCERIDES_FACTOR,  # ~1.69
    "high": 200 / TRIGLYCERIDES_FACTOR,  # ~2.26
    "very_high": 500 / TRIGLYCERIDES_FACTOR,  # ~5.64
}

# mmHg, same in both systems
BP_THRESHOLDS: Final = {
    "elevated_sys": 120,
    "stage1_sys": 130,
    "stage1_dia": 80,
    "stage2_sys": 140,
    "stage2_dia": 90,
    "crisis_sys": 180,
    "crisis_dia": 120,
}

# mL/min/1.73m2
EGFR_THRESHOLDS: Final = {
    "low_normal": 60,
    "mildly_decreased": 45,
    "moderately_decreased": 30,
    "severely_decreased": 15,
}

# g/L
APOB_THRESHOLDS: Final = {
    "borderline": 50 / APOB_FACTOR,  # 0.5
    "high": 70 / APOB_FACTOR,  # 0.7
    "very_high": 100 / APOB_FACTOR,  # 1.0
}

# ng/mL
PSA_THRESHOLDS: Final = {"normal": 4.0}

# nmol/L
LPA_THRESHOLDS: Final = {"normal": 75, "elevated": 125}

# Waist-to-height ratio at or above this indicates central adiposity
WHTR_THRESHOLD: Final = 0.5


# ---------------------------------------------------------------------------
# Feet/inches helpers (US height display)
# ---------------------------------------------------------------------------


def inches_to_feet_inches(total_inches: float) -> tuple[int, int]:
    """Split inches into (feet, inches) with inches in 0-11."""
    feet = math.floor(total_inches / INCHES_PER_FOOT)
    inches = math.floor(total_inches % INCHES_PER_FOOT + 0.5)
    if inches >= INCHES_PER_FOOT:
        return feet + 1, 0
    return feet, inches


def feet_inches_to_inches(feet: int, inches: float) -> float:
    return feet * INCHES_PER_FOOT + inches


def cm_to_feet_inches(cm: float) -> tuple[int, int]:
    return inches_to_feet_inches(cm / CM_PER_INCH)


def feet_inches_to_cm(feet: int, inches: float) -> float:
    return feet_inches_to_inches(feet, inches) * CM_PER_INCH


def format_height_display(cm: float, system: UnitSystem | str) -> str:
    """'X cm' for SI, X'Y" for conventional."""
    if _system(system) is UnitSystem.SI:
        return f"{math.floor(cm + 0.5)} cm"
    feet, inches = cm_to_feet_inches(cm)
    return f"{feet}'{inches}\""
