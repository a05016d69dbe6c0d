"""
Mappings from stored records to domain state.

The persistence layer hands over flat rows (measurements, medication rows,
screening key/value rows, the profile). These helpers turn them into the
models the calculator and reminder aggregator consume. Unknown keys and
unparseable values are skipped so older clients and newer schemas can
coexist.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, ValidationError

from health_core.domain.models import (
    HealthInputs,
    MedicationRecord,
    MedicationSlot,
    MedicationState,
    MedicationStatus,
    ScreeningRecord,
    ScreeningState,
    Sex,
)
from health_core.domain.units import UnitSystem
from health_core.observability import get_logger

logger = get_logger(__name__)


class MeasurementRecord(BaseModel):
    """One immutable measurement row, value in canonical units."""

    model_config = ConfigDict(frozen=True)

    metric_type: str
    value: float
    recorded_at: datetime


class ScreeningRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    screening_key: str
    value: str


class ProfileRecord(BaseModel):
    """Profile row. Sex and unit system are stored as small integer codes."""

    model_config = ConfigDict(frozen=True)

    sex: int | None = None
    birth_year: int | None = None
    birth_month: int | None = None
    unit_system: int | None = None
    height: float | None = None


# metric_type -> HealthInputs field. Height lives on the profile, not here.
METRIC_TO_FIELD: Final = {
    "weight": "weight_kg",
    "waist": "waist_cm",
    "hba1c": "hba1c",
    "ldl": "ldl_c",
    "total_cholesterol": "total_cholesterol",
    "hdl": "hdl_c",
    "triglycerides": "triglycerides",
    "systolic_bp": "systolic_bp",
    "diastolic_bp": "diastolic_bp",
    "apob": "apob",
    "creatinine": "creatinine",
    "psa": "psa",
    "lpa": "lpa",
}

SEX_CODES: Final = {1: Sex.MALE, 2: Sex.FEMALE}
UNIT_SYSTEM_CODES: Final = {1: UnitSystem.SI, 2: UnitSystem.CONVENTIONAL}


def encode_sex(sex: Sex) -> int:
    return 1 if sex is Sex.MALE else 2


def decode_sex(code: int) -> Sex | None:
    return SEX_CODES.get(code)


def encode_unit_system(system: UnitSystem) -> int:
    return 1 if system is UnitSystem.SI else 2


def decode_unit_system(code: int) -> UnitSystem | None:
    return UNIT_SYSTEM_CODES.get(code)


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------

MEDICATION_SLOTS: Final = frozenset(MedicationState.model_fields)

# Stored drug_name placeholders -> status
_STATUS_VALUES: Final = {
    "not_yet": MedicationStatus.NOT_STARTED,
    "none": MedicationStatus.NOT_STARTED,
    "": MedicationStatus.NOT_STARTED,
    "not_tolerated": MedicationStatus.NOT_TOLERATED,
    "declined": MedicationStatus.DECLINED,
    "no": MedicationStatus.DECLINED,
    "intended": MedicationStatus.INTENDED,
}


def slot_from_record(record: MedicationRecord) -> MedicationSlot:
    """Interpret one stored medication row."""
    name = record.drug_name.strip().lower()
    if name in _STATUS_VALUES:
        return MedicationSlot(status=_STATUS_VALUES[name])
    if name == "yes":
        # Single-drug slots store "yes" rather than a drug name
        return MedicationSlot.active(record.medication_key)
    dose = record.dose_value if record.dose_value and record.dose_value > 0 else None
    return MedicationSlot.active(name, dose)


def medications_from_records(records: Iterable[MedicationRecord]) -> MedicationState:
    slots: dict[str, MedicationSlot] = {}
    for record in records:
        if record.medication_key not in MEDICATION_SLOTS:
            logger.debug("medication_key_ignored", key=record.medication_key)
            continue
        slots[record.medication_key] = slot_from_record(record)
    return MedicationState(**slots)


# ---------------------------------------------------------------------------
# Screenings
# ---------------------------------------------------------------------------

# Method keys whose names don't follow "<type>_method"
METHOD_KEYS: Final = {
    "colorectal_method": "colorectal",
    "breast_frequency": "breast",
    "cervical_method": "cervical",
    "lung_screening": "lung",
    "dexa_screening": "dexa",
}

RECORD_SUFFIXES: Final = {
    "_last_date": "last_date",
    "_result": "result",
    "_followup_status": "followup_status",
    "_followup_date": "followup_date",
}

SCREENING_TYPES: Final = ("colorectal", "breast", "cervical", "lung", "prostate", "dexa")

# Top-level ScreeningState fields stored under their own key
STATE_FIELDS: Final = frozenset(
    {
        "lung_smoking_history",
        "lung_pack_years",
        "prostate_discussion",
        "prostate_psa_value",
        "endometrial_discussion",
        "endometrial_abnormal_bleeding",
    }
)


def _record_field(key: str) -> tuple[str, str] | None:
    """'colorectal_last_date' -> ('colorectal', 'last_date')."""
    if key in METHOD_KEYS:
        return METHOD_KEYS[key], "method"
    for screening_type in SCREENING_TYPES:
        prefix = f"{screening_type}_"
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix) - 1 :]
        if suffix in RECORD_SUFFIXES:
            return screening_type, RECORD_SUFFIXES[suffix]
    return None


def _parse(model: type[BaseModel], field: str, key: str, value: str) -> Any:
    """Run one stored value through the model's own validation for `field`."""
    try:
        return getattr(model.model_validate({field: value}), field)
    except ValidationError:
        logger.warning("stored_value_unparseable", key=key)
        return None


def screenings_from_records(rows: Iterable[ScreeningRow]) -> ScreeningState:
    """Bad values are skipped one field at a time; the rest of the state survives."""
    records: dict[str, dict[str, Any]] = {}
    fields: dict[str, Any] = {}

    for row in rows:
        if row.screening_key in STATE_FIELDS:
            parsed = _parse(ScreeningState, row.screening_key, row.screening_key, row.value)
            if parsed is not None:
                fields[row.screening_key] = parsed
            continue

        target = _record_field(row.screening_key)
        if target is None:
            logger.debug("screening_key_ignored", key=row.screening_key)
            continue
        screening_type, field = target
        parsed = _parse(ScreeningRecord, field, row.screening_key, row.value)
        if parsed is not None:
            records.setdefault(screening_type, {})[field] = parsed

    return ScreeningState(**records, **fields)


# ---------------------------------------------------------------------------
# Measurements
# ---------------------------------------------------------------------------


def _latest_per_metric(measurements: Iterable[MeasurementRecord]) -> dict[str, MeasurementRecord]:
    latest: dict[str, MeasurementRecord] = {}
    for m in measurements:
        current = latest.get(m.metric_type)
        if current is None or m.recorded_at > current.recorded_at:
            latest[m.metric_type] = m
    return latest


def latest_measurement_dates(measurements: Iterable[MeasurementRecord]) -> dict[str, datetime]:
    """Most recent recorded_at per metric type."""
    return {
        metric: record.recorded_at for metric, record in _latest_per_metric(measurements).items()
    }


def inputs_from_measurements(
    measurements: Iterable[MeasurementRecord], profile: ProfileRecord | None
) -> HealthInputs | None:
    """
    Latest value per metric combined with profile demographics.

    Returns None while height or sex is still missing, since no metric can be
    computed without them.
    """
    fields: dict[str, Any] = {}
    for metric, record in _latest_per_metric(measurements).items():
        field = METRIC_TO_FIELD.get(metric)
        if field is not None:
            fields[field] = record.value

    if profile is not None:
        if profile.sex is not None:
            fields["sex"] = decode_sex(profile.sex)
        if profile.birth_year is not None:
            fields["birth_year"] = profile.birth_year
        if profile.birth_month is not None:
            fields["birth_month"] = profile.birth_month
        if profile.unit_system is not None:
            fields["unit_system"] = decode_unit_system(profile.unit_system)
        if profile.height is not None:
            fields["height_cm"] = profile.height

    if not fields.get("height_cm") or fields.get("sex") is None:
        return None
    return HealthInputs(**fields)
