"""
Domain models for health metric derivation and recommendations.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation. Every numeric health value is stored in SI
canonical units; display conversion happens in `health_core.domain.units`.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from health_core.domain.units import UnitSystem


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


# ---------------------------------------------------------------------------
# Inputs and results
# ---------------------------------------------------------------------------


class HealthInputs(BaseModel):
    """Raw measurements for one person (SI canonical units)."""

    model_config = ConfigDict(frozen=True)

    height_cm: float = Field(gt=0, description="Height in cm")
    sex: Sex
    weight_kg: float | None = Field(None, gt=0, description="Weight in kg")
    waist_cm: float | None = Field(None, gt=0, description="Waist circumference in cm")
    birth_year: int | None = Field(None, ge=1900)
    birth_month: int | None = Field(None, ge=1, le=12)

    systolic_bp: float | None = Field(None, gt=0, description="mmHg")
    diastolic_bp: float | None = Field(None, gt=0, description="mmHg")

    hba1c: float | None = Field(None, ge=0, description="mmol/mol (IFCC)")
    ldl_c: float | None = Field(None, ge=0, description="mmol/L")
    total_cholesterol: float | None = Field(None, ge=0, description="mmol/L")
    hdl_c: float | None = Field(None, ge=0, description="mmol/L")
    triglycerides: float | None = Field(None, ge=0, description="mmol/L")
    apob: float | None = Field(None, ge=0, description="g/L")
    creatinine: float | None = Field(None, gt=0, description="umol/L")
    lpa: float | None = Field(None, ge=0, description="nmol/L")
    psa: float | None = Field(None, ge=0, description="ng/mL")

    unit_system: UnitSystem | None = Field(None, description="Display preference")


class SuggestionCategory(str, Enum):
    NUTRITION = "nutrition"
    EXERCISE = "exercise"
    BLOODWORK = "bloodwork"
    BLOOD_PRESSURE = "blood_pressure"
    MEDICATION = "medication"
    SCREENING = "screening"
    SLEEP = "sleep"
    SUPPLEMENTS = "supplements"
    SKIN = "skin"
    GENERAL = "general"


class Priority(str, Enum):
    INFO = "info"
    ATTENTION = "attention"
    URGENT = "urgent"


class Suggestion(BaseModel):
    """A health suggestion to discuss with a doctor."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    category: SuggestionCategory
    priority: Priority
    title: str
    description: str
    link: str | None = None
    discuss_with_doctor: bool = False


class BMICategory(str, Enum):
    """BMI band, with the overweight band refined by waist-to-height ratio."""

    UNDERWEIGHT = "Underweight"
    NORMAL = "Normal"
    OVERWEIGHT = "Overweight"
    # BMI 25-29.9 without a waist measurement: neither normal nor overweight
    MEASURE_WAIST = "Measure waist to classify"
    OBESE_CLASS_I = "Obese (Class I)"
    OBESE_CLASS_II = "Obese (Class II)"
    OBESE_CLASS_III = "Obese (Class III)"

    @property
    def is_obese(self) -> bool:
        return self in (
            BMICategory.OBESE_CLASS_I,
            BMICategory.OBESE_CLASS_II,
            BMICategory.OBESE_CLASS_III,
        )


class HealthResults(BaseModel):
    """Derived values. A field is None when its inputs are missing."""

    model_config = ConfigDict(frozen=True)

    ideal_body_weight: float
    protein_target: int
    bmi: float | None = None
    waist_to_height_ratio: float | None = None
    bmi_category: BMICategory | None = None
    non_hdl_cholesterol: float | None = None
    apob: float | None = None
    ldl_c: float | None = None
    lpa: float | None = None
    egfr: int | None = None
    age: int | None = None
    suggestions: list[Suggestion] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Medications
# ---------------------------------------------------------------------------


class MedicationStatus(str, Enum):
    NOT_STARTED = "not_started"
    DECLINED = "declined"
    NOT_TOLERATED = "not_tolerated"
    INTENDED = "intended"
    ACTIVE = "active"


class MedicationSlot(BaseModel):
    """State of one drug-class slot."""

    model_config = ConfigDict(frozen=True)

    status: MedicationStatus = MedicationStatus.NOT_STARTED
    drug: str | None = None
    dose: float | None = Field(None, gt=0)

    @classmethod
    def active(cls, drug: str, dose: float | None = None) -> "MedicationSlot":
        return cls(status=MedicationStatus.ACTIVE, drug=drug, dose=dose)

    @classmethod
    def not_tolerated(cls) -> "MedicationSlot":
        return cls(status=MedicationStatus.NOT_TOLERATED)

    @classmethod
    def declined(cls) -> "MedicationSlot":
        return cls(status=MedicationStatus.DECLINED)

    @property
    def is_active(self) -> bool:
        return self.status is MedicationStatus.ACTIVE

    @property
    def is_handled(self) -> bool:
        """Active, not tolerated, or explicitly declined."""
        return self.status in (
            MedicationStatus.ACTIVE,
            MedicationStatus.NOT_TOLERATED,
            MedicationStatus.DECLINED,
        )


class MedicationState(BaseModel):
    """Slots of the lipid and weight/diabetes cascades."""

    model_config = ConfigDict(frozen=True)

    statin: MedicationSlot = Field(default_factory=MedicationSlot)
    ezetimibe: MedicationSlot = Field(default_factory=MedicationSlot)
    statin_escalation: MedicationSlot = Field(default_factory=MedicationSlot)
    pcsk9i: MedicationSlot = Field(default_factory=MedicationSlot)
    glp1: MedicationSlot = Field(default_factory=MedicationSlot)
    glp1_escalation: MedicationSlot = Field(default_factory=MedicationSlot)
    sglt2i: MedicationSlot = Field(default_factory=MedicationSlot)
    metformin: MedicationSlot = Field(default_factory=MedicationSlot)


class MedicationRecord(BaseModel):
    """A stored medication row as handed over by the persistence layer."""

    model_config = ConfigDict(frozen=True)

    medication_key: str
    drug_name: str
    dose_value: float | None = None
    dose_unit: str | None = None
    updated_at: datetime


# ---------------------------------------------------------------------------
# Screening
# ---------------------------------------------------------------------------


class ScreeningType(str, Enum):
    COLORECTAL = "colorectal"
    BREAST = "breast"
    CERVICAL = "cervical"
    LUNG = "lung"
    PROSTATE = "prostate"
    DEXA = "dexa"


class ScreeningResult(str, Enum):
    NORMAL = "normal"
    ABNORMAL = "abnormal"
    AWAITING = "awaiting"
    # Bone density outcomes; osteoporosis follows the abnormal path
    OSTEOPENIA = "osteopenia"
    OSTEOPOROSIS = "osteoporosis"


class FollowupStatus(str, Enum):
    NOT_ORGANIZED = "not_organized"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


class SmokingHistory(str, Enum):
    NEVER_SMOKED = "never_smoked"
    FORMER_SMOKER = "former_smoker"
    CURRENT_SMOKER = "current_smoker"


class ProstateDiscussion(str, Enum):
    NOT_YET = "not_yet"
    WILL_SCREEN = "will_screen"
    ELECTED_NOT_TO = "elected_not_to"


class ScreeningRecord(BaseModel):
    """Method and dates for one screening type. Dates are 'YYYY-MM'."""

    model_config = ConfigDict(frozen=True)

    method: str | None = None
    last_date: str | None = None
    result: ScreeningResult | None = None
    followup_status: FollowupStatus | None = None
    followup_date: str | None = None


class ScreeningState(BaseModel):
    """Screening history across all types."""

    model_config = ConfigDict(frozen=True)

    colorectal: ScreeningRecord | None = None
    breast: ScreeningRecord | None = None
    cervical: ScreeningRecord | None = None
    lung: ScreeningRecord | None = None
    prostate: ScreeningRecord | None = None
    dexa: ScreeningRecord | None = None

    lung_smoking_history: SmokingHistory | None = None
    lung_pack_years: float | None = Field(None, ge=0, allow_inf_nan=False)
    prostate_discussion: ProstateDiscussion | None = None
    prostate_psa_value: float | None = Field(None, ge=0, allow_inf_nan=False)
    endometrial_discussion: str | None = None
    endometrial_abnormal_bleeding: str | None = None

    def record(self, screening_type: ScreeningType) -> ScreeningRecord | None:
        return getattr(self, ScreeningType(screening_type).value)


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


class ReminderGroup(str, Enum):
    SCREENING = "screening"
    BLOOD_TEST = "blood_test"
    MEDICATION_REVIEW = "medication_review"


class ReminderCategory(str, Enum):
    SCREENING_COLORECTAL = "screening_colorectal"
    SCREENING_BREAST = "screening_breast"
    SCREENING_CERVICAL = "screening_cervical"
    SCREENING_LUNG = "screening_lung"
    SCREENING_PROSTATE = "screening_prostate"
    SCREENING_DEXA = "screening_dexa"
    BLOOD_TEST_LIPIDS = "blood_test_lipids"
    BLOOD_TEST_HBA1C = "blood_test_hba1c"
    BLOOD_TEST_CREATININE = "blood_test_creatinine"
    MEDICATION_REVIEW = "medication_review"


class DueReminder(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: ReminderCategory
    group: ReminderGroup
    title: str
    description: str


class BloodTestPanel(str, Enum):
    LIPIDS = "lipids"
    HBA1C = "hba1c"
    CREATININE = "creatinine"


class BloodTestDate(BaseModel):
    """Last test date per panel, shown as context next to reminders."""

    model_config = ConfigDict(frozen=True)

    panel: BloodTestPanel
    label: str
    last_date: datetime
    is_overdue: bool


class ReminderProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    sex: Sex
    age: int = Field(ge=0)


class RemindersResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    reminders: list[DueReminder] = Field(default_factory=list)
    blood_test_dates: list[BloodTestDate] = Field(default_factory=list)
