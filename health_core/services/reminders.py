"""
Reminder aggregation for scheduled health emails.

Collects due reminders from three independent sources:
- screening types that are overdue, including abnormal results whose
  follow-up is still open and records past a completed follow-up
- blood test panels not measured within the staleness window
- a single medication review when any active medication is stale

Cooldown state belongs to the caller: this module reads per-group
"cooldown active" flags and never records sends itself.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from typing import Final

from health_core.config import ReminderConfig, get_config
from health_core.domain.dates import format_month_label, is_older_than_months
from health_core.domain.medications import INACTIVE_DRUG_NAMES
from health_core.domain.models import (
    BloodTestDate,
    BloodTestPanel,
    DueReminder,
    MedicationRecord,
    ReminderCategory,
    ReminderGroup,
    ReminderProfile,
    RemindersResult,
    ScreeningState,
    ScreeningType,
)
from health_core.observability import get_logger
from health_core.services.screening import assess_screening, is_eligible

logger = get_logger(__name__)

REMINDER_CATEGORIES: Final = tuple(ReminderCategory)

REMINDER_CATEGORY_LABELS: Final[dict[ReminderCategory, str]] = {
    ReminderCategory.SCREENING_COLORECTAL: "Colorectal screening reminders",
    ReminderCategory.SCREENING_BREAST: "Mammogram reminders",
    ReminderCategory.SCREENING_CERVICAL: "Cervical screening reminders",
    ReminderCategory.SCREENING_LUNG: "Lung screening reminders",
    ReminderCategory.SCREENING_PROSTATE: "PSA test reminders",
    ReminderCategory.SCREENING_DEXA: "Bone density (DEXA) reminders",
    ReminderCategory.BLOOD_TEST_LIPIDS: "Lipid panel reminders",
    ReminderCategory.BLOOD_TEST_HBA1C: "HbA1c test reminders",
    ReminderCategory.BLOOD_TEST_CREATININE: "Creatinine test reminders",
    ReminderCategory.MEDICATION_REVIEW: "Medication review reminders",
}

# Default cooldown per group in days; ReminderConfig can override
GROUP_COOLDOWNS: Final[dict[ReminderGroup, int]] = {
    ReminderGroup.SCREENING: 90,
    ReminderGroup.BLOOD_TEST: 180,
    ReminderGroup.MEDICATION_REVIEW: 365,
}

SCREENING_REMINDERS: Final[dict[ScreeningType, tuple[ReminderCategory, str, str]]] = {
    ScreeningType.COLORECTAL: (
        ReminderCategory.SCREENING_COLORECTAL,
        "Colorectal screening overdue",
        "Your colorectal cancer screening is overdue. Please schedule with your doctor.",
    ),
    ScreeningType.BREAST: (
        ReminderCategory.SCREENING_BREAST,
        "Mammogram overdue",
        "Your mammogram is overdue. Please schedule your screening.",
    ),
    ScreeningType.CERVICAL: (
        ReminderCategory.SCREENING_CERVICAL,
        "Cervical screening overdue",
        "Your cervical screening is overdue. Please schedule with your doctor.",
    ),
    ScreeningType.LUNG: (
        ReminderCategory.SCREENING_LUNG,
        "Lung screening overdue",
        "Your low-dose CT lung screening is overdue. Please schedule your screening.",
    ),
    ScreeningType.PROSTATE: (
        ReminderCategory.SCREENING_PROSTATE,
        "PSA test overdue",
        "Your PSA test is overdue. Please schedule with your doctor.",
    ),
    ScreeningType.DEXA: (
        ReminderCategory.SCREENING_DEXA,
        "DEXA bone density scan overdue",
        "Your DEXA bone density scan is overdue. Please schedule with your doctor.",
    ),
}

# Panel -> (metric types that count towards it, label, category, test name)
BLOOD_TEST_PANELS: Final[
    dict[BloodTestPanel, tuple[tuple[str, ...], str, ReminderCategory, str]]
] = {
    BloodTestPanel.LIPIDS: (
        ("ldl", "total_cholesterol", "hdl", "triglycerides", "apob"),
        "Lipid panel",
        ReminderCategory.BLOOD_TEST_LIPIDS,
        "lipid panel",
    ),
    BloodTestPanel.HBA1C: (("hba1c",), "HbA1c", ReminderCategory.BLOOD_TEST_HBA1C, "HbA1c test"),
    BloodTestPanel.CREATININE: (
        ("creatinine",),
        "Creatinine",
        ReminderCategory.BLOOD_TEST_CREATININE,
        "creatinine test",
    ),
}


def get_category_group(category: ReminderCategory | str) -> ReminderGroup:
    """Cooldown group a reminder category belongs to."""
    category = ReminderCategory(category)
    if category.value.startswith("screening_"):
        return ReminderGroup.SCREENING
    if category.value.startswith("blood_test_"):
        return ReminderGroup.BLOOD_TEST
    return ReminderGroup.MEDICATION_REVIEW


def _reminder(category: ReminderCategory, title: str, description: str) -> DueReminder:
    return DueReminder(
        category=category, group=get_category_group(category), title=title, description=description
    )


def compute_screening_reminders(
    profile: ReminderProfile, screenings: ScreeningState | None, now: date | datetime
) -> list[DueReminder]:
    if screenings is None:
        return []

    reminders = []
    for screening_type, (category, title, description) in SCREENING_REMINDERS.items():
        if not is_eligible(screening_type, profile.age, profile.sex, screenings):
            continue
        assessment = assess_screening(screening_type, screenings, now)
        # Includes abnormal results whose follow-up never happened
        if assessment.is_overdue:
            reminders.append(_reminder(category, title, description))
    return reminders


def compute_blood_test_reminders(
    measurement_dates: Mapping[str, datetime], now: date | datetime, stale_months: int
) -> tuple[list[DueReminder], list[BloodTestDate]]:
    """Only panels the user has recorded before are considered."""
    reminders = []
    dates = []
    for panel, (metrics, label, category, test_name) in BLOOD_TEST_PANELS.items():
        recorded = [measurement_dates[m] for m in metrics if measurement_dates.get(m)]
        if not recorded:
            continue

        # Any constituent test refreshes the whole panel
        last_date = max(recorded)
        is_overdue = is_older_than_months(last_date, stale_months, now)
        dates.append(
            BloodTestDate(panel=panel, label=label, last_date=last_date, is_overdue=is_overdue)
        )
        if is_overdue:
            reminders.append(
                _reminder(
                    category,
                    f"{label} overdue"
                    if panel is BloodTestPanel.LIPIDS
                    else f"{label} test overdue",
                    f"It has been over a year since your last {test_name}. Consider scheduling "
                    "blood work with your doctor.",
                )
            )
    return reminders, dates


def is_active_medication(record: MedicationRecord) -> bool:
    return bool(record.drug_name) and record.drug_name not in INACTIVE_DRUG_NAMES


def compute_medication_reminders(
    medications: Iterable[MedicationRecord], now: date | datetime, stale_months: int
) -> list[DueReminder]:
    stale = any(
        is_older_than_months(record.updated_at, stale_months, now)
        for record in medications
        if is_active_medication(record)
    )
    if not stale:
        return []
    return [
        _reminder(
            ReminderCategory.MEDICATION_REVIEW,
            "Medication review due",
            "It has been over a year since your medications were last reviewed. Please discuss "
            "your current medications with your doctor.",
        )
    ]


def compute_due_reminders(
    profile: ReminderProfile,
    screenings: ScreeningState | None,
    measurement_dates: Mapping[str, datetime],
    medications: Iterable[MedicationRecord],
    now: date | datetime,
    config: ReminderConfig | None = None,
) -> RemindersResult:
    """All due reminders for one person, plus blood test context dates."""
    config = config or get_config().reminders

    screening = compute_screening_reminders(profile, screenings, now)
    blood_tests, blood_test_dates = compute_blood_test_reminders(
        measurement_dates, now, config.blood_test_stale_months
    )
    medication = compute_medication_reminders(
        medications, now, config.medication_review_stale_months
    )

    return RemindersResult(
        reminders=[*screening, *blood_tests, *medication], blood_test_dates=blood_test_dates
    )


def filter_by_preferences(
    reminders: Iterable[DueReminder], disabled_categories: Iterable[ReminderCategory | str]
) -> list[DueReminder]:
    """Drop reminders the user opted out of."""
    disabled = {ReminderCategory(category) for category in disabled_categories}
    return [reminder for reminder in reminders if reminder.category not in disabled]


def apply_cooldowns(
    reminders: Iterable[DueReminder], cooldowns: Mapping[ReminderGroup | str, bool]
) -> list[DueReminder]:
    """Drop reminders whose group is still cooling down."""
    active = {ReminderGroup(group) for group, cooling in cooldowns.items() if cooling}
    return [reminder for reminder in reminders if reminder.group not in active]


def assemble_reminders(
    profile: ReminderProfile,
    screenings: ScreeningState | None,
    measurement_dates: Mapping[str, datetime],
    medications: Iterable[MedicationRecord],
    now: date | datetime,
    disabled_categories: Iterable[ReminderCategory | str] = (),
    cooldowns: Mapping[ReminderGroup | str, bool] | None = None,
    config: ReminderConfig | None = None,
) -> RemindersResult:
    """compute -> preference filter -> cooldown filter."""
    computed = compute_due_reminders(
        profile, screenings, measurement_dates, medications, now, config
    )
    reminders = filter_by_preferences(computed.reminders, disabled_categories)
    reminders = apply_cooldowns(reminders, cooldowns or {})

    logger.info(
        "reminders_assembled",
        computed=len(computed.reminders),
        sendable=len(reminders),
    )
    return RemindersResult(reminders=reminders, blood_test_dates=computed.blood_test_dates)


def cooldown_until(
    group: ReminderGroup | str, sent_at: datetime, config: ReminderConfig | None = None
) -> datetime:
    """When a group becomes eligible again after a send at `sent_at`."""
    group = ReminderGroup(group)
    days = config.cooldown_days(group) if config else GROUP_COOLDOWNS[group]
    return sent_at + timedelta(days=days)


def format_reminder_date(value: date | datetime | str) -> str:
    """'Mon YYYY' for email display."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return format_month_label(value)
