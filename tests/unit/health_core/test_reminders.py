"""
Tests for the reminder aggregator in `health_core/services/reminders.py`.

Covers:
- Screening reminders reusing the screening calculator's overdue rule
- Blood panel staleness using the most recent constituent test
- A single medication review reminder for any stale active drug
- Preference and cooldown filtering
"""

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from health_core.config import ReminderConfig
from health_core.domain.models import (
    BloodTestPanel,
    FollowupStatus,
    MedicationRecord,
    ReminderCategory,
    ReminderGroup,
    ReminderProfile,
    ScreeningRecord,
    ScreeningResult,
    ScreeningState,
    Sex,
)
from health_core.services.reminders import (
    REMINDER_CATEGORIES,
    REMINDER_CATEGORY_LABELS,
    apply_cooldowns,
    assemble_reminders,
    compute_blood_test_reminders,
    compute_due_reminders,
    compute_medication_reminders,
    compute_screening_reminders,
    cooldown_until,
    filter_by_preferences,
    format_reminder_date,
    get_category_group,
)

NOW = datetime(2026, 2, 1, tzinfo=UTC)
FOURTEEN_MONTHS_AGO = datetime(2024, 12, 1, tzinfo=UTC)
SIX_MONTHS_AGO = datetime(2025, 8, 1, tzinfo=UTC)

OVERDUE_COLORECTAL = ScreeningState(
    colorectal=ScreeningRecord(method="fit_annual", last_date="2024-12")
)


def _medication(drug_name: str, updated_at: datetime, key: str = "statin") -> MedicationRecord:
    return MedicationRecord(
        medication_key=key, drug_name=drug_name, dose_value=20, updated_at=updated_at
    )


class TestCategories:
    def test_every_category_has_a_label(self) -> None:
        assert set(REMINDER_CATEGORY_LABELS) == set(REMINDER_CATEGORIES)

    @pytest.mark.parametrize(
        "category,group",
        [
            (ReminderCategory.SCREENING_DEXA, ReminderGroup.SCREENING),
            ("blood_test_hba1c", ReminderGroup.BLOOD_TEST),
            (ReminderCategory.MEDICATION_REVIEW, ReminderGroup.MEDICATION_REVIEW),
        ],
    )
    def test_category_group(self, category: ReminderCategory | str, group: ReminderGroup) -> None:
        assert get_category_group(category) is group

    def test_unknown_category_raises(self) -> None:
        with pytest.raises(ValueError):
            get_category_group("newsletter")


class TestScreeningReminders:
    def test_overdue_screening_creates_reminder(self) -> None:
        reminders = compute_screening_reminders(
            ReminderProfile(sex=Sex.MALE, age=50), OVERDUE_COLORECTAL, NOW
        )
        assert [r.category for r in reminders] == [ReminderCategory.SCREENING_COLORECTAL]
        assert reminders[0].title == "Colorectal screening overdue"
        assert reminders[0].group is ReminderGroup.SCREENING

    def test_recent_screening_creates_no_reminder(self) -> None:
        state = ScreeningState(colorectal=ScreeningRecord(method="fit_annual", last_date="2025-08"))
        assert compute_screening_reminders(ReminderProfile(sex=Sex.MALE, age=50), state, NOW) == []

    @given(
        age=st.one_of(
            st.integers(min_value=0, max_value=34), st.integers(min_value=76, max_value=120)
        )
    )
    def test_ineligible_age_never_reminded(self, age: int) -> None:
        profile = ReminderProfile(sex=Sex.MALE, age=age)
        assert compute_screening_reminders(profile, OVERDUE_COLORECTAL, NOW) == []

    def test_abnormal_result_without_followup_still_reminded(self) -> None:
        state = ScreeningState(
            colorectal=ScreeningRecord(
                method="fit_annual", last_date="2020-01", result=ScreeningResult.ABNORMAL
            )
        )
        reminders = compute_screening_reminders(ReminderProfile(sex=Sex.MALE, age=55), state, NOW)
        assert [r.category for r in reminders] == [ReminderCategory.SCREENING_COLORECTAL]

    def test_scheduled_followup_past_due_still_reminded(self) -> None:
        state = ScreeningState(
            breast=ScreeningRecord(
                method="annual",
                last_date="2023-05",
                result=ScreeningResult.ABNORMAL,
                followup_status=FollowupStatus.SCHEDULED,
            )
        )
        reminders = compute_screening_reminders(
            ReminderProfile(sex=Sex.FEMALE, age=52), state, NOW
        )
        assert [r.category for r in reminders] == [ReminderCategory.SCREENING_BREAST]

    def test_recent_abnormal_result_not_yet_due(self) -> None:
        state = ScreeningState(
            colorectal=ScreeningRecord(
                method="fit_annual", last_date="2025-06", result=ScreeningResult.ABNORMAL
            )
        )
        assert compute_screening_reminders(ReminderProfile(sex=Sex.MALE, age=55), state, NOW) == []

    def test_osteoporosis_without_followup_uses_scan_interval(self) -> None:
        state = ScreeningState(
            dexa=ScreeningRecord(
                method="dexa_scan", last_date="2023-06", result=ScreeningResult.OSTEOPOROSIS
            )
        )
        reminders = compute_screening_reminders(
            ReminderProfile(sex=Sex.FEMALE, age=60), state, NOW
        )
        assert [r.category for r in reminders] == [ReminderCategory.SCREENING_DEXA]

    def test_dexa_awaiting_result_not_reminded(self) -> None:
        state = ScreeningState(
            dexa=ScreeningRecord(
                method="dexa_scan", last_date="2018-01", result=ScreeningResult.AWAITING
            )
        )
        profile = ReminderProfile(sex=Sex.FEMALE, age=60)
        assert compute_screening_reminders(profile, state, NOW) == []

    def test_no_screening_state(self) -> None:
        assert compute_screening_reminders(ReminderProfile(sex=Sex.MALE, age=50), None, NOW) == []

    def test_not_started_screening_is_not_a_reminder(self) -> None:
        profile = ReminderProfile(sex=Sex.FEMALE, age=50)
        assert compute_screening_reminders(profile, ScreeningState(), NOW) == []


class TestBloodTestReminders:
    def test_most_recent_constituent_keeps_panel_current(self) -> None:
        reminders, dates = compute_blood_test_reminders(
            {"ldl": FOURTEEN_MONTHS_AGO, "hdl": SIX_MONTHS_AGO}, NOW, 12
        )

        assert reminders == []
        assert len(dates) == 1
        assert dates[0].panel is BloodTestPanel.LIPIDS
        assert dates[0].last_date == SIX_MONTHS_AGO
        assert not dates[0].is_overdue

    def test_stale_panel_creates_reminder(self) -> None:
        reminders, dates = compute_blood_test_reminders(
            {"ldl": FOURTEEN_MONTHS_AGO, "apob": FOURTEEN_MONTHS_AGO}, NOW, 12
        )
        assert [r.title for r in reminders] == ["Lipid panel overdue"]
        assert dates[0].is_overdue

    def test_single_metric_panels(self) -> None:
        reminders, dates = compute_blood_test_reminders(
            {"hba1c": FOURTEEN_MONTHS_AGO, "creatinine": FOURTEEN_MONTHS_AGO}, NOW, 12
        )
        assert [r.title for r in reminders] == ["HbA1c test overdue", "Creatinine test overdue"]
        assert [d.panel for d in dates] == [BloodTestPanel.HBA1C, BloodTestPanel.CREATININE]

    def test_exactly_stale_window_is_not_overdue(self) -> None:
        reminders, _ = compute_blood_test_reminders(
            {"hba1c": datetime(2025, 2, 1, tzinfo=UTC)}, NOW, 12
        )
        assert reminders == []

    def test_never_tested_panel_is_skipped(self) -> None:
        reminders, dates = compute_blood_test_reminders({}, NOW, 12)
        assert reminders == []
        assert dates == []

    def test_unrelated_metrics_ignored(self) -> None:
        _, dates = compute_blood_test_reminders({"weight": FOURTEEN_MONTHS_AGO}, NOW, 12)
        assert dates == []


class TestMedicationReminders:
    def test_stale_active_medication(self) -> None:
        reminders = compute_medication_reminders(
            [_medication("atorvastatin", FOURTEEN_MONTHS_AGO)], NOW, 12
        )
        assert [r.title for r in reminders] == ["Medication review due"]

    def test_several_stale_medications_give_one_reminder(self) -> None:
        records = [
            _medication("atorvastatin", FOURTEEN_MONTHS_AGO),
            _medication("tirzepatide", FOURTEEN_MONTHS_AGO, key="glp1"),
        ]
        assert len(compute_medication_reminders(records, NOW, 12)) == 1

    @pytest.mark.parametrize("placeholder", ["none", "not_yet", "not_tolerated", "no", "declined"])
    def test_placeholders_are_not_active(self, placeholder: str) -> None:
        records = [_medication(placeholder, FOURTEEN_MONTHS_AGO)]
        assert compute_medication_reminders(records, NOW, 12) == []

    def test_recent_medication(self) -> None:
        records = [_medication("atorvastatin", SIX_MONTHS_AGO)]
        assert compute_medication_reminders(records, NOW, 12) == []


class TestFilters:
    @pytest.fixture
    def computed(self):
        return compute_due_reminders(
            ReminderProfile(sex=Sex.MALE, age=50),
            OVERDUE_COLORECTAL,
            {"ldl": FOURTEEN_MONTHS_AGO},
            [_medication("atorvastatin", FOURTEEN_MONTHS_AGO)],
            NOW,
            ReminderConfig(),
        )

    def test_all_sources_combined(self, computed) -> None:
        assert [r.group for r in computed.reminders] == [
            ReminderGroup.SCREENING,
            ReminderGroup.BLOOD_TEST,
            ReminderGroup.MEDICATION_REVIEW,
        ]

    def test_filter_by_preferences(self, computed) -> None:
        kept = filter_by_preferences(computed.reminders, ["blood_test_lipids"])
        assert ReminderCategory.BLOOD_TEST_LIPIDS not in {r.category for r in kept}
        assert len(kept) == 2

    def test_apply_cooldowns(self, computed) -> None:
        kept = apply_cooldowns(computed.reminders, {"screening": True, "blood_test": False})
        assert [r.group for r in kept] == [
            ReminderGroup.BLOOD_TEST,
            ReminderGroup.MEDICATION_REVIEW,
        ]

    def test_custom_stale_window(self) -> None:
        result = compute_due_reminders(
            ReminderProfile(sex=Sex.MALE, age=50),
            None,
            {"hba1c": datetime(2025, 7, 1, tzinfo=UTC)},
            [],
            NOW,
            ReminderConfig(blood_test_stale_months=6),
        )
        assert [r.category for r in result.reminders] == [ReminderCategory.BLOOD_TEST_HBA1C]


class TestAssemble:
    def test_preferences_then_cooldowns(self) -> None:
        result = assemble_reminders(
            profile=ReminderProfile(sex=Sex.MALE, age=50),
            screenings=OVERDUE_COLORECTAL,
            measurement_dates={"ldl": FOURTEEN_MONTHS_AGO, "hba1c": FOURTEEN_MONTHS_AGO},
            medications=[_medication("atorvastatin", FOURTEEN_MONTHS_AGO)],
            now=NOW,
            disabled_categories=[ReminderCategory.BLOOD_TEST_HBA1C],
            cooldowns={ReminderGroup.MEDICATION_REVIEW: True},
            config=ReminderConfig(),
        )

        assert [r.category for r in result.reminders] == [
            ReminderCategory.SCREENING_COLORECTAL,
            ReminderCategory.BLOOD_TEST_LIPIDS,
        ]
        # Context dates are kept even for filtered panels
        assert {d.panel for d in result.blood_test_dates} == {
            BloodTestPanel.LIPIDS,
            BloodTestPanel.HBA1C,
        }

    def test_nothing_due(self) -> None:
        result = assemble_reminders(
            profile=ReminderProfile(sex=Sex.FEMALE, age=30),
            screenings=None,
            measurement_dates={},
            medications=[],
            now=NOW,
            config=ReminderConfig(),
        )
        assert result.reminders == []


class TestCooldowns:
    def test_default_cooldowns(self) -> None:
        sent = datetime(2026, 1, 1, tzinfo=UTC)
        assert cooldown_until("screening", sent) == sent + timedelta(days=90)
        assert cooldown_until(ReminderGroup.BLOOD_TEST, sent) == sent + timedelta(days=180)
        assert cooldown_until("medication_review", sent) == sent + timedelta(days=365)

    def test_configured_cooldown(self) -> None:
        sent = datetime(2026, 1, 1, tzinfo=UTC)
        config = ReminderConfig(screening_cooldown_days=30)
        assert cooldown_until("screening", sent, config) == sent + timedelta(days=30)


class TestFormatting:
    def test_format_reminder_date(self) -> None:
        assert format_reminder_date("2025-08-14T10:00:00") == "Aug 2025"
        assert format_reminder_date(SIX_MONTHS_AGO) == "Aug 2025"
