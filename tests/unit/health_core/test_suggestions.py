"""
Tests for the suggestion engine in `health_core/services/suggestions.py`.

Covers:
- Atherogenic hierarchy (one marker only) and total cholesterol suppression
- Lab, blood pressure and lifestyle thresholds
- Unit system only changing the rendered text
- Screening cards and id uniqueness
"""

from datetime import UTC, datetime

import pytest

from health_core.domain.models import (
    HealthInputs,
    HealthResults,
    MedicationState,
    Priority,
    ScreeningRecord,
    ScreeningState,
    Sex,
    SmokingHistory,
    Suggestion,
    SuggestionCategory,
)
from health_core.domain.units import UnitSystem
from health_core.services.calculator import calculate_health_results
from health_core.services.suggestions import (
    SuggestionList,
    generate_suggestions,
    lpa_risk_factors,
    select_atherogenic_marker,
)

NOW = datetime(2026, 2, 1, tzinfo=UTC)


def _suggestions(
    unit_system: UnitSystem = UnitSystem.SI,
    medications: MedicationState | None = None,
    screenings: ScreeningState | None = None,
    **fields: object,
) -> dict[str, Suggestion]:
    fields.setdefault("height_cm", 175)
    fields.setdefault("sex", Sex.MALE)
    inputs = HealthInputs(**fields)
    results = calculate_health_results(
        inputs, unit_system=unit_system, medications=medications, screenings=screenings, now=NOW
    )
    return {s.id: s for s in results.suggestions}


class TestSuggestionList:
    def test_duplicate_id_raises(self) -> None:
        out = SuggestionList()
        card = Suggestion(
            id="fiber", category="nutrition", priority="info", title="t", description="d"
        )
        out.add(card)
        with pytest.raises(ValueError, match="Duplicate suggestion id: fiber"):
            out.add(card)

    def test_none_is_ignored(self) -> None:
        out = SuggestionList()
        out.add(None)
        assert out.to_list() == []

    def test_contains_by_id(self) -> None:
        out = SuggestionList()
        out.add(Suggestion(id="sleep", category="sleep", priority="info", title="", description=""))
        assert "sleep" in out
        assert "fiber" not in out


class TestAtherogenicHierarchy:
    def test_apob_suppresses_ldl_and_non_hdl(self) -> None:
        ids = _suggestions(apob=1.2, ldl_c=5.0, total_cholesterol=7.0, hdl_c=1.0)

        assert "apob-very-high" in ids
        assert not any(i.startswith(("ldl-", "non-hdl-")) for i in ids)

    def test_flagged_marker_suppresses_total_cholesterol(self) -> None:
        ids = _suggestions(apob=1.2, total_cholesterol=7.0, hdl_c=1.0)
        assert not any(i.startswith("total-chol") for i in ids)

    def test_non_hdl_used_without_apob(self) -> None:
        ids = _suggestions(ldl_c=5.0, total_cholesterol=6.5, hdl_c=1.0)

        assert "non-hdl-high" in ids
        assert not any(i.startswith("ldl-") for i in ids)

    def test_ldl_used_last(self) -> None:
        ids = _suggestions(ldl_c=3.5)
        assert ids["ldl-borderline"].priority is Priority.INFO

    def test_info_marker_keeps_total_cholesterol(self) -> None:
        ids = _suggestions(ldl_c=3.5, total_cholesterol=5.5)
        assert "total-chol-borderline" in ids

    def test_triggered_cascade_suppresses_total_cholesterol(self) -> None:
        ids = _suggestions(medications=MedicationState(), ldl_c=3.5, total_cholesterol=5.5)

        assert "total-chol-borderline" not in ids
        assert "med-statin" in ids

    def test_optimal_apob_emits_nothing(self) -> None:
        ids = _suggestions(apob=0.4, ldl_c=5.0)
        assert not any(i.startswith(("apob-", "ldl-", "non-hdl-")) for i in ids)

    def test_select_marker_order(self) -> None:
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE, ldl_c=3.0)
        results = HealthResults(ideal_body_weight=70, protein_target=84, non_hdl_cholesterol=3.5)
        selected = select_atherogenic_marker(inputs, results)
        assert selected is not None
        marker, value = selected
        assert marker.name == "non_hdl"
        assert value == 3.5

    def test_no_marker(self) -> None:
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE)
        results = HealthResults(ideal_body_weight=70, protein_target=84)
        assert select_atherogenic_marker(inputs, results) is None


class TestLabCards:
    @pytest.mark.parametrize(
        "hba1c,expected_id,priority",
        [
            (50, "hba1c-diabetic", Priority.URGENT),
            (40, "hba1c-prediabetic", Priority.ATTENTION),
            (35, "hba1c-normal", Priority.INFO),
        ],
    )
    def test_hba1c_tiers(self, hba1c: float, expected_id: str, priority: Priority) -> None:
        ids = _suggestions(hba1c=hba1c)
        assert ids[expected_id].priority is priority

    def test_low_hdl_uses_sex_specific_cutoff(self) -> None:
        assert "hdl-low" not in _suggestions(hdl_c=1.1)
        assert "hdl-low" in _suggestions(sex=Sex.FEMALE, hdl_c=1.1)

    @pytest.mark.parametrize(
        "trig,priority,title",
        [
            (1.8, Priority.INFO, "Improve triglycerides with diet"),
            (3.0, Priority.ATTENTION, "Reduce triglycerides with diet"),
            (6.0, Priority.ATTENTION, "Lower triglycerides with diet now"),
        ],
    )
    def test_triglyceride_nutrition_tiers(
        self, trig: float, priority: Priority, title: str
    ) -> None:
        card = _suggestions(triglycerides=trig)["trig-nutrition"]
        assert card.priority is priority
        assert card.title == title

    def test_very_high_triglycerides_also_urgent_bloodwork(self) -> None:
        ids = _suggestions(triglycerides=6.0)
        assert ids["trig-very-high"].priority is Priority.URGENT
        assert "reduce-alcohol" in ids

    def test_psa_elevated_male_only(self) -> None:
        assert "psa-elevated" in _suggestions(psa=5.0)
        assert "psa-elevated" not in _suggestions(psa=4.0)
        assert "psa-elevated" not in _suggestions(sex=Sex.FEMALE, psa=5.0)

    def test_psa_falls_back_to_screening_value(self) -> None:
        ids = _suggestions(screenings=ScreeningState(prostate_psa_value=4.5))
        assert "psa-elevated" in ids

    def test_bloodwork_cards_are_flagged_for_doctor(self) -> None:
        ids = _suggestions(hba1c=50)
        assert ids["hba1c-diabetic"].discuss_with_doctor
        assert not ids["fiber"].discuss_with_doctor


class TestLipoproteinA:
    def test_normal(self) -> None:
        assert "lpa-normal" in _suggestions(lpa=30)

    def test_borderline(self) -> None:
        assert "lpa-borderline" in _suggestions(lpa=100)

    def test_elevated_without_risk_factors(self) -> None:
        card = _suggestions(lpa=150)["lpa-elevated"]
        assert card.priority is Priority.ATTENTION
        assert "keep them there" in card.description

    def test_elevated_lists_modifiable_risk_factors(self) -> None:
        card = _suggestions(lpa=150, systolic_bp=135, diastolic_bp=85)["lpa-elevated"]
        assert "lower your blood pressure" in card.description

    def test_risk_factor_checklist(self) -> None:
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE, ldl_c=3.0, hba1c=42)
        results = HealthResults(ideal_body_weight=70, protein_target=84, bmi=27.0)
        screenings = ScreeningState(lung_smoking_history=SmokingHistory.CURRENT_SMOKER)

        assert lpa_risk_factors(inputs, results, screenings) == [
            "bring ApoB / LDL cholesterol down to target",
            "improve your blood sugar (HbA1c)",
            "reduce body weight",
            "stop smoking",
        ]


class TestBloodPressure:
    @pytest.mark.parametrize(
        "systolic,diastolic,expected",
        [
            (185, 100, "bp-crisis"),
            (140, 85, "bp-stage2"),
            (125, 92, "bp-stage2"),
            (130, 75, "bp-stage1"),
            (125, 81, "bp-stage1"),
        ],
    )
    def test_tiers(self, systolic: float, diastolic: float, expected: str) -> None:
        assert expected in _suggestions(systolic_bp=systolic, diastolic_bp=diastolic)

    def test_diastolic_80_is_not_stage1(self) -> None:
        ids = _suggestions(systolic_bp=125, diastolic_bp=80)
        assert not any(i.startswith("bp-") for i in ids)

    def test_older_adults_get_relaxed_target(self) -> None:
        card = _suggestions(birth_year=1950, systolic_bp=132, diastolic_bp=78)["bp-stage1"]
        assert "<130/80" in card.description


class TestLifestyle:
    def test_low_salt_threshold(self) -> None:
        assert "low-salt" in _suggestions(systolic_bp=116, diastolic_bp=70)
        assert "low-salt" not in _suggestions(systolic_bp=115, diastolic_bp=70)

    def test_low_salt_threshold_for_65_plus(self) -> None:
        assert "low-salt" not in _suggestions(birth_year=1950, systolic_bp=120, diastolic_bp=70)
        assert "low-salt" in _suggestions(birth_year=1950, systolic_bp=126, diastolic_bp=70)

    def test_high_potassium_needs_adequate_kidney_function(self) -> None:
        assert "high-potassium" in _suggestions(birth_year=1980, creatinine=80)
        assert "high-potassium" not in _suggestions(birth_year=1950, creatinine=200)

    def test_weight_glp1_without_medication_tracking(self) -> None:
        card = _suggestions(height_cm=180, weight_kg=90)["weight-glp1"]
        assert "a BMI over 27" in card.description

    def test_weight_glp1_replaced_by_cascade_with_medications(self) -> None:
        ids = _suggestions(medications=MedicationState(), height_cm=180, weight_kg=90)
        assert "weight-glp1" not in ids
        assert "med-glp1" in ids

    def test_weight_glp1_with_high_waist(self) -> None:
        card = _suggestions(height_cm=180, weight_kg=84, waist_cm=95)["weight-glp1"]
        assert "elevated BMI and waist measurements" in card.description

    def test_supplements_come_last(self) -> None:
        ids = list(_suggestions(hba1c=40, ldl_c=3.0))
        assert ids[-3:] == ["supplement-microvitamin", "supplement-omega3", "supplement-sleep"]


class TestUnitSystem:
    def test_conventional_units_in_text(self) -> None:
        card = _suggestions(UnitSystem.CONVENTIONAL, hba1c=50)["hba1c-diabetic"]
        assert "6.7 %" in card.description

    def test_si_units_in_text(self) -> None:
        card = _suggestions(UnitSystem.SI, hba1c=50)["hba1c-diabetic"]
        assert "50 mmol/mol" in card.description

    def test_same_ids_in_both_systems(self) -> None:
        fields = {"hba1c": 44, "ldl_c": 4.5, "triglycerides": 2.4, "weight_kg": 88}
        si = _suggestions(UnitSystem.SI, **fields)
        conventional = _suggestions(UnitSystem.CONVENTIONAL, **fields)
        assert list(si) == list(conventional)


class TestScreeningCards:
    def test_not_started_cards_for_eligible_types(self) -> None:
        ids = _suggestions(
            screenings=ScreeningState(), sex=Sex.FEMALE, birth_year=1975, birth_month=1
        )

        for expected in (
            "screening-colorectal",
            "screening-breast",
            "screening-cervical",
            "screening-dexa",
            "screening-endometrial",
        ):
            assert expected in ids
        assert "screening-lung" not in ids
        assert "screening-prostate" not in ids

    def test_overdue_card_shows_due_month(self) -> None:
        screenings = ScreeningState(
            colorectal=ScreeningRecord(method="fit_annual", last_date="2024-11")
        )
        card = _suggestions(screenings=screenings, birth_year=1970)["screening-colorectal-overdue"]
        assert "Nov 2025" in card.description

    def test_no_screening_cards_without_age(self) -> None:
        ids = _suggestions(screenings=ScreeningState())
        assert not any(i.startswith("screening-") for i in ids)

    def test_endometrial_bleeding_is_urgent(self) -> None:
        screenings = ScreeningState(endometrial_abnormal_bleeding="yes_need_to_report")
        ids = _suggestions(screenings=screenings, sex=Sex.FEMALE, birth_year=1970)
        assert ids["screening-endometrial-bleeding"].priority is Priority.URGENT


class TestEndToEnd:
    def test_ids_unique_with_everything_supplied(self) -> None:
        inputs = HealthInputs(
            height_cm=168,
            sex=Sex.FEMALE,
            weight_kg=95,
            waist_cm=104,
            birth_year=1960,
            birth_month=4,
            systolic_bp=150,
            diastolic_bp=95,
            hba1c=52,
            total_cholesterol=7.2,
            hdl_c=0.9,
            ldl_c=4.8,
            triglycerides=6.1,
            apob=1.3,
            creatinine=110,
            lpa=180,
            psa=6,
        )
        results = calculate_health_results(
            inputs, medications=MedicationState(), screenings=ScreeningState(), now=NOW
        )
        ids = [s.id for s in results.suggestions]
        assert len(ids) == len(set(ids))

    def test_generate_suggestions_defaults(self) -> None:
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE)
        results = HealthResults(ideal_body_weight=70.6, protein_target=85)
        suggestions = generate_suggestions(inputs, results)
        assert suggestions[0].id == "protein-target"
        assert all(s.category is not SuggestionCategory.MEDICATION for s in suggestions)
