"""
Tests for the medication escalation cascades.

The cascades are evaluated directly against hand-built results so each step
can be exercised in isolation, then once more through the suggestion engine
to check that a cascade contributes exactly one medication card.
"""

from datetime import UTC, datetime

import pytest

from health_core.domain.medications import GLP1_TABLE, STATIN_TABLE, display_drug_name
from health_core.domain.models import (
    BMICategory,
    HealthInputs,
    HealthResults,
    MedicationSlot,
    MedicationState,
    Sex,
    Suggestion,
    SuggestionCategory,
)
from health_core.services.calculator import calculate_health_results
from health_core.services.cascades import (
    CascadeStep,
    bp_stage1_or_higher,
    evaluate_lipid_cascade,
    evaluate_weight_cascade,
    lipid_cascade_triggered,
    run_cascade,
    weight_cascade_triggered,
)

NOW = datetime(2026, 2, 1, tzinfo=UTC)

ELEVATED_LDL = HealthInputs(height_cm=175, sex=Sex.MALE, ldl_c=3.0)
BASE_RESULTS = HealthResults(ideal_body_weight=70.6, protein_target=85)


def _lipid(medications: MedicationState) -> str | None:
    suggestion = evaluate_lipid_cascade(ELEVATED_LDL, BASE_RESULTS, medications)
    return suggestion.id if suggestion else None


class TestPotencyTables:
    def test_missing_dose_assumes_lowest(self) -> None:
        assert STATIN_TABLE.can_increase_dose("atorvastatin", None)
        assert STATIN_TABLE.effect("atorvastatin", None) == 37

    def test_weak_drug_at_max_dose_should_switch(self) -> None:
        assert STATIN_TABLE.should_suggest_switch("simvastatin", 40)
        assert not STATIN_TABLE.is_on_max_potency("simvastatin", 40)

    def test_potent_drug_at_max_dose_is_max_potency(self) -> None:
        assert STATIN_TABLE.is_on_max_potency("rosuvastatin", 40)
        assert GLP1_TABLE.is_on_max_potency("tirzepatide", 15)

    def test_unknown_drug_is_never_escalated(self) -> None:
        assert not STATIN_TABLE.can_increase_dose("lovastatin", 40)
        assert not STATIN_TABLE.should_suggest_switch("lovastatin", 40)
        assert STATIN_TABLE.effect("lovastatin", 40) is None

    def test_display_drug_name(self) -> None:
        assert display_drug_name("semaglutide_oral") == "Semaglutide (oral)"
        assert display_drug_name("rosuvastatin") == "Rosuvastatin"


class TestRunCascade:
    def test_stops_at_first_unhandled_step(self) -> None:
        card = Suggestion(
            id="second", category="medication", priority="info", title="", description=""
        )
        steps = (
            CascadeStep("first", lambda meds: True, lambda meds: pytest.fail("handled step ran")),
            CascadeStep("second", lambda meds: False, lambda meds: card),
            CascadeStep("third", lambda meds: False, lambda meds: pytest.fail("ran past stop")),
        )
        assert run_cascade("test", steps, MedicationState()) is card

    def test_all_handled_returns_none(self) -> None:
        steps = (CascadeStep("only", lambda meds: True, lambda meds: pytest.fail("ran")),)
        assert run_cascade("test", steps, MedicationState()) is None


class TestLipidCascade:
    def test_no_statin_recommends_statin(self) -> None:
        assert _lipid(MedicationState()) == "med-statin"

    def test_statin_without_second_agent_recommends_ezetimibe(self) -> None:
        meds = MedicationState(statin=MedicationSlot.active("atorvastatin", 20))
        assert _lipid(meds) == "med-ezetimibe"

    def test_second_agent_and_max_potency_recommends_pcsk9i(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.active("rosuvastatin", 40),
            ezetimibe=MedicationSlot.active("ezetimibe", 10),
        )
        assert _lipid(meds) == "med-pcsk9i"

    def test_dose_can_increase(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.active("atorvastatin", 20),
            ezetimibe=MedicationSlot.active("ezetimibe", 10),
        )
        assert _lipid(meds) == "med-statin-increase"

    def test_weak_statin_at_max_dose_suggests_switch(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.active("simvastatin", 40),
            ezetimibe=MedicationSlot.not_tolerated(),
        )
        suggestion = evaluate_lipid_cascade(ELEVATED_LDL, BASE_RESULTS, meds)
        assert suggestion is not None
        assert suggestion.id == "med-statin-switch"
        assert "Simvastatin" in suggestion.description

    def test_handled_escalation_moves_on(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.active("atorvastatin", 20),
            ezetimibe=MedicationSlot.active("ezetimibe", 10),
            statin_escalation=MedicationSlot.declined(),
        )
        assert _lipid(meds) == "med-pcsk9i"

    def test_statin_not_tolerated_skips_escalation(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.not_tolerated(), ezetimibe=MedicationSlot.declined()
        )
        assert _lipid(meds) == "med-pcsk9i"

    def test_legacy_drug_name_counts_as_not_started(self) -> None:
        meds = MedicationState(statin=MedicationSlot.active("lovastatin", 40))
        assert _lipid(meds) == "med-statin"

    def test_exhausted_cascade_returns_none(self) -> None:
        meds = MedicationState(
            statin=MedicationSlot.active("rosuvastatin", 40),
            ezetimibe=MedicationSlot.active("ezetimibe", 10),
            pcsk9i=MedicationSlot.active("evolocumab"),
        )
        assert _lipid(meds) is None

    def test_at_target_does_not_trigger(self) -> None:
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE, ldl_c=1.2, apob=0.45)
        assert not lipid_cascade_triggered(inputs, BASE_RESULTS)
        assert evaluate_lipid_cascade(inputs, BASE_RESULTS, MedicationState()) is None

    def test_non_hdl_above_target_triggers(self) -> None:
        results = BASE_RESULTS.model_copy(update={"non_hdl_cholesterol": 2.0})
        inputs = HealthInputs(height_cm=175, sex=Sex.MALE)
        assert lipid_cascade_triggered(inputs, results)

    def test_only_one_medication_card_in_suggestions(self) -> None:
        results = calculate_health_results(ELEVATED_LDL, medications=MedicationState(), now=NOW)
        medication_ids = [
            s.id for s in results.suggestions if s.category is SuggestionCategory.MEDICATION
        ]
        assert medication_ids == ["med-statin"]

    def test_cascade_cards_are_flagged_for_doctor(self) -> None:
        suggestion = evaluate_lipid_cascade(ELEVATED_LDL, BASE_RESULTS, MedicationState())
        assert suggestion is not None and suggestion.discuss_with_doctor


OVERWEIGHT = HealthResults(
    ideal_body_weight=70.6,
    protein_target=85,
    bmi=28.0,
    waist_to_height_ratio=0.55,
    bmi_category=BMICategory.OVERWEIGHT,
)
PLAIN_INPUTS = HealthInputs(height_cm=175, sex=Sex.MALE)


def _weight(medications: MedicationState) -> str | None:
    suggestion = evaluate_weight_cascade(PLAIN_INPUTS, OVERWEIGHT, medications)
    return suggestion.id if suggestion else None


class TestWeightCascade:
    def test_no_glp1_recommends_glp1(self) -> None:
        assert _weight(MedicationState()) == "med-glp1"

    def test_dose_can_increase(self) -> None:
        meds = MedicationState(glp1=MedicationSlot.active("tirzepatide", 5))
        assert _weight(meds) == "med-glp1-increase"

    def test_weaker_agent_at_max_dose_suggests_tirzepatide(self) -> None:
        meds = MedicationState(glp1=MedicationSlot.active("semaglutide", 2.4))
        suggestion = evaluate_weight_cascade(PLAIN_INPUTS, OVERWEIGHT, meds)
        assert suggestion is not None
        assert suggestion.id == "med-glp1-switch"
        assert suggestion.title == "Consider switching to Tirzepatide"

    def test_max_potency_moves_to_sglt2i(self) -> None:
        meds = MedicationState(glp1=MedicationSlot.active("tirzepatide", 15))
        assert _weight(meds) == "med-sglt2i"

    def test_unknown_sglt2i_counts_as_not_started(self) -> None:
        meds = MedicationState(
            glp1=MedicationSlot.active("tirzepatide", 15),
            sglt2i=MedicationSlot.active("remogliflozin"),
        )
        assert _weight(meds) == "med-sglt2i"

    def test_sglt2i_handled_moves_to_metformin(self) -> None:
        meds = MedicationState(
            glp1=MedicationSlot.not_tolerated(),
            sglt2i=MedicationSlot.active("empagliflozin", 10),
        )
        assert _weight(meds) == "med-metformin"

    def test_exhausted_cascade_returns_none(self) -> None:
        meds = MedicationState(
            glp1=MedicationSlot.declined(),
            sglt2i=MedicationSlot.declined(),
            metformin=MedicationSlot.active("metformin", 500),
        )
        assert _weight(meds) is None


class TestWeightCascadeTrigger:
    def _results(
        self, bmi: float, category: BMICategory, whtr: float | None = None
    ) -> HealthResults:
        return HealthResults(
            ideal_body_weight=70.6,
            protein_target=85,
            bmi=bmi,
            waist_to_height_ratio=whtr,
            bmi_category=category,
        )

    def test_bmi_over_27_triggers(self) -> None:
        results = self._results(27.5, BMICategory.MEASURE_WAIST)
        assert weight_cascade_triggered(PLAIN_INPUTS, results)

    def test_bmi_26_without_secondary_flag_does_not_trigger(self) -> None:
        assert not weight_cascade_triggered(
            PLAIN_INPUTS, self._results(26.0, BMICategory.MEASURE_WAIST)
        )

    @pytest.mark.parametrize(
        "inputs",
        [
            HealthInputs(height_cm=175, sex=Sex.MALE, hba1c=40),
            HealthInputs(height_cm=175, sex=Sex.MALE, triglycerides=1.8),
            HealthInputs(height_cm=175, sex=Sex.MALE, systolic_bp=130),
            HealthInputs(height_cm=175, sex=Sex.MALE, diastolic_bp=81),
        ],
    )
    def test_secondary_flags_trigger_at_bmi_26(self, inputs: HealthInputs) -> None:
        assert weight_cascade_triggered(inputs, self._results(26.0, BMICategory.MEASURE_WAIST))

    def test_high_whtr_triggers_at_bmi_26(self) -> None:
        results = self._results(26.0, BMICategory.OVERWEIGHT, whtr=0.52)
        assert weight_cascade_triggered(PLAIN_INPUTS, results)

    def test_normal_category_never_triggers(self) -> None:
        results = self._results(28.0, BMICategory.NORMAL, whtr=0.45)
        assert not weight_cascade_triggered(PLAIN_INPUTS, results)

    def test_diastolic_80_is_not_stage1(self) -> None:
        assert not bp_stage1_or_higher(HealthInputs(height_cm=175, sex=Sex.MALE, diastolic_bp=80))
        assert bp_stage1_or_higher(HealthInputs(height_cm=175, sex=Sex.MALE, systolic_bp=130))
