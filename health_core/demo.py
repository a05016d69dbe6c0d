"""
Terminal report for a sample profile.

Shows the full pipeline end to end:
1. Metrics calculation from raw inputs
2. Suggestions, including both medication cascades and screening cards
3. Due reminders after preference and cooldown filtering

Run with: python -m health_core.demo
"""

from datetime import UTC, datetime

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from health_core.config import config_summary
from health_core.domain.models import (
    FollowupStatus,
    HealthInputs,
    HealthResults,
    MedicationRecord,
    MedicationSlot,
    MedicationState,
    Priority,
    ReminderProfile,
    RemindersResult,
    ScreeningRecord,
    ScreeningResult,
    ScreeningState,
    Sex,
    SmokingHistory,
)
from health_core.domain.units import (
    MetricType,
    UnitSystem,
    format_height_display,
    format_with_unit,
)
from health_core.services.calculator import calculate_health_results
from health_core.services.reminders import assemble_reminders, format_reminder_date

PRIORITY_STYLES = {
    Priority.URGENT: "bold red",
    Priority.ATTENTION: "yellow",
    Priority.INFO: "green",
}

NOW = datetime(2026, 3, 15, tzinfo=UTC)


def sample_inputs() -> HealthInputs:
    return HealthInputs(
        height_cm=178,
        sex=Sex.MALE,
        weight_kg=92,
        waist_cm=98,
        birth_year=1968,
        birth_month=6,
        systolic_bp=134,
        diastolic_bp=84,
        hba1c=41,
        total_cholesterol=5.9,
        hdl_c=1.1,
        ldl_c=3.9,
        triglycerides=2.0,
        apob=1.05,
        creatinine=95,
        lpa=140,
    )


def sample_medications() -> MedicationState:
    return MedicationState(
        statin=MedicationSlot.active("atorvastatin", 20),
        ezetimibe=MedicationSlot.not_tolerated(),
    )


def sample_screenings() -> ScreeningState:
    return ScreeningState(
        colorectal=ScreeningRecord(
            method="fit_annual",
            last_date="2024-11",
            result=ScreeningResult.ABNORMAL,
            followup_status=FollowupStatus.COMPLETED,
            followup_date="2025-01",
        ),
        lung_smoking_history=SmokingHistory.FORMER_SMOKER,
        lung_pack_years=12,
    )


def render_results(
    console: Console, inputs: HealthInputs, results: HealthResults, us: UnitSystem
) -> None:
    table = Table(title="Calculated Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Height", format_height_display(inputs.height_cm, us))
    table.add_row(
        "Ideal body weight", format_with_unit(MetricType.WEIGHT, results.ideal_body_weight, us)
    )
    table.add_row("Protein target", f"{results.protein_target} g/day")
    if results.bmi is not None:
        category = results.bmi_category.value if results.bmi_category else "-"
        table.add_row("BMI", f"{results.bmi:.1f} ({category})")
    if results.waist_to_height_ratio is not None:
        table.add_row("Waist-to-height", f"{results.waist_to_height_ratio:.2f}")
    if results.non_hdl_cholesterol is not None:
        table.add_row("Non-HDL", format_with_unit(MetricType.LDL, results.non_hdl_cholesterol, us))
    if results.egfr is not None:
        table.add_row("eGFR", f"{results.egfr} mL/min/1.73m²")
    if results.age is not None:
        table.add_row("Age", str(results.age))

    console.print(table)


def render_suggestions(console: Console, results: HealthResults) -> None:
    table = Table(title=f"Suggestions ({len(results.suggestions)})")
    table.add_column("Priority")
    table.add_column("Category", style="magenta")
    table.add_column("Title", style="white")

    for suggestion in results.suggestions:
        table.add_row(
            f"[{PRIORITY_STYLES[suggestion.priority]}]{suggestion.priority.value.upper()}[/]",
            suggestion.category.value,
            suggestion.title,
        )

    console.print(table)


def render_reminders(console: Console, reminders: RemindersResult) -> None:
    if not reminders.reminders:
        console.print(Panel("No reminders due", style="green"))
    else:
        lines = "\n".join(f"• {r.title} [dim]({r.group.value})[/]" for r in reminders.reminders)
        console.print(Panel(lines, title="Due reminders", style="yellow"))

    if reminders.blood_test_dates:
        table = Table(title="Last blood tests")
        table.add_column("Panel", style="cyan")
        table.add_column("Last tested", style="white")
        table.add_column("Status")
        for row in reminders.blood_test_dates:
            status = "[red]overdue[/]" if row.is_overdue else "[green]current[/]"
            table.add_row(row.label, format_reminder_date(row.last_date), status)
        console.print(table)


def run_demo(console: Console, us: UnitSystem = UnitSystem.SI) -> HealthResults:
    console.print(Panel("Health Metrics Report", style="blue"))

    summary = config_summary()
    console.print(f"Environment: {summary['environment']}  |  Units: {us.value}", style="dim")

    inputs = sample_inputs()
    results = calculate_health_results(
        inputs,
        unit_system=us,
        medications=sample_medications(),
        screenings=sample_screenings(),
        now=NOW,
    )
    render_results(console, inputs, results, us)
    render_suggestions(console, results)

    reminders = assemble_reminders(
        profile=ReminderProfile(sex=inputs.sex, age=results.age or 0),
        screenings=sample_screenings(),
        measurement_dates={
            "ldl": datetime(2024, 12, 2, tzinfo=UTC),
            "hdl": datetime(2024, 12, 2, tzinfo=UTC),
            "hba1c": datetime(2025, 9, 20, tzinfo=UTC),
        },
        medications=[
            MedicationRecord(
                medication_key="statin",
                drug_name="atorvastatin",
                dose_value=20,
                dose_unit="mg",
                updated_at=datetime(2024, 10, 1, tzinfo=UTC),
            )
        ],
        now=NOW,
    )
    render_reminders(console, reminders)
    return results


def main() -> None:
    console = Console()
    run_demo(console)


if __name__ == "__main__":
    main()
