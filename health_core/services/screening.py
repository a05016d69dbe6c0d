"""
Screening schedule calculator.

Eligibility gates per cancer / bone-density screening type, interval lookup
by method, and the per-type state machine:

    not_started -> active(method, last_date) -> overdue | upcoming

An abnormal result branches into a follow-up sub-machine
(not organized -> scheduled -> completed). Once the follow-up is completed
the post-follow-up interval, counted from the follow-up date, replaces the
method's regular interval. Until then the record still falls due on the
regular interval from its last date, so a follow-up that is never organised
does not silence the screening.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Final

from health_core.domain.dates import YearMonth, is_past_due, parse_year_month
from health_core.domain.models import (
    FollowupStatus,
    ProstateDiscussion,
    ScreeningRecord,
    ScreeningResult,
    ScreeningState,
    ScreeningType,
    Sex,
    SmokingHistory,
)
from health_core.observability import get_logger

logger = get_logger(__name__)

# Months between screenings, keyed by method / frequency
SCREENING_INTERVALS: Final[dict[str, int]] = {
    # Colorectal
    "fit_annual": 12,
    "colonoscopy_10yr": 120,
    "stool_dna_3yr": 36,
    "ct_colonography_5yr": 60,
    "sigmoidoscopy_5yr": 60,
    # Breast
    "annual": 12,
    "biennial": 24,
    # Cervical
    "hpv_every_5yr": 60,
    "pap_every_3yr": 36,
    "co_test_5yr": 60,
    # Lung
    "annual_ldct": 12,
    # Prostate (PSA after an informed decision to screen)
    "will_screen": 12,
    # Bone density, chosen by last result
    "dexa_scan": 24,
    "dexa_normal": 60,
    "dexa_osteopenia": 24,
}

DEFAULT_INTERVAL_MONTHS: Final = 12

# Months until the next routine screening after a completed follow-up.
# Keyed "<type>_<method>", falling back to "<type>_other".
POST_FOLLOWUP_INTERVALS: Final[dict[str, int]] = {
    "colorectal_fit_annual": 36,
    "colorectal_colonoscopy_10yr": 36,
    "colorectal_other": 36,
    "breast_other": 12,
    "cervical_other": 12,
    "lung_other": 12,
    "dexa_dexa_scan": 24,
    "dexa_other": 24,
}

# Method values meaning "not started" rather than a real method
NOT_STARTED_METHODS: Final = frozenset({"not_yet_started", "not_yet", "none"})
DECLINED_METHODS: Final = frozenset({"declined", "elected_not_to"})

LUNG_MIN_PACK_YEARS: Final = 20

ABNORMAL_RESULTS: Final = frozenset({ScreeningResult.ABNORMAL, ScreeningResult.OSTEOPOROSIS})


class ScreeningStatus(str, Enum):
    NOT_STARTED = "not_started"
    DECLINED = "declined"
    UNKNOWN = "unknown"
    AWAITING_RESULT = "awaiting_result"
    FOLLOWUP_NOT_ORGANIZED = "followup_not_organized"
    FOLLOWUP_SCHEDULED = "followup_scheduled"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


@dataclass(frozen=True)
class ScreeningAssessment:
    """Where one screening type stands as of `now`."""

    screening_type: ScreeningType
    status: ScreeningStatus
    method: str | None = None
    next_due: YearMonth | None = None
    # Due date has passed, whatever the status
    is_overdue: bool = False


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def _lung_history_qualifies(state: ScreeningState | None) -> bool:
    if state is None:
        return False
    return (
        state.lung_smoking_history
        in (SmokingHistory.FORMER_SMOKER, SmokingHistory.CURRENT_SMOKER)
        and state.lung_pack_years is not None
        and state.lung_pack_years >= LUNG_MIN_PACK_YEARS
    )


def is_eligible(
    screening_type: ScreeningType | str,
    age: int,
    sex: Sex | str,
    state: ScreeningState | None = None,
) -> bool:
    """Age/sex gates, plus smoking history for lung screening."""
    screening_type = ScreeningType(screening_type)
    sex = Sex(sex)

    if screening_type is ScreeningType.COLORECTAL:
        return 35 <= age <= 75
    if screening_type is ScreeningType.BREAST:
        return sex is Sex.FEMALE and age >= 40
    if screening_type is ScreeningType.CERVICAL:
        return sex is Sex.FEMALE and 25 <= age <= 65
    if screening_type is ScreeningType.LUNG:
        return 50 <= age <= 80 and _lung_history_qualifies(state)
    if screening_type is ScreeningType.PROSTATE:
        return sex is Sex.MALE and age >= 45
    # DEXA
    return (sex is Sex.FEMALE and age >= 50) or (sex is Sex.MALE and age >= 70)


# ---------------------------------------------------------------------------
# Intervals and due dates
# ---------------------------------------------------------------------------


def interval_months(method: str | None) -> int:
    if method is None:
        return DEFAULT_INTERVAL_MONTHS
    return SCREENING_INTERVALS.get(method, DEFAULT_INTERVAL_MONTHS)


def post_followup_interval_months(screening_type: ScreeningType | str, method: str | None) -> int:
    type_key = ScreeningType(screening_type).value
    method_key = f"{type_key}_{method}" if method else f"{type_key}_other"
    return POST_FOLLOWUP_INTERVALS.get(
        method_key, POST_FOLLOWUP_INTERVALS.get(f"{type_key}_other", DEFAULT_INTERVAL_MONTHS)
    )


def next_due_date(last_date: str, months: int) -> YearMonth | None:
    """Month the next screening falls due, or None for an unparseable date."""
    parsed = parse_year_month(last_date)
    if parsed.is_err():
        logger.warning("screening_date_unparseable", error=str(parsed.unwrap_err()))
        return None
    return parsed.unwrap().add_months(months)


def is_screening_overdue(last_date: str | None, method: str | None, now: date | datetime) -> bool:
    """Strictly past the first day of the due month."""
    if not last_date or not method:
        return False
    due = next_due_date(last_date, interval_months(method))
    return due is not None and is_past_due(due, now)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


def _effective_method(
    screening_type: ScreeningType, record: ScreeningRecord | None, state: ScreeningState
) -> str | None:
    if screening_type is ScreeningType.PROSTATE:
        if state.prostate_discussion is ProstateDiscussion.WILL_SCREEN:
            return ProstateDiscussion.WILL_SCREEN.value
        if state.prostate_discussion is ProstateDiscussion.ELECTED_NOT_TO:
            return ProstateDiscussion.ELECTED_NOT_TO.value
        return None
    return record.method if record else None


def _regular_interval(screening_type: ScreeningType, record: ScreeningRecord, method: str) -> int:
    if screening_type is ScreeningType.DEXA:
        if record.result is ScreeningResult.OSTEOPENIA:
            return SCREENING_INTERVALS["dexa_osteopenia"]
        if record.result in ABNORMAL_RESULTS:
            return SCREENING_INTERVALS["dexa_scan"]
        return SCREENING_INTERVALS["dexa_normal"]
    return interval_months(method)


def _classify(
    assessment_type: ScreeningType, method: str, due: YearMonth | None, now: date | datetime
) -> ScreeningAssessment:
    if due is None:
        return ScreeningAssessment(assessment_type, ScreeningStatus.UNKNOWN, method)
    overdue = is_past_due(due, now)
    status = ScreeningStatus.OVERDUE if overdue else ScreeningStatus.UPCOMING
    return ScreeningAssessment(assessment_type, status, method, due, overdue)


def _pending(
    screening_type: ScreeningType,
    status: ScreeningStatus,
    method: str,
    record: ScreeningRecord,
    now: date | datetime,
) -> ScreeningAssessment:
    """Awaiting and follow-up states keep the regular due date from the last test."""
    due = None
    if record.last_date:
        due = next_due_date(record.last_date, _regular_interval(screening_type, record, method))
    overdue = due is not None and is_past_due(due, now)
    return ScreeningAssessment(screening_type, status, method, due, overdue)


def assess_screening(
    screening_type: ScreeningType | str, state: ScreeningState, now: date | datetime
) -> ScreeningAssessment:
    """Classify one screening type. Eligibility is checked by the caller."""
    screening_type = ScreeningType(screening_type)
    record = state.record(screening_type)
    method = _effective_method(screening_type, record, state)

    if not method or method in NOT_STARTED_METHODS:
        return ScreeningAssessment(screening_type, ScreeningStatus.NOT_STARTED)
    if method in DECLINED_METHODS:
        return ScreeningAssessment(screening_type, ScreeningStatus.DECLINED, method)
    if record is None:
        return ScreeningAssessment(screening_type, ScreeningStatus.UNKNOWN, method)

    if record.result is ScreeningResult.AWAITING:
        if screening_type is ScreeningType.DEXA:
            # Bone density intervals depend on the pending result
            return ScreeningAssessment(screening_type, ScreeningStatus.AWAITING_RESULT, method)
        return _pending(screening_type, ScreeningStatus.AWAITING_RESULT, method, record, now)

    if record.result in ABNORMAL_RESULTS:
        if record.followup_status is FollowupStatus.SCHEDULED:
            return _pending(
                screening_type, ScreeningStatus.FOLLOWUP_SCHEDULED, method, record, now
            )
        if record.followup_status is not FollowupStatus.COMPLETED:
            return _pending(
                screening_type, ScreeningStatus.FOLLOWUP_NOT_ORGANIZED, method, record, now
            )
        if record.followup_date:
            months = post_followup_interval_months(screening_type, method)
            return _classify(
                screening_type, method, next_due_date(record.followup_date, months), now
            )

    if not record.last_date:
        return ScreeningAssessment(screening_type, ScreeningStatus.UNKNOWN, method)

    months = _regular_interval(screening_type, record, method)
    return _classify(screening_type, method, next_due_date(record.last_date, months), now)
