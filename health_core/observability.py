"""
Structured logging setup with health-data scrubbing.

Log events from the core carry ids and counts only, but callers bind their
own context (user records, raw inputs) onto the same loggers. The
`scrub_sensitive_data` processor runs before rendering so measurements,
demographics, medication and screening fields never reach a log sink.
"""

import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog

from health_core.config import LoggingConfig, get_config

REDACTED = "[Filtered]"

# Compared lowercase; camelCase and snake_case variants both appear in caller payloads
SENSITIVE_EXACT_KEYS = frozenset(
    {
        # Health measurements
        "weightkg", "weight_kg", "weight",
        "waistcm", "waist_cm", "waist",
        "heightcm", "height_cm", "height",
        "hba1c",
        "ldlc", "ldl_c", "ldl",
        "totalcholesterol", "total_cholesterol",
        "hdlc", "hdl_c", "hdl",
        "triglycerides",
        "apob", "apo_b",
        "creatinine",
        "psa",
        "lpa",
        "systolicbp", "systolic_bp",
        "diastolicbp", "diastolic_bp",
        # Reveals what someone tracks
        "metrictype", "metric_type",
        # Calculated results
        "idealbodyweight", "ideal_body_weight",
        "proteintarget", "protein_target",
        "bmi",
        "waisttoheightratio", "waist_to_height_ratio",
        "nonhdlcholesterol", "non_hdl_cholesterol",
        "egfr",
        # Medications
        "drugname", "drug_name",
        "dosevalue", "dose_value",
        "doseunit", "dose_unit",
        # Demographics
        "firstname", "first_name",
        "lastname", "last_name",
        "email",
        "birthyear", "birth_year",
        "birthmonth", "birth_month",
        "sex",
        # Identifiers
        "customerid", "customer_id",
        "userid", "user_id",
        "unsubscribe_token",
        # Screening values
        "prostatepsavalue", "prostate_psa_value",
        "lungpackyears", "lung_pack_years",
    }
)

# Catches compound keys such as "colorectal_last_date" or "statinDrug"
SENSITIVE_SUBSTRINGS = (
    "password", "secret", "credential",
    "screening", "followup",
    "colorectal", "breast", "cervical", "lung_", "prostate", "dexa", "endometrial",
    "medication", "statin", "ezetimibe", "pcsk9", "glp1", "sglt2", "metformin",
)

MAX_SCRUB_DEPTH = 10


def is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    if lower in SENSITIVE_EXACT_KEYS:
        return True
    return any(sub in lower for sub in SENSITIVE_SUBSTRINGS)


def scrub_value(value: Any, max_depth: int = MAX_SCRUB_DEPTH, depth: int = 0) -> Any:
    """Return a copy of `value` with sensitive mapping entries redacted.

    Nesting deeper than `max_depth` is replaced wholesale.
    """
    if value is None:
        return value
    if depth >= max_depth:
        return REDACTED
    if isinstance(value, Mapping):
        return {
            key: REDACTED
            if isinstance(key, str) and is_sensitive_key(key)
            else scrub_value(item, max_depth, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [scrub_value(item, max_depth, depth + 1) for item in value]
    return value


def scrub_sensitive_data(
    logger: Any, method_name: str, event_dict: structlog.typing.EventDict
) -> structlog.typing.EventDict:
    """structlog processor: redact health data from the event dict."""
    return {
        key: REDACTED if is_sensitive_key(key) else scrub_value(value, depth=1)
        for key, value in event_dict.items()
    }


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog on top of the stdlib logging module."""
    config = config or get_config().logging

    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger("health_core").setLevel(config.level)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if config.scrub_phi:
        processors.append(scrub_sensitive_data)
    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


configure_logging()
