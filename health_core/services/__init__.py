"""
Core services for the engine.

This package contains the calculator, the suggestion engine with its
medication cascades, the screening schedule calculator, the reminder
aggregator, and the mappings from stored records to domain state.
"""

from .calculator import calculate_health_results
from .reminders import assemble_reminders, compute_due_reminders
from .screening import assess_screening, is_eligible
from .suggestions import generate_suggestions

__all__ = [
    "assemble_reminders",
    "assess_screening",
    "calculate_health_results",
    "compute_due_reminders",
    "generate_suggestions",
    "is_eligible",
]
