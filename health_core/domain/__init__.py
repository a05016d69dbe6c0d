"""Domain models, unit conversion and calendar helpers."""
