from .reading_validator import (
    ReadingPayload,
    ValidationResult,
    parse_readings,
    validate_reading,
)

__all__ = ["ReadingPayload", "ValidationResult", "parse_readings", "validate_reading"]
