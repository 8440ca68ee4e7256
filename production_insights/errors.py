"""
Production Insights Errors
Description: Exception hierarchy shared by the store adapters, analyzers and service
"""

from typing import Optional


class InsightError(Exception):
    """Base class for all production insight errors"""


class StoreUnavailable(InsightError):
    """The record store could not answer a top-level query at all"""

    def __init__(self, entity: str, message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"Record store unavailable for '{entity}'")


class DataUnavailable(InsightError):
    """A per-record sub-query failed; callers substitute an empty default"""

    def __init__(self, entity: str, subject_id: Optional[str] = None, message: Optional[str] = None):
        self.entity = entity
        self.subject_id = subject_id
        super().__init__(message or f"Could not fetch '{entity}' for {subject_id}")


class InvalidRecord(InsightError):
    """A record is missing a required field, or a field cannot be parsed; the record is skipped"""

    def __init__(self, kind: str, record_id: Optional[str], field: str, reason: Optional[str] = None):
        self.kind = kind
        self.record_id = record_id
        self.field = field
        self.reason = reason
        if reason is None:
            message = f"{kind} {record_id!r} is missing required field '{field}'"
        else:
            message = f"{kind} {record_id!r} has an invalid '{field}': {reason}"
        super().__init__(message)


class PredictorUnavailable(InsightError):
    """A lead-time predictor is absent, unfitted or failed"""


class ConfigError(InsightError, ValueError):
    """Invalid analytics configuration"""
