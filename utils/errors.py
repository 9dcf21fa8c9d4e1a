"""Error types shared by the evaluation engine, storage and web layers."""


class AlertError(Exception):
    """Base class for alertmon errors."""


class ValidationError(AlertError, ValueError):
    """Malformed rule or sample. Raised before anything reaches the engine."""


class RuleLookupError(AlertError, LookupError):
    """Matching rules could not be fetched. Fatal for one evaluate() call."""

    def __init__(self, metric_name, cause=None):
        self.metric_name = metric_name
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Rule lookup failed for metric '{metric_name}'{detail}")


class PersistenceError(AlertError):
    """A storage read or write failed."""


class PublishError(AlertError):
    """Notification dispatch failed. Never affects stored state."""
