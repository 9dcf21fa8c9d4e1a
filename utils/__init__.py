"""Utility modules for alertmon."""
from utils.logger import setup_logging
from utils.formatters import (
    parse_timestamp, to_iso, utcnow, format_timestamp, format_value, format_cooldown, time_ago,
)
from utils.errors import AlertError, ValidationError, RuleLookupError, PersistenceError, PublishError
