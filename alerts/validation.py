"""Validation of incoming rules and metric samples.

Both accept the camelCase wire names used by the HTTP API and the
snake_case names used in YAML rule files.
"""
import math

from models.alerts import Rule, Sample
from models.enums import Comparator
from utils.errors import ValidationError


def _number(value, field_name):
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number") from None
    if math.isnan(number):
        raise ValidationError(f"{field_name} must be a number")
    return number


def _field(data, camel, snake, default=None):
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def parse_rule(data) -> Rule:
    """Build a Rule from a mapping, rejecting anything malformed."""
    if not isinstance(data, dict):
        raise ValidationError("rule must be an object")

    metric_name = _field(data, "metricName", "metric_name")
    threshold = data.get("threshold")
    comparator = data.get("comparator")
    message = data.get("message")
    if not metric_name or threshold is None or not comparator or not message:
        raise ValidationError("metricName, threshold, comparator and message are required")
    if not isinstance(metric_name, str) or not isinstance(message, str):
        raise ValidationError("metricName and message must be strings")
    metric_name = metric_name.strip()
    if not metric_name:
        raise ValidationError("metricName must not be blank")

    try:
        comparator = Comparator.parse(comparator)
    except ValueError:
        allowed = ",".join(c.value for c in Comparator)
        raise ValidationError(f"comparator must be one of: {allowed}") from None

    cooldown = _field(data, "cooldownSeconds", "cooldown_seconds", 0)
    if cooldown is None:
        cooldown = 0
    try:
        cooldown = _number(cooldown, "cooldownSeconds")
    except ValidationError:
        raise ValidationError("cooldownSeconds must be a non-negative number") from None
    if cooldown < 0 or math.isinf(cooldown):
        raise ValidationError("cooldownSeconds must be a non-negative number")

    threshold = _number(threshold, "threshold")
    if math.isinf(threshold):
        raise ValidationError("threshold must be finite")

    return Rule(
        id=str(data.get("id") or ""),
        metric_name=metric_name,
        threshold=threshold,
        comparator=comparator,
        message=message,
        cooldown_seconds=cooldown,
    )


def parse_sample(data) -> Sample:
    """Validate an ingestion payload {metricName, value, timestamp?}."""
    if not isinstance(data, dict):
        raise ValidationError("metricName and value are required")

    metric_name = _field(data, "metricName", "metric_name")
    value = data.get("value")
    if not metric_name or value is None:
        raise ValidationError("metricName and value are required")
    if not isinstance(metric_name, str):
        raise ValidationError("metricName must be a string")
    metric_name = metric_name.strip()
    if not metric_name:
        raise ValidationError("metricName must not be blank")

    try:
        value = _number(value, "value")
    except ValidationError:
        raise ValidationError("value must be a number") from None
    if math.isinf(value):
        raise ValidationError("value must be a number")

    timestamp = data.get("timestamp")
    if timestamp is not None and not isinstance(timestamp, str):
        raise ValidationError("timestamp must be an ISO-8601 string")

    return Sample(metric_name=metric_name, value=value, timestamp=timestamp or None)
