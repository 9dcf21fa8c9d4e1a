"""Alert evaluation module."""
from alerts.engine import EvaluationEngine
from alerts.rules_manager import RulesManager
from alerts.validation import parse_rule, parse_sample
from alerts.bus import NotificationBus, Subscription
