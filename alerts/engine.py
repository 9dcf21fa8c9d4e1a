"""Metric evaluation engine."""
import logging
import threading
from datetime import datetime, timezone

from models.alerts import Event
from utils.errors import RuleLookupError
from utils.formatters import parse_timestamp, utcnow

logger = logging.getLogger("alertmon.alerts.engine")


class EvaluationEngine:
    """Matches one sample against its rules and records every confirmed breach.

    `rules` supplies find_by_metric_name / get_rule / update_last_triggered,
    `db` supplies append_event and `bus` supplies publish. With
    `serialize_triggers` on, the cooldown check and commit for a given rule
    run under a per-rule lock against a fresh read of the rule, so concurrent
    samples cannot both slip through the same cooldown window.
    """

    def __init__(self, rules, db, bus=None, serialize_triggers=True):
        self.rules = rules
        self.db = db
        self.bus = bus
        self.serialize_triggers = serialize_triggers
        self._rule_locks = {}
        self._locks_guard = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = {
            "evaluations": 0,
            "triggers": 0,
            "suppressed": 0,
            "failures": 0,
            "start_time": datetime.now(timezone.utc),
        }

    def _bump(self, key):
        with self._stats_lock:
            self._stats[key] += 1

    def _resolve_time(self, timestamp):
        if timestamp is None or timestamp == "":
            return utcnow()
        try:
            return parse_timestamp(timestamp)
        except (TypeError, ValueError):
            logger.warning(f"Unparseable sample timestamp {timestamp!r}, using current time")
            return utcnow()

    def _lock_for(self, rule_id):
        with self._locks_guard:
            lock = self._rule_locks.get(rule_id)
            if lock is None:
                lock = self._rule_locks[rule_id] = threading.Lock()
            return lock

    def _forget_lock(self, rule_id):
        with self._locks_guard:
            self._rule_locks.pop(rule_id, None)

    def evaluate(self, metric_name, value, timestamp=None):
        """Evaluate one sample. Returns the events stored during this call.

        Raises RuleLookupError if the matching rules cannot be fetched; any
        failure while handling an individual rule is logged and skipped.
        """
        now = self._resolve_time(timestamp)
        value = float(value)

        try:
            rules = self.rules.find_by_metric_name(metric_name)
        except Exception as e:
            logger.error(f"Rule lookup failed for metric '{metric_name}': {e}")
            raise RuleLookupError(metric_name, e) from e

        self._bump("evaluations")
        if not rules:
            logger.debug(f"No rules for metric '{metric_name}'")
            return []

        triggered = []
        for rule in rules:
            try:
                event = self._process_rule(rule, metric_name, value, now)
            except Exception as e:
                self._bump("failures")
                logger.error(f"Rule {rule.id} failed for metric '{metric_name}' (value={value}): {e}")
                continue
            if event is not None:
                triggered.append(event)
                self._publish(event)

        return triggered

    def _process_rule(self, rule, metric_name, value, now):
        if not self.serialize_triggers:
            return self._check_and_commit(rule, metric_name, value, now)

        with self._lock_for(rule.id):
            current = self.rules.get_rule(rule.id)
            if current is None:
                logger.debug(f"Rule {rule.id} was deleted during evaluation")
                self._forget_lock(rule.id)
                return None
            return self._check_and_commit(current, metric_name, value, now)

    def _check_and_commit(self, rule, metric_name, value, now):
        if rule.in_cooldown(now):
            self._bump("suppressed")
            logger.debug(f"Rule {rule.id} in cooldown ({rule.cooldown_seconds}s since "
                         f"{rule.last_triggered.isoformat()})")
            return None

        if not rule.matches(value):
            return None

        event = self.db.append_event(Event(
            alert_id=rule.id,
            metric_name=metric_name,
            metric_value=value,
            timestamp=now,
            message=rule.message,
        ))
        self._bump("triggers")
        logger.info(f"Rule {rule.id} triggered: {rule.describe()} (value={value})")

        # The event stands even if the trigger time cannot be recorded.
        try:
            if self.rules.update_last_triggered(rule.id, now):
                rule.last_triggered = now
            else:
                logger.debug(f"Rule {rule.id} last_triggered not advanced to {now.isoformat()}")
        except Exception as e:
            self._bump("failures")
            logger.error(f"Event {event.id} recorded but last_triggered update failed "
                         f"for rule {rule.id} (metric '{metric_name}'): {e}")
        return event

    def _publish(self, event):
        if self.bus is None:
            return
        try:
            self.bus.publish(event)
        except Exception as e:
            logger.warning(f"Failed to publish event {event.id} for rule {event.alert_id}: {e}")

    def test_rules(self, metric_name, value, timestamp=None):
        """Dry run: report what each matching rule would do. Writes and publishes nothing."""
        now = self._resolve_time(timestamp)
        value = float(value)
        try:
            rules = self.rules.find_by_metric_name(metric_name)
        except Exception as e:
            raise RuleLookupError(metric_name, e) from e

        results = []
        for rule in rules:
            in_cooldown = rule.in_cooldown(now)
            condition_met = rule.matches(value)
            results.append({
                "rule_id": rule.id,
                "condition": rule.describe(),
                "message": rule.message,
                "value": value,
                "condition_met": condition_met,
                "in_cooldown": in_cooldown,
                "would_fire": condition_met and not in_cooldown,
            })
        return results

    def stats(self):
        with self._stats_lock:
            snapshot = dict(self._stats)
        uptime = (datetime.now(timezone.utc) - snapshot.pop("start_time")).total_seconds()
        return {**snapshot, "uptime_seconds": round(uptime, 2)}
