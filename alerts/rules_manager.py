"""Alert rules loading and management."""
import logging
from pathlib import Path

import yaml

from alerts.validation import parse_rule
from models.alerts import Rule
from utils.errors import ValidationError

logger = logging.getLogger("alertmon.alerts.rules")


class RulesManager:
    """Front for the rule half of the database; the engine reads rules through it."""

    def __init__(self, db, rules_path="config/alerts_rules.yaml"):
        self.db = db
        self.rules_path = Path(rules_path) if rules_path else None

    def load(self):
        """Seed rules from the YAML file. Rules whose id already exists are left alone."""
        if self.rules_path is None or not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return []
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise ValidationError("rules file must contain a 'rules' mapping")

        created = []
        for raw in data.get("rules", []):
            try:
                rule = parse_rule(raw)
            except ValidationError as e:
                rule_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Invalid rule {rule_id}: {e}")
                continue
            if raw.get("id") and self.db.get_rule(rule.id) is not None:
                continue
            created.append(self.db.create_rule(rule))
        logger.info(f"Loaded {len(created)} rule(s) from {self.rules_path}")
        return created

    def create_rule(self, data) -> Rule:
        rule = data if isinstance(data, Rule) else parse_rule(data)
        if rule.cooldown_seconds < 0:
            raise ValidationError("cooldownSeconds must be a non-negative number")
        if rule.id and self.db.get_rule(rule.id) is not None:
            raise ValidationError(f"Rule {rule.id} already exists")
        created = self.db.create_rule(rule)
        logger.info(f"Created rule {created.id}: {created.describe()}")
        return created

    def delete_rule(self, rule_id) -> bool:
        deleted = self.db.delete_rule(rule_id)
        if deleted:
            logger.info(f"Deleted rule {rule_id}")
        return deleted

    def get_rule(self, rule_id):
        return self.db.get_rule(rule_id)

    def get_all_rules(self):
        return self.db.list_rules()

    def find_by_metric_name(self, metric_name):
        return self.db.find_by_metric_name(metric_name)

    def update_last_triggered(self, rule_id, timestamp) -> bool:
        return self.db.update_last_triggered(rule_id, timestamp)
