"""WSGI entry point for production deployment (e.g. gunicorn wsgi:app --threads 8)."""
import sys
import atexit
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from models.database import Database
from alerts.rules_manager import RulesManager
from alerts.engine import EvaluationEngine
from alerts.bus import NotificationBus
from web.app import create_app

logger = logging.getLogger("alertmon.wsgi")

config = load_config()
setup_logging(config["logging"]["level"], config["logging"].get("file"))

db = Database(config["database"]["path"])
db.connect()

rules = RulesManager(db, config["alerts"]["rules_path"])
if config["alerts"].get("load_rules_on_start", True):
    try:
        rules.load()
    except Exception as e:
        logger.warning(f"Seeding rules failed (continuing with stored rules): {e}")

bus = NotificationBus(max_queue=config["alerts"]["bus_queue_size"]).start()
engine = EvaluationEngine(rules, db, bus,
                          serialize_triggers=config["alerts"].get("serialize_triggers", True))


def _shutdown():
    bus.close()
    db.close()


atexit.register(_shutdown)

app = create_app(config, {"engine": engine, "rules": rules, "db": db, "bus": bus})
