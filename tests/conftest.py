"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from alerts.rules_manager import RulesManager
from alerts.engine import EvaluationEngine
from alerts.bus import NotificationBus

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def at(seconds):
    """ISO-8601 timestamp `seconds` after T0."""
    return (T0 + timedelta(seconds=seconds)).isoformat()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


@pytest.fixture
def rules(temp_db):
    return RulesManager(temp_db, rules_path=None)


@pytest.fixture
def bus():
    bus = NotificationBus(max_queue=10).start()
    yield bus
    bus.close()


@pytest.fixture
def engine(rules, temp_db, bus):
    return EvaluationEngine(rules, temp_db, bus)


@pytest.fixture
def cpu_rule(rules):
    return rules.create_rule({
        "metricName": "cpu", "threshold": 90, "comparator": "GT",
        "cooldownSeconds": 60, "message": "high cpu",
    })
