"""Tests for the database module."""
import sqlite3
import pytest
from datetime import timedelta

from conftest import T0
from models.alerts import Rule, Event
from models.enums import Comparator
from models.database import Database
from utils.errors import PersistenceError


def _event(alert_id="r1", metric="cpu", value=95.0, seconds=0, message="high cpu"):
    return Event(alert_id=alert_id, metric_name=metric, metric_value=value,
                 timestamp=T0 + timedelta(seconds=seconds), message=message)


def test_table_creation(temp_db):
    """Verify all tables exist after init."""
    tables = temp_db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()
    names = {t["name"] for t in tables}
    assert "rules" in names
    assert "alert_events" in names


def test_empty_db(temp_db):
    assert temp_db.list_rules() == []
    assert temp_db.find_by_metric_name("cpu") == []
    assert temp_db.get_events() == ([], 0)
    assert temp_db.get_recent_events() == []
    assert temp_db.get_rule("missing") is None


def test_rule_crud(temp_db):
    rule = Rule(metric_name="cpu", threshold=90, comparator=Comparator.GREATER_THAN,
                message="high cpu", cooldown_seconds=60)
    temp_db.create_rule(rule)

    stored = temp_db.get_rule(rule.id)
    assert stored.metric_name == "cpu"
    assert stored.threshold == 90.0
    assert stored.comparator is Comparator.GREATER_THAN
    assert stored.cooldown_seconds == 60
    assert stored.last_triggered is None
    assert stored.created_at == rule.created_at

    assert [r.id for r in temp_db.list_rules()] == [rule.id]
    assert temp_db.delete_rule(rule.id) is True
    assert temp_db.delete_rule(rule.id) is False
    assert temp_db.get_rule(rule.id) is None


def test_rule_ids_are_generated_and_unique():
    assert Rule().id
    assert Rule().id != Rule().id


def test_find_by_metric_name(temp_db):
    temp_db.create_rule(Rule(metric_name="cpu", message="a"))
    temp_db.create_rule(Rule(metric_name="cpu", message="b"))
    temp_db.create_rule(Rule(metric_name="memory", message="c"))
    assert {r.message for r in temp_db.find_by_metric_name("cpu")} == {"a", "b"}
    assert len(temp_db.find_by_metric_name("memory")) == 1
    assert temp_db.find_by_metric_name("CPU") == []


def test_check_constraints(temp_db):
    with pytest.raises(PersistenceError):
        temp_db.create_rule(Rule(metric_name="cpu", message="x", cooldown_seconds=-1))


def test_duplicate_rule_id_raises(temp_db):
    temp_db.create_rule(Rule(id="dup", metric_name="cpu", message="x"))
    with pytest.raises(PersistenceError):
        temp_db.create_rule(Rule(id="dup", metric_name="cpu", message="y"))
    # connection still usable after rollback
    assert len(temp_db.list_rules()) == 1


def test_update_last_triggered_only_moves_forward(temp_db):
    rule = temp_db.create_rule(Rule(metric_name="cpu", message="x"))
    assert temp_db.update_last_triggered(rule.id, T0 + timedelta(seconds=10)) is True
    assert temp_db.update_last_triggered(rule.id, T0) is False
    assert temp_db.get_rule(rule.id).last_triggered == T0 + timedelta(seconds=10)
    assert temp_db.update_last_triggered(rule.id, T0 + timedelta(seconds=10)) is True
    assert temp_db.update_last_triggered(rule.id, T0 + timedelta(seconds=11)) is True
    assert temp_db.update_last_triggered("missing", T0) is False


def test_append_event_assigns_id(temp_db):
    event = _event()
    stored = temp_db.append_event(event)
    assert event.id is None
    assert stored.id is not None
    assert stored.alert_id == "r1"

    second = temp_db.append_event(_event(seconds=1))
    assert second.id > stored.id


def test_events_newest_first(temp_db):
    for s in (5, 1, 3):
        temp_db.append_event(_event(seconds=s, value=float(s)))
    events, total = temp_db.get_events()
    assert total == 3
    assert [e.metric_value for e in events] == [5.0, 3.0, 1.0]


def test_events_filter_by_metric(temp_db):
    temp_db.append_event(_event(metric="cpu"))
    temp_db.append_event(_event(metric="memory"))
    events, total = temp_db.get_events(metric_name="memory")
    assert total == 1
    assert events[0].metric_name == "memory"


def test_events_filter_by_time_range(temp_db):
    for s in range(10):
        temp_db.append_event(_event(seconds=s * 60))
    events, total = temp_db.get_events(start=T0 + timedelta(minutes=3),
                                       end=T0 + timedelta(minutes=5))
    assert total == 3
    assert [e.timestamp for e in events] == [T0 + timedelta(minutes=m) for m in (5, 4, 3)]


def test_events_pagination(temp_db):
    for s in range(25):
        temp_db.append_event(_event(seconds=s, value=float(s)))
    page1, total = temp_db.get_events(page=1, limit=10)
    page3, _ = temp_db.get_events(page=3, limit=10)
    assert total == 25
    assert len(page1) == 10
    assert page1[0].metric_value == 24.0
    assert len(page3) == 5
    assert page3[-1].metric_value == 0.0


def test_count_events(temp_db):
    temp_db.append_event(_event(alert_id="a"))
    temp_db.append_event(_event(alert_id="a"))
    temp_db.append_event(_event(alert_id="b"))
    assert temp_db.count_events() == 3
    assert temp_db.count_events(alert_id="a") == 2


def test_sqlite_errors_wrapped(temp_db, monkeypatch):
    class BrokenConn:
        def execute(self, *args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        def rollback(self):
            pass

    monkeypatch.setattr(temp_db, "conn", BrokenConn())
    with pytest.raises(PersistenceError, match="database is locked"):
        temp_db.find_by_metric_name("cpu")


def test_closed_database_raises(tmp_path):
    db = Database(str(tmp_path / "closed.db"))
    with pytest.raises(PersistenceError):
        db.list_rules()


def test_context_manager(tmp_path):
    with Database(str(tmp_path / "ctx.db")) as db:
        db.create_rule(Rule(metric_name="cpu", message="x"))
        assert len(db.list_rules()) == 1
    assert db.conn is None
