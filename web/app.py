"""
Flask HTTP API for alertmon.

  POST   /alerts               - Create a threshold rule
  GET    /alerts               - List rules
  DELETE /alerts/<id>          - Delete a rule
  POST   /metrics              - Ingest one sample and evaluate it
  GET    /alert-events         - Paginated, filtered event history
  GET    /alert-events/stream  - Live breach events (Server-Sent Events)
  GET    /health               - Engine and bus status

Started via: alertmon serve [--port 5000] [--host 0.0.0.0], or wsgi.py in production.
"""
import json
import math
import logging

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from alerts.validation import parse_sample
from utils.errors import ValidationError, RuleLookupError, PersistenceError, PublishError
from utils.formatters import parse_timestamp

logger = logging.getLogger("alertmon.web.app")


def format_sse(event) -> str:
    """Frame one breach event as a Server-Sent Events message."""
    payload = json.dumps(event.to_dict())
    return f"event: alert_event\nid: {event.id}\ndata: {payload}\n\n"


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized components from main.py / wsgi.py.

    Args:
        config: Application config dict
        engines: dict with "engine" (EvaluationEngine), "rules" (RulesManager),
                 "db" (Database) and "bus" (NotificationBus)
    """
    app = Flask(__name__)

    web_cfg = config.get("web", {})
    keepalive = web_cfg.get("stream_keepalive", 15)
    default_page_size = web_cfg.get("default_page_size", 20)
    max_page_size = web_cfg.get("max_page_size", 100)

    engine = engines["engine"]
    rules = engines["rules"]
    db = engines["db"]
    bus = engines["bus"]

    # ─── Error Handlers ──────────────────────────────────

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(RuleLookupError)
    def handle_lookup(e):
        return jsonify({"error": "Rule lookup failed, try again later"}), 503

    @app.errorhandler(PersistenceError)
    def handle_persistence(e):
        logger.error(f"Storage error on {request.method} {request.path}: {e}")
        return jsonify({"error": "Storage error"}), 500

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(HTTPException)
    def handle_http(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"Unhandled error on {request.method} {request.path}: {e}")
        return jsonify({"error": "Internal server error"}), 500

    # ─── Helpers ─────────────────────────────────────────

    def _int_arg(name, default):
        raw = request.args.get(name)
        try:
            value = int(float(raw))
        except (TypeError, ValueError, OverflowError):
            return default
        return value or default

    def _time_arg(name):
        raw = request.args.get(name)
        if not raw:
            return None
        try:
            return parse_timestamp(raw)
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 timestamp") from None

    # ─── Rules ───────────────────────────────────────────

    @app.route("/alerts", methods=["POST"])
    def create_alert():
        rule = rules.create_rule(request.get_json(silent=True))
        return jsonify(rule.to_dict()), 201

    @app.route("/alerts", methods=["GET"])
    def list_alerts():
        return jsonify([r.to_dict() for r in rules.get_all_rules()])

    @app.route("/alerts/<rule_id>", methods=["DELETE"])
    def delete_alert(rule_id):
        if not rules.delete_rule(rule_id):
            return jsonify({"error": "Alert not found"}), 404
        return jsonify({"message": "Deleted"})

    # ─── Ingestion ───────────────────────────────────────

    @app.route("/metrics", methods=["POST"])
    def ingest_metric():
        sample = parse_sample(request.get_json(silent=True))
        triggered = engine.evaluate(sample.metric_name, sample.value, sample.timestamp)
        return jsonify({"message": "Metric processed", "triggered": len(triggered)})

    # ─── Events ──────────────────────────────────────────

    @app.route("/alert-events", methods=["GET"])
    def list_events():
        metric_name = request.args.get("metricName") or None
        page = max(1, _int_arg("page", 1))
        limit = max(1, min(max_page_size, _int_arg("limit", default_page_size)))
        start = _time_arg("start")
        end = _time_arg("end")

        events, total = db.get_events(metric_name=metric_name, start=start, end=end,
                                      page=page, limit=limit)
        return jsonify({
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit),
            },
            "data": [e.to_dict() for e in events],
        })

    @app.route("/alert-events/stream", methods=["GET"])
    def stream_events():
        try:
            subscription = bus.subscribe()
        except PublishError:
            return jsonify({"error": "Live stream unavailable"}), 503

        def generate():
            try:
                while not subscription.closed:
                    event = subscription.get(timeout=keepalive)
                    if event is None:
                        if subscription.closed:
                            break
                        yield ": keepalive\n\n"
                        continue
                    yield format_sse(event)
            finally:
                bus.unsubscribe(subscription)

        resp = Response(generate(), mimetype="text/event-stream")
        resp.headers["Cache-Control"] = "no-cache"
        resp.headers["X-Accel-Buffering"] = "no"
        # Covers clients that disconnect before the generator first runs.
        resp.call_on_close(lambda: bus.unsubscribe(subscription))
        return resp

    # ─── Status ──────────────────────────────────────────

    @app.route("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "engine": engine.stats(),
            "bus": {
                "running": bus.is_running,
                "subscribers": bus.subscriber_count(),
                "published": bus.published,
            },
        })

    return app
