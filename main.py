#!/usr/bin/env python3
"""alertmon - CLI Entry Point."""
import sys
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from __version__ import __version__

console = Console()
logger = logging.getLogger("alertmon.cli")


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.database import Database
    from alerts.rules_manager import RulesManager
    from alerts.engine import EvaluationEngine
    from alerts.bus import NotificationBus
    from utils.errors import ValidationError

    config = load_config(config_path)
    log_cfg = config["logging"]
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db = Database(config["database"]["path"])
    db.connect()

    alerts_cfg = config["alerts"]
    rules = RulesManager(db, alerts_cfg.get("rules_path"))
    if alerts_cfg.get("load_rules_on_start", True):
        try:
            rules.load()
        except ValidationError as e:
            logger.warning(f"Seeding rules failed (continuing with stored rules): {e}")

    bus = NotificationBus(max_queue=alerts_cfg["bus_queue_size"]).start()
    engine = EvaluationEngine(rules, db, bus,
                              serialize_triggers=alerts_cfg.get("serialize_triggers", True))

    return {"config": config, "db": db, "rules": rules, "bus": bus, "engine": engine}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="alertmon")
@click.pass_context
def cli(ctx, config_path, verbose):
    """alertmon - Threshold alerts on metric samples, with live breach events."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    root = ctx.find_root()
    if "_components" not in root.obj:
        c = _init_components(root.obj.get("config_path"), root.obj.get("verbose"))
        root.obj["_components"] = c

        def _shutdown():
            c["bus"].close()
            c["db"].close()
        root.call_on_close(_shutdown)
    return root.obj["_components"]


# ──────────────────────────────────────────────────────
# SERVE
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def serve(ctx, port, host):
    """Run the HTTP API (ingestion, rules, events, live stream)."""
    from web.app import create_app

    c = _get_components(ctx)
    web_cfg = c["config"]["web"]
    host = host or web_cfg["host"]
    port = port or web_cfg["port"]

    app = create_app(c["config"], c)

    console.print("\n[bold cyan]alertmon -- HTTP API[/bold cyan]\n")
    console.print(f"  Ingest:   POST http://{host}:{port}/metrics")
    console.print(f"  Events:   GET  http://{host}:{port}/alert-events")
    console.print(f"  Live:     GET  http://{host}:{port}/alert-events/stream")
    console.print("\n  Press Ctrl+C to stop.\n")

    app.run(host=host, port=port, debug=False, threaded=True)


# ──────────────────────────────────────────────────────
# INGEST
# ──────────────────────────────────────────────────────
@cli.command()
@click.argument("metric")
@click.argument("value", type=float)
@click.option("--timestamp", "-t", default=None, help="ISO-8601 sample time (default: now)")
@click.pass_context
def ingest(ctx, metric, value, timestamp):
    """Evaluate one METRIC VALUE sample against its rules."""
    from alerts.validation import parse_sample
    from utils.errors import ValidationError, RuleLookupError
    from utils.formatters import format_timestamp, format_value

    c = _get_components(ctx)
    try:
        sample = parse_sample({"metricName": metric, "value": value, "timestamp": timestamp})
        triggered = c["engine"].evaluate(sample.metric_name, sample.value, sample.timestamp)
    except ValidationError as e:
        raise click.BadParameter(str(e))
    except RuleLookupError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        ctx.exit(1)

    if triggered:
        console.print(f"[bold yellow]{len(triggered)} alert(s) triggered:[/bold yellow]")
        for ev in triggered:
            line = (f"[{ev.alert_id}] {ev.metric_name}={format_value(ev.metric_value)} "
                    f"at {format_timestamp(ev.timestamp)}: {ev.message}")
            console.print(f"  {escape(line)}")
    else:
        console.print("[green]All clear - no alerts triggered[/green]")


@cli.command("test")
@click.argument("metric")
@click.argument("value", type=float)
@click.pass_context
def test_rules(ctx, metric, value):
    """Show which rules METRIC VALUE would fire (no events recorded)."""
    c = _get_components(ctx)
    results = c["engine"].test_rules(metric, value)
    if not results:
        console.print(f"[dim]No rules for metric '{escape(metric)}'[/dim]")
        return

    table = Table(title="Alert Rules Test", show_header=True)
    table.add_column("Rule", style="dim")
    table.add_column("Condition")
    table.add_column("Met")
    table.add_column("Cooldown")
    table.add_column("Would Fire")
    for r in results:
        fire_str = "[green]YES[/green]" if r["would_fire"] else "[dim]no[/dim]"
        met_str = "✓" if r["condition_met"] else "✗"
        cd_str = "[yellow]active[/yellow]" if r["in_cooldown"] else "-"
        table.add_row(escape(r["rule_id"]), escape(r["condition"]), met_str, cd_str, fire_str)
    console.print(table)


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Threshold rule management."""
    pass


@rules.command("list")
@click.pass_context
def rules_list(ctx):
    """List all threshold rules."""
    from utils.formatters import format_cooldown, time_ago

    c = _get_components(ctx)
    all_rules = c["rules"].get_all_rules()
    if not all_rules:
        console.print("[dim]No rules configured[/dim]")
        return
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Condition")
    table.add_column("Cooldown")
    table.add_column("Last Triggered")
    table.add_column("Message")
    for r in all_rules:
        table.add_row(escape(r.id), escape(r.describe()), format_cooldown(r.cooldown_seconds),
                      time_ago(r.last_triggered) if r.last_triggered else "[dim]never[/dim]",
                      escape(r.message[:60]))
    console.print(table)


@rules.command("add")
@click.option("--metric", required=True, help="Metric name to watch")
@click.option("--comparator", required=True,
              type=click.Choice(["GT", "GTE", "LT", "LTE", "EQ"], case_sensitive=False))
@click.option("--threshold", required=True, type=float)
@click.option("--message", required=True, help="Text attached to every event")
@click.option("--cooldown", default=0.0, type=float, help="Seconds between triggers")
@click.pass_context
def rules_add(ctx, metric, comparator, threshold, message, cooldown):
    """Create a threshold rule."""
    from utils.errors import ValidationError

    c = _get_components(ctx)
    try:
        rule = c["rules"].create_rule({
            "metricName": metric, "comparator": comparator, "threshold": threshold,
            "message": message, "cooldownSeconds": cooldown,
        })
    except ValidationError as e:
        raise click.BadParameter(str(e))
    console.print(f"[green]✓[/green] Rule {escape(rule.id)} created: {escape(rule.describe())}")


@rules.command("delete")
@click.argument("rule_id")
@click.pass_context
def rules_delete(ctx, rule_id):
    """Delete a rule by ID."""
    c = _get_components(ctx)
    if c["rules"].delete_rule(rule_id):
        console.print(f"[green]✓[/green] Rule {escape(rule_id)} deleted")
    else:
        console.print(f"[red]Rule {escape(rule_id)} not found[/red]")
        ctx.exit(1)


@rules.command("load")
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def rules_load(ctx, path):
    """Seed rules from a YAML file (default: configured rules file)."""
    from alerts.rules_manager import RulesManager
    from utils.errors import ValidationError

    c = _get_components(ctx)
    manager = RulesManager(c["db"], path) if path else c["rules"]
    try:
        created = manager.load()
    except ValidationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        ctx.exit(1)
    console.print(f"[green]✓[/green] {len(created)} rule(s) loaded")


# ──────────────────────────────────────────────────────
# EVENTS
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--metric", default=None, help="Filter by metric name")
@click.option("--page", default=1, type=click.IntRange(min=1))
@click.option("--limit", default=20, type=click.IntRange(1, 100))
@click.pass_context
def events(ctx, metric, page, limit):
    """Show recorded breach events, newest first."""
    from utils.formatters import format_timestamp, format_value

    c = _get_components(ctx)
    rows, total = c["db"].get_events(metric_name=metric, page=page, limit=limit)
    if not rows:
        console.print("[dim]No alert events recorded[/dim]")
        return
    pages = -(-total // limit)
    table = Table(title=f"Alert Events (page {page}/{pages}, {total} total)", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("Rule", style="dim")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Message")
    for ev in rows:
        table.add_row(format_timestamp(ev.timestamp), escape(ev.alert_id), escape(ev.metric_name),
                      format_value(ev.metric_value), escape(ev.message[:60]))
    console.print(table)


if __name__ == "__main__":
    cli()
