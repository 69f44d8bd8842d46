"""Command-line interface for device usage analysis."""

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .analysis import sessions, summary
from .analysis.usage import local_date
from .collectors import demo, files
from .collectors.rest import EventStoreError, RestEventStore
from .config import ConfigError, load_config
from .events import ValidationError, parse_events, parse_timestamp
from .models import DailySummary, Validity
from .pipeline import reconstruct_and_aggregate
from .tariffs import load_devices_from_yaml

console = Console()

VALIDITY_STYLES = {
    Validity.VALID: "green",
    Validity.INVALID_ORDER: "red",
    Validity.TOO_LONG: "yellow",
    Validity.INCOMPLETE: "dim",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to config YAML")
@click.option("--devices", "devices_path", type=click.Path(exists=True), help="Path to devices YAML")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, devices_path, verbose):
    """Device usage analysis - runtime, energy, cost and savings from ON/OFF events."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        raise click.ClickException(str(e))

    devices_file = devices_path or config.devices_file
    resolver = None
    if devices_file:
        resolver = load_devices_from_yaml(
            Path(devices_file), config.default_wattage, config.default_unit_price
        )

    ctx.obj["config"] = config
    ctx.obj["resolver"] = resolver


def events_option(f):
    return click.option(
        "--events",
        "events_path",
        type=click.Path(exists=True),
        required=True,
        help="Events file (.csv or .json)",
    )(f)


def at_option(f):
    return click.option(
        "--at", "at", help="Evaluation time (ISO-8601), defaults to now"
    )(f)


def _evaluation_time(at: str | None) -> datetime:
    if not at:
        return parse_timestamp(datetime.now().astimezone())
    try:
        return parse_timestamp(at)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--at")


def _parse_date(value: str, param_hint: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"Invalid date: {value!r} (expected YYYY-MM-DD)", param_hint=param_hint)


def _load(events_path: str) -> list[dict]:
    try:
        return files.load_events(Path(events_path))
    except files.EventFileError as e:
        raise click.ClickException(str(e))


def _report(ctx, events_path, evaluation_time, month=None, calendar_complete=False):
    try:
        return reconstruct_and_aggregate(
            _load(events_path),
            ctx.obj["config"],
            evaluation_time,
            resolver=ctx.obj["resolver"],
            month=month,
            calendar_complete=calendar_complete,
        )
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command("sessions")
@events_option
@at_option
@click.option("--device", help="Only show this device")
@click.pass_context
def sessions_cmd(ctx, events_path, at, device):
    """List reconstructed sessions with their validity."""
    config = ctx.obj["config"]
    result = sessions.reconstruct_sessions(
        _load(events_path), _evaluation_time(at), config.max_session_minutes
    )
    session_list = result.for_device(device) if device else result.sessions

    if not session_list:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(title="Device Sessions")
    table.add_column("Device", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Duration", justify="right")
    table.add_column("Ended by")
    table.add_column("Validity")

    for s in session_list:
        style = VALIDITY_STYLES[s.validity]
        table.add_row(
            s.device_id,
            s.start.strftime("%Y-%m-%d %H:%M"),
            s.end.strftime("%H:%M") if s.end else "Currently running",
            summary.format_duration(s.duration_minutes),
            s.terminal_state.value,
            f"[{style}]{s.validity.value}[/{style}]",
        )

    console.print(table)
    if result.anomalies:
        console.print(f"[yellow]{len(result.anomalies)} anomalies recorded[/yellow]")


@cli.command()
@events_option
@at_option
@click.option("--date", "day", help="Date to summarize (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def day(ctx, events_path, at, day, as_json):
    """Show usage for a single day."""
    evaluation_time = _evaluation_time(at)
    if day:
        target = _parse_date(day, "--date")
    else:
        target = local_date(evaluation_time, ctx.obj["config"].tzinfo)
    report = _report(ctx, events_path, evaluation_time, month=target.strftime("%Y-%m"))

    daily = next(
        (s for s in report.daily_summaries if s.date == target), DailySummary(date=target)
    )
    if as_json:
        click.echo(json.dumps(summary.summary_to_dict(daily), indent=2))
    else:
        console.print(summary.format_daily_summary_text(daily))


@cli.command()
@events_option
@at_option
@click.option("--month", help="Month to summarize (YYYY-MM), defaults to the evaluation month")
@click.option("--calendar", "calendar_complete", is_flag=True, help="Include days without usage")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def month(ctx, events_path, at, month, calendar_complete, as_json):
    """Show monthly totals with a daily breakdown."""
    report = _report(
        ctx, events_path, _evaluation_time(at), month=month, calendar_complete=calendar_complete
    )
    stats = report.monthly_stats

    if as_json:
        click.echo(json.dumps(summary.monthly_stats_to_dict(stats), indent=2))
        return

    console.print(summary.format_monthly_stats_text(stats))

    table = Table(title=f"Daily Usage {stats.month}")
    table.add_column("Date", style="cyan")
    table.add_column("Runtime", justify="right")
    table.add_column("kWh", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Devices", justify="right")

    for s in stats.daily_summaries:
        table.add_row(
            s.date.isoformat(),
            summary.format_duration(s.total_duration_minutes),
            f"{s.total_units_kwh:.3f}",
            f"{s.total_cost:.2f}",
            str(len(s.devices)),
        )

    console.print(table)


@cli.command()
@events_option
@at_option
@click.option("--month", help="Month (YYYY-MM), defaults to the evaluation month")
@click.pass_context
def savings(ctx, events_path, at, month):
    """Show estimated savings from automatic switch-offs."""
    report = _report(ctx, events_path, _evaluation_time(at), month=month)
    stats = report.monthly_stats

    if not stats.energy_savings:
        console.print("[yellow]No auto-off events found[/yellow]")
        return

    hours = stats.energy_savings[0].assumed_hours_per_event
    table = Table(title=f"Estimated Savings {stats.month} (assuming {hours}h per auto-off)")
    table.add_column("Device", style="cyan")
    table.add_column("Auto-offs", justify="right")
    table.add_column("kWh saved (est.)", justify="right")
    table.add_column("Cost saved (est.)", justify="right")

    for s in stats.energy_savings:
        table.add_row(
            s.device_name,
            str(s.total_auto_offs),
            f"{s.energy_saved_kwh:.3f}",
            f"{s.cost_saved:.2f}",
        )
    table.add_row(
        "[bold]Total[/bold]",
        str(sum(s.total_auto_offs for s in stats.energy_savings)),
        f"[bold]{stats.total_energy_saved_kwh:.3f}[/bold]",
        f"[bold]{stats.total_cost_saved:.2f}[/bold]",
    )
    console.print(table)


@cli.command()
@events_option
@at_option
@click.pass_context
def running(ctx, events_path, at):
    """Show devices that are currently switched on."""
    config = ctx.obj["config"]
    evaluation_time = _evaluation_time(at)
    result = sessions.reconstruct_sessions(
        _load(events_path), evaluation_time, config.max_session_minutes
    )
    running_list = sessions.running_sessions(result.sessions)

    if not running_list:
        console.print("[yellow]No devices running[/yellow]")
        return

    table = Table(title="Running Devices")
    table.add_column("Device", style="cyan")
    table.add_column("Since")
    table.add_column("Running for", justify="right")
    table.add_column("Validity")
    for s in running_list:
        style = VALIDITY_STYLES[s.validity]
        table.add_row(
            s.device_id,
            s.start.isoformat(sep=" ", timespec="minutes"),
            summary.format_duration(s.duration_minutes),
            f"[{style}]{s.validity.value}[/{style}]",
        )
    console.print(table)

    longest = sessions.longest_running_session(result.sessions)
    console.print(
        f"[cyan]Longest running: {longest.device_id} "
        f"({summary.format_duration(longest.duration_minutes)})[/cyan]"
    )
    today = local_date(evaluation_time, config.tzinfo)
    runtime = sessions.runtime_for_day(result.sessions, today, config.tzinfo)
    console.print(f"[cyan]Runtime today: {summary.format_duration(runtime)}[/cyan]")


@cli.command()
@events_option
@at_option
@click.pass_context
def anomalies(ctx, events_path, at):
    """List anomalies found while reconstructing sessions."""
    report = _report(ctx, events_path, _evaluation_time(at))

    if not report.anomalies:
        console.print("[green]No anomalies[/green]")
        return

    table = Table(title="Anomalies")
    table.add_column("Kind", style="yellow")
    table.add_column("Device", style="cyan")
    table.add_column("Time")
    table.add_column("Details")
    for a in report.anomalies:
        table.add_row(
            a.kind.value,
            a.device_id or "",
            a.timestamp.isoformat(sep=" ", timespec="minutes") if a.timestamp else "",
            a.message,
        )
    console.print(table)


@cli.command("demo")
@click.option("--seed", default=42, help="Random seed (default: 42)")
@click.option("--from-date", help="Start date (YYYY-MM-DD), defaults to 30 days ago")
@click.option("--to-date", help="End date (YYYY-MM-DD), defaults to today")
@click.option("--out", "out_path", type=click.Path(), required=True, help="Output CSV path")
def demo_cmd(seed, from_date, to_date, out_path):
    """Generate demo events to a CSV file."""
    end = _parse_date(to_date, "--to-date") if to_date else date.today()
    start = _parse_date(from_date, "--from-date") if from_date else end - timedelta(days=30)

    events = demo.generate_events(seed, start, end)
    count = files.write_events_csv(events, Path(out_path))
    console.print(f"[green]Wrote {count} events ({start} → {end}) to {out_path}[/green]")


@cli.command()
@click.option("--from-date", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--to-date", help="End date (YYYY-MM-DD), defaults to today")
@click.option("--device", help="Only fetch this device")
@click.option("--out", "out_path", type=click.Path(), required=True, help="Output CSV path")
def fetch(from_date, to_date, device, out_path):
    """Fetch events from the REST event store into a CSV file.

    Requires DEVICE_EVENTS_URL (and optionally DEVICE_EVENTS_API_KEY).
    """
    from_day = _parse_date(from_date, "--from-date")
    start = datetime(from_day.year, from_day.month, from_day.day)
    if to_date:
        to_day = _parse_date(to_date, "--to-date") + timedelta(days=1)
        end = datetime(to_day.year, to_day.month, to_day.day)
    else:
        end = datetime.now()

    try:
        store = RestEventStore()
        rows = store.get_events(device, start, end)
    except EventStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    parsed, bad = parse_events(rows)
    count = files.write_events_csv(parsed, Path(out_path))
    console.print(f"[green]Fetched {count} events to {out_path}[/green]")
    if bad:
        console.print(f"[yellow]Skipped {len(bad)} malformed events[/yellow]")


if __name__ == "__main__":
    cli()
