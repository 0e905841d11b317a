import click
import json
import logging
from datetime import date, timedelta
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from ..config.manager import ConfigManager
from ..exceptions import CalendarError
from ..services.calendar_service import build_calendar_service

console = Console()


def init_service(ctx):
    """Build the calendar service once per invocation"""
    if 'service' not in ctx.obj:
        ctx.obj['service'] = build_calendar_service(ctx.obj['config'])
        ctx.call_on_close(ctx.obj['service'].close)
    return ctx.obj['service']


def fail(error: CalendarError):
    console.print(f"[bold red]{error.error_code}: {error.message}[/bold red]")
    raise SystemExit(1)


@click.group()
@click.option('--env-file', '-e', help='Path to .env file')
@click.pass_context
def cli(ctx, env_file):
    """Availability calendar - recurring availability with per-day exceptions"""
    config_manager = ConfigManager(env_file)
    logging.basicConfig(level=config_manager.get('development.log_level', 'INFO'))
    ctx.ensure_object(dict)
    ctx.obj['config'] = config_manager


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the database tables"""
    service = init_service(ctx)
    console.print(f"[green]Database ready at {service.event_store.database_manager.database_url}[/green]")


@cli.command('store-credentials')
@click.argument('service_account_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def store_credentials(ctx, service_account_file):
    """Save Google service account JSON to the system keyring"""
    with open(service_account_file, 'r') as f:
        info = json.load(f)
    ctx.obj['config'].save_service_account(info)
    console.print("[green]Service account stored in keyring[/green]")


@cli.command()
@click.argument('owner_id')
@click.option('--start', type=click.DateTime(formats=['%Y-%m-%d']), help='First day (default today)')
@click.option('--end', type=click.DateTime(formats=['%Y-%m-%d']), help='Last day (default start + 6 days)')
@click.pass_context
def occurrences(ctx, owner_id, start, end):
    """Show the occurrences of an owner's events"""
    service = init_service(ctx)
    range_start = start.date() if start else date.today()
    range_end = end.date() if end else range_start + timedelta(days=6)

    try:
        rows = service.list_occurrences(owner_id, range_start, range_end)
    except CalendarError as e:
        fail(e)

    table = Table(title=f"{owner_id}: {range_start} to {range_end}")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Event ID", style="dim")
    for occurrence in rows:
        if occurrence.start_time or occurrence.end_time:
            start_str = occurrence.start_time.strftime('%H:%M') if occurrence.start_time else ''
            end_str = occurrence.end_time.strftime('%H:%M') if occurrence.end_time else ''
            when = f"{start_str}-{end_str}"
        else:
            when = "all day"
        color = "green" if occurrence.event_type == "availability" else "red"
        table.add_row(
            occurrence.date.strftime('%a %Y-%m-%d'),
            when,
            f"[{color}]{occurrence.event_type}[/{color}]",
            occurrence.title,
            occurrence.event_id
        )
    console.print(table)


@cli.command()
@click.argument('event_id')
@click.option('--option', 'delete_option', type=click.Choice(['this_day', 'all_occurrences']),
              help='Required for recurring events')
@click.option('--date', 'specific_date', help='Day to remove (YYYY-MM-DD) with --option this_day')
@click.pass_context
def delete(ctx, event_id, delete_option, specific_date):
    """Delete one day of a recurring event or the whole event"""
    service = init_service(ctx)
    try:
        outcome = service.request_delete(event_id, delete_option, specific_date)
    except CalendarError as e:
        fail(e)

    console.print(f"[bold green]{outcome.message}[/bold green]")
    if outcome.mirror_status == 'sync_failed':
        console.print("[yellow]The remote calendar copy could not be removed; it will need manual cleanup[/yellow]")


@cli.command()
@click.pass_context
def sync(ctx):
    """Push every unsynced event to the remote calendar"""
    service = init_service(ctx)
    result = service.sync_pending()
    lines = [
        f"New: {result.new_events}",
        f"Updated: {result.updated_events}",
        f"Failed: {result.failed_events}"
    ]
    lines.extend(f"[red]{error}[/red]" for error in result.errors)
    console.print(Panel.fit("\n".join(lines), title="Sync complete"))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
