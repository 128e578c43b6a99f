import json
import sys
import time
from pathlib import Path

import click

from components.tables import activity_frame, deceased_frame, users_frame
from config.constants import ReportType
from config.settings import configure_logging
from core.geometry import Corners, pixel_to_latlng
from core.import_summary import import_file
from core.list_view import filter_activity, visible_users
from core.payment_monitor import CheckoutMonitor, PendingCheckoutStore
from core.payment_schedule import find_status, quote_next_payment
from core.reports import build_dataset, meta_line, tab_label
from data_manager.api_client import ApiClient, DashboardError
from data_manager.excel_handler import save_report, to_csv
from data_manager.schema import LotMonthlyStatus
from utils.formatters import fmt_amount


def _load_json(path):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}")


def _api(ctx) -> ApiClient:
    """Signed-in client, created on first use"""
    obj = ctx.ensure_object(dict)
    if "api" not in obj:
        if not obj.get("username"):
            raise click.UsageError("This command needs --username and --password (or MEMORIAL_USERNAME/MEMORIAL_PASSWORD)")
        api = ApiClient(base_url=obj["base_url"]) if obj.get("base_url") else ApiClient()
        ctx.call_on_close(api.close)
        try:
            api.login(obj["username"], obj["password"] or "")
        except DashboardError as e:
            raise click.ClickException(f"Sign-in failed: {e}")
        obj["api"] = api
    return obj["api"]


@click.group()
@click.option('--base-url', envvar='MEMORIAL_API_BASE_URL', help='Backend API base URL')
@click.option('--username', envvar='MEMORIAL_USERNAME', help='Account used for API commands')
@click.option('--password', envvar='MEMORIAL_PASSWORD', help='Password for --username')
@click.option('--log-level', default=None, help='Logging level')
@click.pass_context
def cli(ctx, base_url, username, password, log_level):
    """A CLI for the memorial park dashboard."""
    configure_logging(log_level)
    ctx.ensure_object(dict).update(base_url=base_url, username=username, password=password)


@cli.command('next-due')
@click.option('--file', 'file_', type=click.Path(exists=True, dir_okay=False), required=True,
              help='monthly_status.json as returned by the API')
@click.option('--lot-id', type=str, required=True, help='Lot ID')
def next_due(file_, lot_id):
    """Shows the next unpaid month of a lot and what it would cost."""
    data = _load_json(file_)
    raw = (data.get("monthly_status") or []) if isinstance(data, dict) else data
    status = find_status([LotMonthlyStatus.from_api(s) for s in raw], lot_id)
    if status is None:
        raise click.ClickException(f"Lot '{lot_id}' not found in {file_}")
    quote = quote_next_payment(status.monthly_payments)
    if quote.fully_paid:
        click.echo(quote.message)
        return
    click.echo(f"Month: {quote.month.year_month}")
    click.echo(f"Amount: {fmt_amount(quote.base_amount)}")
    if quote.penalty_amount:
        click.echo(f"Penalty: {fmt_amount(quote.penalty_amount)}")
        click.echo(f"Total with penalty: {fmt_amount(quote.total_with_penalty)}")
    click.echo(f"Online checkout: {'yes' if quote.online_allowed else 'no'}")
    if quote.message:
        click.echo(quote.message)


@cli.command('export-report')
@click.option('--type', 'report_key', type=click.Choice([r.value for r in ReportType]), required=True,
              help='Report to export')
@click.option('--file', 'file_', type=click.Path(exists=True, dir_okay=False), required=True,
              help='Report payload saved from the API')
@click.option('--out', type=click.Path(file_okay=False), default='.', help='Output directory')
@click.option('--granularity', type=click.Choice(['daily', 'monthly', 'yearly']), default='monthly')
@click.option('--date-range', default='all', help='Date range the payload was fetched with')
@click.option('--csv', 'as_csv', is_flag=True, help='Write CSV instead of Excel')
def export_report(report_key, file_, out, granularity, date_range, as_csv):
    """Exports one report from a saved payload to Excel (or CSV)."""
    data = _load_json(file_)
    reports = data.get("reports") or data.get("data") or data
    dataset = build_dataset(report_key, reports, intake_payments=data.get("payments"),
                            granularity=granularity, date_range=date_range)
    if as_csv:
        path = Path(out) / f"{tab_label(report_key).replace(' ', '_')}.csv"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(to_csv(dataset), encoding="utf-8")
    else:
        meta = meta_line(report_key, date_range, granularity)
        path = save_report(dataset, report_key, meta, Path(out), label=tab_label(report_key))
    click.echo(f"{len(dataset.rows)} row(s) written to {path}")


@cli.command('map-point')
@click.option('--corners', type=str, required=True,
              help='Sector corners as JSON [[lat,lng] TL, BL, BR, TR]')
@click.option('--size', type=(int, int), required=True, help='Image width and height in pixels')
@click.option('--px', type=float, required=True, help='Pixel x')
@click.option('--py', type=float, required=True, help='Pixel y')
def map_point(corners, size, px, py):
    """Converts an image pixel to a geographic point."""
    try:
        quad = Corners.from_api(json.loads(corners))
        lat, lng = pixel_to_latlng(px, py, quad, size)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"{lat:.8f}, {lng:.8f}")


@cli.command('list-users')
@click.pass_context
def list_users(ctx):
    """Lists accounts visible to the signed-in user."""
    api = _api(ctx)
    try:
        users = visible_users(api.list_users(), api.session.role)
    except DashboardError as e:
        raise click.ClickException(str(e))
    click.echo(users_frame(users).to_string(index=False))


@cli.command('list-deceased')
@click.pass_context
def list_deceased(ctx):
    """Lists deceased records."""
    try:
        records = _api(ctx).list_deceased()
    except DashboardError as e:
        raise click.ClickException(str(e))
    click.echo(deceased_frame(records).to_string(index=False))


@cli.command('activity-log')
@click.option('--filter', 'kind', type=click.Choice(['all', 'admin', 'cashier', 'staff', 'login']), default='all')
@click.option('--limit', type=int, default=100, help='Entries to fetch')
@click.pass_context
def activity_log(ctx, kind, limit):
    """Shows recent activity."""
    try:
        entries = _api(ctx).activity_logs(limit=limit)
    except DashboardError as e:
        raise click.ClickException(str(e))
    click.echo(activity_frame(filter_activity(entries, kind)).to_string(index=False))


@cli.command('import-file')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_file_command(ctx, path):
    """Imports accounts and deceased records from a spreadsheet."""
    try:
        summary = import_file(_api(ctx), path)
    except DashboardError as e:
        raise click.ClickException(str(e))
    click.echo(summary.message)
    if summary.error_message:
        click.echo(summary.error_message, err=True)
    if not summary.ok:
        sys.exit(1)


@cli.command('watch-checkout')
@click.argument('checkout_id', required=False)
@click.option('--lot-id', type=str, default=None, help='Lot the checkout pays for')
@click.option('--store', 'store_path', type=click.Path(dir_okay=False), default=None,
              help='Pending checkouts file')
@click.pass_context
def watch_checkout(ctx, checkout_id, lot_id, store_path):
    """Polls online checkouts until they are paid or time out.

    Without CHECKOUT_ID every pending checkout in the store is resumed.
    """
    api = _api(ctx)
    store = PendingCheckoutStore(store_path) if store_path else PendingCheckoutStore()
    outcome = {"failed": False}

    def report(level, message):
        outcome["failed"] |= level == "error"
        click.echo(message, err=level == "error")

    monitor = CheckoutMonitor(api, store=store, notify=report)
    if checkout_id:
        monitor.start(checkout_id, lot_id)
    else:
        monitor.resume_pending()
    if not monitor.active_ids():
        click.echo("No pending checkouts.")
        return
    click.echo(f"Watching {', '.join(monitor.active_ids())}...")
    try:
        while monitor.active_ids():
            time.sleep(0.5)
    except KeyboardInterrupt:
        monitor.cancel_all()
        click.echo("Stopped; pending checkouts stay in the store.")
        return
    if outcome["failed"]:
        sys.exit(1)


if __name__ == "__main__":
    cli()
