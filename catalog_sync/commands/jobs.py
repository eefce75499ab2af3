# catalog_sync/commands/jobs.py
import os
import sys

import click
from flask import Blueprint

from ..config import load_config, ConfigError
from ..clients.shopify import ShopifyAdmin
from ..services.reconcile import run_inventory_batch, INVENTORY_COLUMNS
from ..services.products import run_product_batch
from ..utils.csv_io import (
    read_rows, write_report, report_path, InputFileError,
    INVENTORY_REPORT_COLUMNS, PRODUCT_REPORT_COLUMNS,
)
from ..utils.logger import info, error, set_level

bp = Blueprint("jobs", __name__, cli_group=None)


def _load_config_or_exit():
    try:
        return load_config()
    except ConfigError as e:
        error(str(e))
        sys.exit(1)

def _read_or_exit(path: str, required=()):
    try:
        return read_rows(path, required)
    except InputFileError as e:
        error(str(e))
        sys.exit(1)

def _run_and_flush(job: str, run, outcomes: list, out_path: str, columns):
    """Run the batch, then always try to write whatever outcomes were collected."""
    interrupted = None
    try:
        run()
    except KeyboardInterrupt as e:
        interrupted = e
        error(f"[{job}] interrupted after {len(outcomes)} row(s)")
    except Exception as e:
        error(f"[{job}] batch aborted after {len(outcomes)} row(s): {e!r}")

    try:
        write_report(out_path, (o.as_report_row() for o in outcomes), columns)
    except Exception as e:
        error(f"[{job}] could not write report {out_path}: {e}")
        sys.exit(1)

    ok = sum(1 for o in outcomes if o.result != "error")
    info(f"[{job}] {ok}/{len(outcomes)} row(s) ok")
    click.echo(f"Report generated: {out_path}")
    if interrupted:
        raise interrupted


@bp.cli.command("inventory-update")
@click.argument("csv_path", default=os.path.join("examples", "inventory.csv"))
@click.option("--report-dir", default=None, help="Folder for the CSV report (default: $REPORT_DIR or ./reports).")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARN, ERROR or NONE.")
def inventory_update(csv_path, report_dir, log_level):
    """Set absolute available quantities per SKU/location from CSV_PATH."""
    if log_level:
        set_level(log_level)
    config = _load_config_or_exit()
    rows = _read_or_exit(csv_path, INVENTORY_COLUMNS)
    info(f"[inventory] {len(rows)} row(s) from {csv_path} -> {config.domain}")

    client = ShopifyAdmin(config)
    outcomes = []
    out_path = report_path(report_dir or config.report_dir, "inventory", config.report_tz)
    _run_and_flush(
        "inventory",
        lambda: run_inventory_batch(client, rows, outcomes,
                                    row_delay=config.row_delay, link_settle=config.link_settle),
        outcomes, out_path, INVENTORY_REPORT_COLUMNS,
    )


@bp.cli.command("product-upload")
@click.argument("csv_path", default=os.path.join("examples", "products.csv"))
@click.option("--report-dir", default=None, help="Folder for the CSV report (default: $REPORT_DIR or ./reports).")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARN, ERROR or NONE.")
def product_upload(csv_path, report_dir, log_level):
    """Create or update products, variants and images from CSV_PATH."""
    if log_level:
        set_level(log_level)
    config = _load_config_or_exit()
    rows = _read_or_exit(csv_path, ("handle",))
    info(f"[products] {len(rows)} row(s) from {csv_path} -> {config.domain}")

    client = ShopifyAdmin(config)
    outcomes = []
    out_path = report_path(report_dir or config.report_dir, "product", config.report_tz)
    _run_and_flush(
        "products",
        lambda: run_product_batch(client, rows, outcomes,
                                  row_delay=config.product_row_delay, image_delay=config.image_delay),
        outcomes, out_path, PRODUCT_REPORT_COLUMNS,
    )
