# catalog_sync/utils/csv_io.py
import csv
import os
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

INVENTORY_REPORT_COLUMNS = ("sku", "location_name", "result", "message")
PRODUCT_REPORT_COLUMNS = ("handle", "sku", "result", "message")


class InputFileError(RuntimeError):
    pass


def read_rows(path: str, required: Sequence[str] = ()) -> List[dict]:
    """Read a headed UTF-8 CSV into a list of dicts (BOM tolerated)."""
    if not os.path.isfile(path):
        raise InputFileError(f"CSV file not found: {path}")
    try:
        with open(path, newline="", encoding="utf-8-sig") as fh:
            reader = csv.DictReader(fh)
            header = [h.strip() for h in (reader.fieldnames or [])]
            missing = [c for c in required if c not in header]
            if missing:
                raise InputFileError(f"{path} is missing column(s): {', '.join(missing)}")
            return [{(k or "").strip(): v for k, v in row.items()} for row in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise InputFileError(f"Could not read {path}: {e}") from e


def report_timestamp(tz: Optional[str] = None, now: Optional[datetime] = None) -> str:
    # YYYY-MM-DD-HHMMSS
    if now is None:
        now = datetime.now(ZoneInfo(tz)) if tz else datetime.now().astimezone()
    return now.strftime("%Y-%m-%d-%H%M%S")


def report_path(report_dir: str, prefix: str, tz: Optional[str] = None) -> str:
    return os.path.join(report_dir, f"{prefix}-report-{report_timestamp(tz)}.csv")


def write_report(path: str, rows: Iterable[dict], columns: Sequence[str]) -> str:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(columns), extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path
