import csv
import os
from datetime import datetime

import pytest

from catalog_sync import create_app
from catalog_sync.config import load_config, ConfigError
from catalog_sync.utils.csv_io import read_rows, report_timestamp, InputFileError

from conftest import FakeAdmin


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("SHOPIFY_STORE", "demo.myshopify.com")
    monkeypatch.setenv("SHOPIFY_TOKEN", "shpat_x")
    monkeypatch.setenv("ROW_DELAY_MS", "0")
    monkeypatch.setenv("LINK_SETTLE_MS", "0")


@pytest.fixture
def runner(monkeypatch):
    # keep a developer's local .env out of the test run
    monkeypatch.setattr("catalog_sync.load_dotenv", lambda *a, **k: False)
    return create_app().test_cli_runner()


def _write_csv(path, header, rows):
    with open(path, "w", newline="", encoding="utf-8") as fh:
        w = csv.writer(fh)
        w.writerow(header)
        w.writerows(rows)
    return str(path)


def _read_report(report_dir):
    files = os.listdir(report_dir)
    assert len(files) == 1
    with open(os.path.join(report_dir, files[0]), newline="", encoding="utf-8") as fh:
        return files[0], list(csv.DictReader(fh))


def test_load_config_defaults():
    cfg = load_config({"SHOPIFY_STORE": "demo.myshopify.com", "SHOPIFY_TOKEN": "t"})
    assert cfg.api_version == "2024-10"
    assert cfg.timeout == 20.0
    assert cfg.row_delay == 0.3
    assert cfg.link_settle == 0.4


def test_load_config_requires_credentials():
    with pytest.raises(ConfigError):
        load_config({"SHOPIFY_STORE": "demo.myshopify.com"})


@pytest.mark.parametrize("name, value", [
    ("ROW_DELAY_MS", "-1"),
    ("LINK_SETTLE_MS", "-400"),
    ("IMAGE_DELAY_MS", "fast"),
    ("REPORT_TZ", "Mars/Olympus_Mons"),
])
def test_load_config_rejects_bad_pacing_and_timezone(name, value):
    with pytest.raises(ConfigError) as exc:
        load_config({"SHOPIFY_STORE": "demo.myshopify.com", "SHOPIFY_TOKEN": "t", name: value})
    assert name in str(exc.value)


def test_load_config_accepts_named_timezone():
    cfg = load_config({"SHOPIFY_STORE": "demo.myshopify.com", "SHOPIFY_TOKEN": "t",
                       "REPORT_TZ": "America/Santiago", "ROW_DELAY_MS": "0"})
    assert cfg.report_tz == "America/Santiago"
    assert cfg.row_delay == 0.0


def test_negative_delay_in_env_exits_before_any_row(tmp_path, monkeypatch, env, runner):
    monkeypatch.setenv("ROW_DELAY_MS", "-1")
    path = _write_csv(tmp_path / "inventory.csv", ["sku", "location_name", "available"], [["SKU-1", "Main", "1"]])
    result = runner.invoke(args=["inventory-update", path, "--report-dir", str(tmp_path / "reports")])
    assert result.exit_code == 1
    assert not (tmp_path / "reports").exists()


def test_read_rows_missing_file(tmp_path):
    with pytest.raises(InputFileError):
        read_rows(str(tmp_path / "nope.csv"))


def test_read_rows_checks_columns(tmp_path):
    path = _write_csv(tmp_path / "inv.csv", ["sku", "available"], [["A", "1"]])
    with pytest.raises(InputFileError):
        read_rows(path, ("sku", "location_name", "available"))


def test_report_timestamp_format():
    assert report_timestamp(now=datetime(2025, 3, 9, 7, 5, 1)) == "2025-03-09-070501"


def test_inventory_update_writes_report_in_input_order(tmp_path, monkeypatch, env, runner, sleeps):
    fake = FakeAdmin(
        products=[{"id": 1, "variants": [{"id": 2, "sku": "SKU-1", "inventory_item_id": 3}]}],
        locations=[{"id": "gid://shopify/Location/9", "name": "Main", "isActive": True}],
    )
    monkeypatch.setattr("catalog_sync.commands.jobs.ShopifyAdmin", lambda config: fake)
    path = _write_csv(tmp_path / "inventory.csv", ["sku", "location_name", "available"],
                      [["SKU-1", "main", "5"], ["", "Main", "1"], ["SKU-1", "Elsewhere", "2"]])
    reports = tmp_path / "reports"

    result = runner.invoke(args=["inventory-update", path, "--report-dir", str(reports)])

    assert result.exit_code == 0, result.output
    name, rows = _read_report(reports)
    assert name.startswith("inventory-report-")
    assert [r["result"] for r in rows] == ["success", "error", "error"]
    assert rows[0]["message"] == "Stock set from 0 to 5"
    assert rows[2]["message"] == 'Location "Elsewhere" not found or inactive'
    assert list(rows[0].keys()) == ["sku", "location_name", "result", "message"]


def test_inventory_update_without_config_exits_nonzero(tmp_path, monkeypatch, runner):
    monkeypatch.delenv("SHOPIFY_STORE", raising=False)
    monkeypatch.delenv("SHOPIFY_TOKEN", raising=False)
    path = _write_csv(tmp_path / "inventory.csv", ["sku", "location_name", "available"], [])
    result = runner.invoke(args=["inventory-update", path])
    assert result.exit_code == 1


def test_inventory_update_missing_input_exits_nonzero(tmp_path, env, runner):
    result = runner.invoke(args=["inventory-update", str(tmp_path / "missing.csv"),
                                 "--report-dir", str(tmp_path / "reports")])
    assert result.exit_code == 1
    assert not (tmp_path / "reports").exists()


def test_aborted_batch_still_flushes_report(tmp_path, monkeypatch, env, runner, sleeps):
    from catalog_sync.services.reconcile import RowOutcome

    def partial(client, rows, outcomes, **kwargs):
        outcomes.append(RowOutcome("SKU-1", "Main", "success", "Stock set from 1 to 2"))
        raise RuntimeError("process-level failure")

    monkeypatch.setattr("catalog_sync.commands.jobs.ShopifyAdmin", lambda config: FakeAdmin())
    monkeypatch.setattr("catalog_sync.commands.jobs.run_inventory_batch", partial)
    path = _write_csv(tmp_path / "inventory.csv", ["sku", "location_name", "available"],
                      [["SKU-1", "Main", "2"], ["SKU-2", "Main", "3"]])
    reports = tmp_path / "reports"

    result = runner.invoke(args=["inventory-update", path, "--report-dir", str(reports)])

    assert result.exit_code == 0, result.output
    _, rows = _read_report(reports)
    assert [r["sku"] for r in rows] == ["SKU-1"]


def test_health_endpoint(monkeypatch):
    monkeypatch.setattr("catalog_sync.load_dotenv", lambda *a, **k: False)
    client = create_app().test_client()
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json() == {"ok": True}
