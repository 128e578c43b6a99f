"""Offline CLI command tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import json

from click.testing import CliRunner

from cli import cli


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestNextDue:
    def test_overdue_month(self, tmp_path):
        path = _write(tmp_path, "status.json", {"monthly_status": [{"lot_id": 10, "monthly_payments": [
            {"year_month": "2024-01", "amount": 1000, "paid": True},
            {"year_month": "2024-02", "amount": 1000, "overdue": True, "amount_with_penalty": 1030},
        ]}]})
        result = CliRunner().invoke(cli, ["next-due", "--file", str(path), "--lot-id", "10"])
        assert result.exit_code == 0
        assert "Month: 2024-02" in result.output
        assert "Penalty: ₱30.00" in result.output
        assert "Online checkout: no" in result.output

    def test_fully_paid(self, tmp_path):
        path = _write(tmp_path, "status.json", [{"lot_id": 10, "monthly_payments": [
            {"year_month": "2024-01", "amount": 1000, "paid": True},
        ]}])
        result = CliRunner().invoke(cli, ["next-due", "--file", str(path), "--lot-id", "10"])
        assert "All months are paid for this lot." in result.output

    def test_unknown_lot(self, tmp_path):
        path = _write(tmp_path, "status.json", {"monthly_status": []})
        result = CliRunner().invoke(cli, ["next-due", "--file", str(path), "--lot-id", "99"])
        assert result.exit_code == 1
        assert "Lot '99' not found" in result.output


class TestExportReport:
    def test_excel(self, tmp_path, inventory_rows):
        path = _write(tmp_path, "reports.json", {"success": True, "reports": {"inventory": inventory_rows}})
        out = tmp_path / "out"
        result = CliRunner().invoke(cli, ["export-report", "--type", "inventory", "--file", str(path),
                                          "--out", str(out)])
        assert result.exit_code == 0
        assert "2 row(s) written" in result.output
        assert (out / "Inventory.xlsx").exists()

    def test_csv(self, tmp_path, inventory_rows):
        path = _write(tmp_path, "reports.json", {"reports": {"inventory": inventory_rows}})
        result = CliRunner().invoke(cli, ["export-report", "--type", "inventory", "--file", str(path),
                                          "--out", str(tmp_path), "--csv"])
        assert result.exit_code == 0
        text = (tmp_path / "Inventory.csv").read_text(encoding="utf-8")
        assert text.splitlines()[0].startswith("Garden,Section,Total Lots")


class TestMapPoint:
    def test_center(self):
        result = CliRunner().invoke(cli, [
            "map-point", "--corners", "[[10, 0], [0, 0], [0, 10], [10, 10]]",
            "--size", "100", "100", "--px", "50", "--py", "50",
        ])
        assert result.exit_code == 0
        assert result.output.strip() == "5.00000000, 5.00000000"

    def test_bad_corners(self):
        result = CliRunner().invoke(cli, [
            "map-point", "--corners", "[[0, 0]]", "--size", "10", "10", "--px", "1", "--py", "1",
        ])
        assert result.exit_code == 1
        assert "expected 4 corner points" in result.output


def test_api_commands_need_username(monkeypatch):
    monkeypatch.delenv("MEMORIAL_USERNAME", raising=False)
    result = CliRunner().invoke(cli, ["list-users"])
    assert result.exit_code == 2
    assert "--username" in result.output
