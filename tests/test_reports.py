"""Report dataset and filter tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import datetime

import pytest

from core.reports import (
    build_dataset, financial_first_header, meta_line, report_params, tab_label, tabs_for_role,
)

GENERATED = datetime(2024, 3, 5, 14, 7, 9)


class TestTabs:
    def test_cashier(self):
        assert tabs_for_role("cashier") == ["intake", "aging", "soa"]

    def test_staff(self):
        assert tabs_for_role("staff") == ["inventory"]

    def test_admin_sees_all(self):
        assert tabs_for_role("admin") == [
            "intake", "financial", "inventory", "payments", "aging", "soa", "customers",
        ]

    def test_labels(self):
        assert tab_label("intake") == "Payments"
        assert tab_label("unknown") == "Report"


class TestParams:
    def test_defaults(self):
        assert report_params() == {
            "type": "all", "date_range": "all", "section": "all", "granularity": "monthly", "garden": "all",
        }

    def test_custom_needs_both_dates(self):
        assert report_params("custom", start_date="2024-01-01") is None

    def test_custom_range(self):
        params = report_params("custom", start_date="2024-01-01", end_date="2024-01-31")
        assert params["start_date"] == "2024-01-01"
        assert params["end_date"] == "2024-01-31"

    def test_dates_ignored_outside_custom(self):
        assert "start_date" not in report_params("last30days", start_date="2024-01-01", end_date="2024-01-31")


class TestMetaLine:
    def test_intake(self):
        assert meta_line("intake", intake_filter="today", generated_at=GENERATED) == (
            "Filter: Today • Generated: 03/05/2024, 02:07:09 PM"
        )

    def test_range_and_garden(self):
        text = meta_line("inventory", date_range="custom", start_date="2024-01-01", end_date="2024-01-31",
                         section="section-a", garden="Joy Garden", generated_at=GENERATED)
        assert text == (
            "Range: 2024-01-01 to 2024-01-31 • Granularity: MONTHLY • Section: SECTION-A"
            " • Garden: Joy Garden • Generated: 03/05/2024, 02:07:09 PM"
        )

    def test_garden_all_omitted(self):
        assert "Garden" not in meta_line("financial", date_range="all", generated_at=GENERATED)


@pytest.mark.parametrize("granularity,date_range,expected", [
    ("daily", "all", "Date"),
    ("monthly", "last30days", "Date"),
    ("yearly", "all", "Year"),
    ("monthly", "all", "Month"),
])
def test_financial_first_header(granularity, date_range, expected):
    assert financial_first_header(granularity, date_range) == expected


class TestDatasets:
    def test_inventory_sold_total_and_rate(self):
        dataset = build_dataset("inventory", {"inventory": [{
            "garden": "Joy Garden", "section": "A", "totalLots": 10, "availableLots": 6,
            "reservedLots": 1, "occupiedLots": 3, "soldInstallment": 2, "soldFullyPaid": "2",
            "occupancyRate": 40,
        }]})
        row = dataset.rows[0]
        assert row[8] == 4
        assert row[9] == "40%"

    def test_inventory_one_row_per_section(self, inventory_rows):
        dataset = build_dataset("inventory", {"inventory": inventory_rows})
        assert [r[:2] for r in dataset.rows] == [["Joy Garden", "A"], ["Peace Garden", "B"]]
        assert [r[8] for r in dataset.rows] == [4, 5]

    def test_inventory_missing_rate(self):
        row = build_dataset("inventory", {"inventory": [{"section": "B"}]}).rows[0]
        assert row[0] == "-"
        assert row[9] == "0%"

    def test_financial_header_follows_granularity(self):
        dataset = build_dataset("financial", {"financial": [{"month": "2024", "revenue": 5, "payments": 1}]},
                                granularity="yearly")
        assert dataset.headers == ["Year", "Revenue", "Payments"]
        assert dataset.rows == [["2024", 5, 1]]

    def test_intake_prefers_separate_payments(self):
        payments = [{"payment_date": "2024-03-05 14:07:00", "payment_amount": "1500", "owner_name": "Ana"}]
        dataset = build_dataset("intake", {"intake": []}, intake_payments=payments)
        assert dataset.rows == [["3/5/2024, 02:07 PM", "Ana", "N/A", 1500.0, "-", "-", "Cashier"]]

    def test_payments_time(self):
        row = build_dataset("payments", {"payments": [{
            "paymentDate": "2024-03-05", "createdAt": "2024-03-05 09:05:00", "paymentAmount": 10,
        }]}).rows[0]
        assert row[0] == "-"
        assert row[4] == "2024-03-05 09:05 AM"

    def test_aging_defaults(self):
        row = build_dataset("aging", {"aging": [{"paNo": "PA-1"}]}).rows[0]
        assert row[9] == "-"
        assert row[10] == 0

    def test_customers_growth_falls_back_to_trend(self):
        row = build_dataset("customers", {"customers": [
            {"category": "New", "count": 3, "percentage": 30, "trend": "+5%"},
        ]}).rows[0]
        assert row == ["New", 3, "30%", "+5%", "+5%"]

    def test_unknown_report(self):
        dataset = build_dataset("nope", {})
        assert dataset.headers == []
        assert dataset.rows == []

    def test_dataframe(self):
        frame = build_dataset("soa", {"soa": [{"paNo": "PA-1", "buyer": "Ana"}]}).to_dataframe()
        assert list(frame.columns)[:2] == ["PA No.", "Buyer"]
        assert frame.iloc[0]["Buyer"] == "Ana"
