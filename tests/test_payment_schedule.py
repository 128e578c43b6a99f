"""Installment policy tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.payment_schedule import (
    OVERDUE_MESSAGE, bulk_payment_items, chargeable_amount, find_plan, format_month_label,
    initial_collapsed, is_lot_fully_paid, next_due_amount, next_due_month, office_amount,
    overdue_months, payable_lots, quote_next_payment, schedule_summary, select_month_for_lot, unpaid_run,
)
from data_manager.schema import LotMonthlyStatus, MonthlyPayment, PaymentPlan, ScheduleEntry


def _month(ym, amount=1000.0, paid=False, overdue=False, awp=None, **kw):
    return MonthlyPayment(year_month=ym, amount=amount, paid=paid, overdue=overdue, amount_with_penalty=awp, **kw)


@pytest.fixture
def months():
    return [
        _month("2024-01", paid=True),
        _month("2024-02", overdue=True, awp=1030.0),
        _month("2024-03", overdue=True, awp=1030.0),
        _month("2024-04"),
    ]


class TestNextDue:
    def test_first_unpaid(self, months):
        assert next_due_month(months).year_month == "2024-02"

    def test_ignores_later_flags(self):
        months = [_month("2024-01"), _month("2024-02", overdue=True)]
        assert next_due_month(months).year_month == "2024-01"

    def test_all_paid(self):
        assert next_due_month([_month("2024-01", paid=True)]) is None


class TestChargeable:
    def test_overdue_charges_base_amount(self):
        assert chargeable_amount(_month("2024-02", overdue=True, awp=1030.0)) == 1000.0

    def test_penalty_amount_when_not_overdue(self):
        assert chargeable_amount(_month("2024-02", awp=1030.0)) == 1030.0

    def test_zero_penalty_amount_falls_back(self):
        assert chargeable_amount(_month("2024-02", awp=0.0)) == 1000.0

    def test_missing_penalty_amount_falls_back(self):
        assert chargeable_amount(_month("2024-02")) == 1000.0


class TestQuote:
    def test_overdue_blocks_online(self, months):
        quote = quote_next_payment(months)
        assert not quote.online_allowed
        assert quote.charge_amount == 1000.0
        assert quote.penalty_amount == pytest.approx(30.0)
        assert quote.total_with_penalty == 1030.0
        assert quote.message == OVERDUE_MESSAGE

    def test_current_month_allows_online(self):
        quote = quote_next_payment([_month("2024-04")])
        assert quote.online_allowed
        assert quote.penalty_amount == 0.0
        assert quote.message == ""

    def test_fully_paid(self):
        quote = quote_next_payment([_month("2024-01", paid=True)])
        assert quote.fully_paid
        assert quote.month is None
        assert quote.message == "All months are paid for this lot."

    def test_zero_penalty_amount_keeps_base_total(self):
        quote = quote_next_payment([_month("2024-02", amount=1000.0, overdue=True, awp=0.0)])
        assert quote.penalty_amount == 0.0
        assert quote.total_with_penalty == 1000.0

    def test_total_is_base_plus_penalty(self):
        quote = quote_next_payment([_month("2024-02", amount=1000.0, overdue=True, awp=1030.0)])
        assert quote.total_with_penalty == quote.base_amount + quote.penalty_amount

    def test_penalty_rate_in_message(self):
        assert "3% penalty" in OVERDUE_MESSAGE


class TestOffice:
    def test_office_amount_includes_penalty(self, months):
        assert office_amount(months[1]) == 1030.0
        assert office_amount(months[3]) == 1000.0

    def test_office_amount_zero_penalty_amount_falls_back(self):
        assert office_amount(_month("2024-02", overdue=True, awp=0.0)) == 1000.0

    def test_bulk_items_start_at_oldest_unpaid(self, months):
        items = bulk_payment_items(months, ["2024-01", "2024-02", "2024-03"])
        assert items == [
            {"payment_month": "2024-02", "payment_amount": 1030.0},
            {"payment_month": "2024-03", "payment_amount": 1030.0},
        ]

    def test_bulk_items_reject_skipped_oldest_month(self, months):
        assert bulk_payment_items(months, ["2024-01", "2024-03", "2024-04"]) == []

    def test_bulk_items_stop_at_first_gap(self, months):
        items = bulk_payment_items(months, ["2024-02", "2024-04"])
        assert items == [{"payment_month": "2024-02", "payment_amount": 1030.0}]

    def test_bulk_items_later_month_alone_is_rejected(self):
        months = [
            _month("2024-01", overdue=True, awp=1030.0),
            _month("2024-02"),
            _month("2024-03"),
        ]
        assert bulk_payment_items(months, ["2024-03"]) == []

    def test_unpaid_run_through_month(self, months):
        assert [m.year_month for m in unpaid_run(months, "2024-03")] == ["2024-02", "2024-03"]
        assert [m.year_month for m in unpaid_run(months)] == ["2024-02", "2024-03", "2024-04"]


class TestLots:
    @pytest.fixture
    def statuses(self, months):
        return [
            LotMonthlyStatus(lot_id="10", monthly_payments=months),
            LotMonthlyStatus(lot_id="11", monthly_payments=[_month("2024-01", paid=True)]),
        ]

    def test_select_month_for_lot(self, statuses):
        assert select_month_for_lot(statuses[0]) == ["2024-02"]
        assert select_month_for_lot(statuses[1]) == []
        assert select_month_for_lot(None) == []

    def test_fully_paid(self, statuses):
        assert not is_lot_fully_paid(statuses[0])
        assert is_lot_fully_paid(statuses[1])

    def test_cash_plan_is_fully_paid(self, statuses):
        assert is_lot_fully_paid(statuses[0], PaymentPlan(lot_id="10", payment_term_months=0))

    def test_payable_lots(self, statuses):
        plans = [PaymentPlan(lot_id="10", payment_term_months=12)]
        assert [s.lot_id for s in payable_lots(statuses, plans)] == ["10"]

    def test_find_plan_by_text_id(self):
        plan = PaymentPlan(lot_id="10")
        assert find_plan([plan], 10) is plan

    def test_summary(self, months):
        assert schedule_summary(months) == {"total": 4, "paid": 1, "unpaid": 3, "overdue": 2}
        assert [m.year_month for m in overdue_months(months)] == ["2024-02", "2024-03"]

    def test_long_schedules_start_collapsed(self):
        long = LotMonthlyStatus(lot_id="1", monthly_payments=[_month(f"m{i}") for i in range(24)])
        short = LotMonthlyStatus(lot_id="2", monthly_payments=[_month(f"m{i}") for i in range(6)])
        assert initial_collapsed([long, short]) == {"1": True}


class TestNextDueAmount:
    def test_month_data_wins(self, months):
        statuses = [LotMonthlyStatus(lot_id="10", monthly_payments=months)]
        plans = [PaymentPlan(lot_id="10", monthly_amount=999.0)]
        assert next_due_amount("10", statuses, plans, default=0.0) == 1000.0

    def test_plan_schedule(self):
        plan = PaymentPlan(lot_id="10", payment_term_months=12, schedule=[
            ScheduleEntry(amount_due=500.0, status="Paid"), ScheduleEntry(amount_due=520.0, status="pending"),
        ])
        assert next_due_amount("10", [], [plan], default=0.0) == 520.0

    def test_plan_monthly_amount(self):
        plan = PaymentPlan(lot_id="10", payment_term_months=12, monthly_amount=750.0)
        assert next_due_amount("10", [], [plan], default=0.0) == 750.0

    def test_cash_plan(self):
        plan = PaymentPlan(lot_id="10", payment_term_months=0, monthly_amount=750.0)
        assert next_due_amount("10", [], [plan], default=100.0) == 0.0

    def test_default(self):
        assert next_due_amount("99", [], [], default=100.0) == 100.0


class TestMonthLabel:
    def test_due_date(self):
        assert format_month_label(_month("2024-03", due_date="2024-03-15")) == "Mar 15, 2024"

    def test_due_day(self):
        assert format_month_label(_month("2024-03", due_day=5)) == "Mar 5, 2024"

    def test_display_fallback(self):
        assert format_month_label(_month("2024-03", display="March 2024")) == "March 2024"
