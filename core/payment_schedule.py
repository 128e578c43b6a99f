"""
Monthly installment policy

Pure helpers behind the payments page: which month is due next, how much may be
charged online, and how schedules are labelled. Rendering lives in the pages.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from config.constants import COLLAPSED_SCHEDULE_LENGTHS
from config.settings import OVERDUE_PENALTY_RATE
from data_manager.schema import LotMonthlyStatus, MonthlyPayment, PaymentPlan
from utils.date_utils import MONTH_ABBR, fmt_short_date
from utils.formatters import to_number

OVERDUE_MESSAGE = (
    "Online payments for overdue months are disabled. Please visit the office for onsite "
    f"payment so we can apply the {OVERDUE_PENALTY_RATE * 100:g}% penalty correctly."
)


@dataclass
class PaymentQuote:
    month: Optional[MonthlyPayment]
    charge_amount: float
    online_allowed: bool
    fully_paid: bool
    base_amount: float = 0.0
    penalty_amount: float = 0.0
    total_with_penalty: float = 0.0

    @property
    def message(self) -> str:
        if self.fully_paid:
            return "All months are paid for this lot."
        return "" if self.online_allowed else OVERDUE_MESSAGE


def next_due_month(months: Iterable[MonthlyPayment]) -> Optional[MonthlyPayment]:
    for m in months:
        if not m.paid:
            return m
    return None


def chargeable_amount(month: MonthlyPayment) -> float:
    """Amount the online checkout would charge for this month"""
    if month.overdue:
        return to_number(month.amount)
    with_penalty = to_number(month.amount_with_penalty)
    if month.amount_with_penalty is not None and with_penalty > 0:
        return with_penalty
    return to_number(month.amount)


def quote_next_payment(months: List[MonthlyPayment]) -> PaymentQuote:
    month = next_due_month(months)
    if month is None:
        return PaymentQuote(month=None, charge_amount=0.0, online_allowed=False, fully_paid=True)

    base = to_number(month.amount)
    penalty = 0.0
    if month.overdue and month.amount_with_penalty is not None:
        penalty = max(to_number(month.amount_with_penalty) - base, 0.0)
    return PaymentQuote(
        month=month,
        charge_amount=chargeable_amount(month),
        online_allowed=not month.overdue,
        fully_paid=False,
        base_amount=base,
        penalty_amount=penalty,
        total_with_penalty=base + penalty,
    )


def office_amount(month: MonthlyPayment) -> float:
    """Amount collected at the office; overdue months include the penalty"""
    with_penalty = to_number(month.amount_with_penalty)
    if month.overdue and month.amount_with_penalty is not None and with_penalty > 0:
        return with_penalty
    return to_number(month.amount)


def unpaid_run(months: Iterable[MonthlyPayment], through: Optional[str] = None) -> List[MonthlyPayment]:
    """Unpaid months oldest first, stopping after ``through`` when given"""
    run = []
    for m in months:
        if m.paid:
            continue
        run.append(m)
        if through is not None and m.year_month == through:
            break
    return run


def bulk_payment_items(months: Iterable[MonthlyPayment], selected: Iterable[str]) -> List[dict]:
    """Office payment lines for the selected months

    Only the unbroken run of selected months that starts at the oldest unpaid
    month is kept; a selection that skips an older unpaid month stops there.
    """
    chosen = set(selected)
    items = []
    for m in unpaid_run(months):
        if m.year_month not in chosen:
            break
        items.append({"payment_month": m.year_month, "payment_amount": office_amount(m)})
    return items


def select_month_for_lot(lot_status: Optional[LotMonthlyStatus]) -> List[str]:
    """Payments are made one month at a time, oldest first"""
    if lot_status is None:
        return []
    month = next_due_month(lot_status.monthly_payments)
    return [month.year_month] if month else []


def find_plan(plans: Iterable[PaymentPlan], lot_id) -> Optional[PaymentPlan]:
    for p in plans:
        if str(p.lot_id) == str(lot_id):
            return p
    return None


def find_status(statuses: Iterable[LotMonthlyStatus], lot_id) -> Optional[LotMonthlyStatus]:
    for s in statuses:
        if str(s.lot_id) == str(lot_id):
            return s
    return None


def is_lot_fully_paid(lot_status: Optional[LotMonthlyStatus], plan: Optional[PaymentPlan] = None) -> bool:
    if plan is not None and plan.payment_term_months == 0:
        return True
    if lot_status is None or not lot_status.monthly_payments:
        return True
    return all(m.paid for m in lot_status.monthly_payments)


def payable_lots(statuses: List[LotMonthlyStatus], plans: List[PaymentPlan]) -> List[LotMonthlyStatus]:
    return [s for s in statuses if not is_lot_fully_paid(s, find_plan(plans, s.lot_id))]


def overdue_months(months: Iterable[MonthlyPayment]) -> List[MonthlyPayment]:
    return [m for m in months if not m.paid and m.overdue]


def next_due_amount(
    lot_id,
    statuses: List[LotMonthlyStatus],
    plans: List[PaymentPlan],
    default: float,
) -> float:
    """Amount pre-filled when a lot is picked; month data wins over the plan"""
    status = find_status(statuses, lot_id)
    if status is not None:
        month = next_due_month(status.monthly_payments)
        if month is not None:
            amount = chargeable_amount(month)
            if month.overdue or amount > 0:
                return amount

    plan = find_plan(plans, lot_id)
    if plan is None:
        return default
    if plan.payment_term_months == 0:
        return 0.0
    for entry in plan.schedule:
        if entry.status.lower() != "paid":
            return to_number(entry.amount_due)
    if plan.monthly_amount:
        return plan.monthly_amount
    return default


def format_month_label(month: MonthlyPayment) -> str:
    if month.due_date:
        label = fmt_short_date(month.due_date)
        if label:
            return label
    if month.due_day and month.year_month:
        year, _, num = month.year_month.partition("-")
        try:
            return f"{MONTH_ABBR[int(num) - 1]} {month.due_day}, {year}"
        except (ValueError, IndexError):
            pass
    return month.display or month.year_month


def should_collapse(months: List[MonthlyPayment]) -> bool:
    return len(months) in COLLAPSED_SCHEDULE_LENGTHS


def initial_collapsed(statuses: List[LotMonthlyStatus]) -> Dict[str, bool]:
    return {s.lot_id: True for s in statuses if should_collapse(s.monthly_payments)}


def schedule_summary(months: List[MonthlyPayment]) -> Dict[str, int]:
    paid = sum(1 for m in months if m.paid)
    overdue = len(overdue_months(months))
    return {"total": len(months), "paid": paid, "unpaid": len(months) - paid, "overdue": overdue}
