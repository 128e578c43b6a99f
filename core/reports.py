"""
Report datasets

Turns report payloads from the API into header/row tables for the export
builder and the reports page.
"""
from datetime import datetime
from typing import List, Optional

from config.constants import (
    AGING_COLUMNS, CUSTOMERS_COLUMNS, FINANCIAL_COLUMNS, INTAKE_COLUMNS,
    INVENTORY_COLUMNS, PAYMENTS_COLUMNS, ROLE_REPORTS, SOA_COLUMNS, ReportType,
)
from data_manager.excel_handler import ReportDataset
from utils.date_utils import fmt_clock_time, fmt_local_date
from utils.formatters import to_number

INTAKE_FILTER_LABELS = {"today": "Today", "30days": "Last 30 Days"}

FINANCIAL_DESCRIPTION = "Revenue and count of paid transactions aggregated by selected granularity."

DATE_RANGES = {
    "all": "All Time",
    "last30days": "Last 30 Days",
    "last3months": "Last 3 Months",
    "last6months": "Last 6 Months",
    "lastyear": "Last Year",
    "custom": "Custom Range",
}
GRANULARITIES = {"daily": "Daily", "monthly": "Monthly", "yearly": "Yearly"}
SECTIONS = {
    "all": "All Sections",
    "section-a": "Section A",
    "section-b": "Section B",
    "section-c": "Section C",
    "section-d": "Section D",
}
GARDENS = ["all", "Joy Garden", "Peace Garden", "Hope Garden", "Faith Garden", "Love Garden"]


def report_params(date_range: str = "all", granularity: str = "monthly", section: str = "all",
                  garden: str = "all", start_date: str = "", end_date: str = "") -> Optional[dict]:
    """Query for the reports endpoint; None while a custom range is incomplete"""
    params = {"type": "all", "date_range": date_range, "section": section,
              "granularity": granularity, "garden": garden}
    if date_range == "custom":
        if not start_date or not end_date:
            return None
        params.update(start_date=start_date, end_date=end_date)
    return params


def tabs_for_role(role: str) -> List[str]:
    """Report keys visible to a role; admins see every report"""
    return list(ROLE_REPORTS.get(role, [r.value for r in ReportType]))


def tab_label(report_key: str) -> str:
    try:
        return ReportType(report_key).label
    except ValueError:
        return "Report"


def financial_first_header(granularity: str, date_range: str) -> str:
    if granularity == "daily" or date_range == "last30days":
        return "Date"
    if granularity == "yearly":
        return "Year"
    return "Month"


def intake_filter_label(filter_: str) -> str:
    return INTAKE_FILTER_LABELS.get(filter_, "All Time")


def display_range(date_range: str, start_date: str = "", end_date: str = "") -> str:
    if date_range == "custom" and start_date and end_date:
        return f"{start_date} to {end_date}"
    return date_range


def meta_line(
    report_key: str,
    date_range: str = "",
    granularity: str = "monthly",
    section: str = "all",
    garden: str = "all",
    start_date: str = "",
    end_date: str = "",
    intake_filter: str = "all",
    generated_at: Optional[datetime] = None,
) -> str:
    generated = (generated_at or datetime.now()).strftime("%m/%d/%Y, %I:%M:%S %p")
    if report_key == ReportType.INTAKE.value:
        return f"Filter: {intake_filter_label(intake_filter)} • Generated: {generated}"
    text = (
        f"Range: {display_range(date_range, start_date, end_date)}"
        f" • Granularity: {(granularity or '').upper()}"
        f" • Section: {(section or '').upper()}"
    )
    if garden and garden != "all":
        text += f" • Garden: {garden}"
    return text + f" • Generated: {generated}"


def _datetime_text(value) -> str:
    day = fmt_local_date(value)
    if not day:
        return ""
    return f"{day}, {fmt_clock_time(value)}"


def intake_dataset(payments: List[dict]) -> ReportDataset:
    rows = [
        [
            _datetime_text(p.get("payment_date")),
            p.get("owner_name") or "Unknown",
            p.get("lot_display") or "N/A",
            to_number(p.get("payment_amount")),
            p.get("payment_method") or "-",
            p.get("status") or "-",
            p.get("performed_by") or "Cashier",
        ]
        for p in payments
    ]
    return ReportDataset("Payments", list(INTAKE_COLUMNS), rows)


def financial_dataset(records: List[dict], granularity: str = "monthly", date_range: str = "") -> ReportDataset:
    headers = [financial_first_header(granularity, date_range)] + list(FINANCIAL_COLUMNS)
    rows = [[r.get("month"), r.get("revenue"), r.get("payments")] for r in records]
    return ReportDataset("Financial Performance Overview", headers, rows)


def inventory_dataset(records: List[dict]) -> ReportDataset:
    rows = []
    for r in records:
        installment = to_number(r.get("soldInstallment"))
        fully_paid = to_number(r.get("soldFullyPaid"))
        rate = r.get("occupancyRate")
        rows.append([
            r.get("garden") or "-",
            r.get("section"),
            r.get("totalLots"),
            r.get("availableLots"),
            r.get("reservedLots"),
            r.get("occupiedLots"),
            r.get("soldInstallment"),
            r.get("soldFullyPaid"),
            int(installment + fully_paid) if (installment + fully_paid).is_integer() else installment + fully_paid,
            f"{0 if rate is None else rate}%",
        ])
    return ReportDataset("Inventory Summary", list(INVENTORY_COLUMNS), rows)


def payments_dataset(records: List[dict]) -> ReportDataset:
    rows = []
    for r in records:
        when = r.get("paymentDate") or "-"
        if r.get("paymentDate") and r.get("createdAt"):
            when = f"{r['paymentDate']} {fmt_clock_time(r['createdAt'])}"
        rows.append([
            r.get("paNo") or "-", r.get("customerName"), r.get("lot"), r.get("paymentAmount"),
            when, r.get("paymentMethod"), r.get("status"),
        ])
    return ReportDataset("Payment Transaction Report", list(PAYMENTS_COLUMNS), rows)


def aging_dataset(records: List[dict]) -> ReportDataset:
    rows = [
        [
            r.get("paNo"), r.get("buyer"), r.get("lot"), r.get("termMonths"), r.get("monthlyAmount"),
            r.get("paidMonths"), r.get("unpaidMonths"), r.get("overdueMonths"), r.get("remainingBalance"),
            r.get("lastPayment") or "-", r.get("interments") or 0,
        ]
        for r in records
    ]
    return ReportDataset("Aging Report", list(AGING_COLUMNS), rows)


def soa_dataset(records: List[dict]) -> ReportDataset:
    rows = [
        [
            r.get("paNo"), r.get("buyer"), r.get("lot"), r.get("totalAmount"), r.get("downPayment"),
            r.get("monthlyAmount"), r.get("termMonths"), r.get("startDate"), r.get("endDate"),
            r.get("status"), r.get("remainingBalance"), r.get("paidMonths"), r.get("overdueMonths"),
        ]
        for r in records
    ]
    return ReportDataset("Statement of Account", list(SOA_COLUMNS), rows)


def customers_dataset(records: List[dict]) -> ReportDataset:
    rows = [
        [r.get("category"), r.get("count"), f"{r.get('percentage', 0)}%", r.get("trend"), r.get("growth", r.get("trend"))]
        for r in records
    ]
    return ReportDataset("Customer Demographics & Behavior", list(CUSTOMERS_COLUMNS), rows)


def build_dataset(
    report_key: str,
    reports: dict,
    intake_payments: Optional[List[dict]] = None,
    granularity: str = "monthly",
    date_range: str = "",
) -> ReportDataset:
    reports = reports or {}
    if report_key == ReportType.INTAKE.value:
        return intake_dataset(intake_payments if intake_payments is not None else reports.get("intake") or [])
    if report_key == ReportType.FINANCIAL.value:
        return financial_dataset(reports.get("financial") or [], granularity, date_range)
    builders = {
        ReportType.INVENTORY.value: inventory_dataset,
        ReportType.PAYMENTS.value: payments_dataset,
        ReportType.AGING.value: aging_dataset,
        ReportType.SOA.value: soa_dataset,
        ReportType.CUSTOMERS.value: customers_dataset,
    }
    builder = builders.get(report_key)
    if builder is None:
        return ReportDataset("Report", [], [])
    return builder(reports.get(report_key) or [])
