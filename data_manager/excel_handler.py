import logging
import math
import re
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config.settings import COMPANY_NAME, CURRENCY_SYMBOL, REPORT_SHEET_PASSWORD

logger = logging.getLogger(__name__)

HEADER_ROW = 5
DATA_START_ROW = HEADER_ROW + 1
BANNER_TARGET_WIDTH = 110
DEFAULT_COLUMN_WIDTH = 10
EXTRA_COLUMN_WIDTH = 18

CURRENCY_FORMAT = f'"{CURRENCY_SYMBOL}"#,##0'
NUMBER_FORMAT = "#,##0"

_CURRENCY_RE = re.compile(r"(amount|revenue|ncp|down|monthly|remaining|total(?!\s*(lots|payments|customers|transactions)))")
_NUMERIC_HEADER_RE = re.compile(r"(total|amount|revenue|payments|monthly|remaining|paid|overdue|transactions|ncp|interments)")
_NO_SUM_RATE_RE = re.compile(r"(rate|percentage|percent)")
_NO_SUM_TEXT_RE = re.compile(
    r"(date|time|account|buyer|customer|method|status|pa\s?no\.?|lot|garden|section|sector|term|start|end)"
)
_SUM_RE = re.compile(
    r"(total|amount|revenue|payment|available|reserved|occupied|sold|monthly|remaining|paid|overdue|ncp|interments|transactions)"
)

_THIN = Side(style="thin", color="FFE5E7EB")
CELL_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)
HEADER_FILL = PatternFill(start_color="FFF3F4F6", end_color="FFF3F4F6", fill_type="solid")
TOTALS_FILL = PatternFill(start_color="FFF9FAFB", end_color="FFF9FAFB", fill_type="solid")


@dataclass
class ReportDataset:
    title: str
    headers: List[str]
    rows: List[List[Any]] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.headers)


def is_currency_header(header: str) -> bool:
    h = str(header).lower()
    return bool(_CURRENCY_RE.search(h)) and "sold (total)" not in h


def is_numeric_header(header: str) -> bool:
    return bool(_NUMERIC_HEADER_RE.search(str(header).lower()))


def should_sum(header: str) -> bool:
    """Whether the totals row gets a SUM for this column"""
    h = str(header).lower()
    if _NO_SUM_RATE_RE.search(h):
        return False
    if _NO_SUM_TEXT_RE.search(h):
        return False
    return bool(_SUM_RE.search(h))


def coerce_number(value):
    """Numeric-looking strings ("1,200") become numbers; everything else is kept"""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return value
    if isinstance(value, str):
        text = re.sub(r"[,\s]", "", value)
        if not text:
            return value
        try:
            number = float(text)
        except ValueError:
            return value
        if math.isnan(number) or math.isinf(number):
            return value
        return int(number) if number.is_integer() and "." not in text else number
    return value


def report_file_name(label: str) -> str:
    return re.sub(r"\s+", "_", label or "Report") + ".xlsx"


def _find_header(headers: List[str], needle: str, exact: bool = False) -> int:
    for idx, h in enumerate(headers):
        text = str(h).lower()
        if (text == needle) if exact else (needle in text):
            return idx
    return -1


def _sum_cell(ws, column: int, row: int, first: int, last: int, currency: bool):
    letter = get_column_letter(column)
    cell = ws.cell(row=row, column=column, value=f"=SUM({letter}{first}:{letter}{last})")
    cell.alignment = Alignment(horizontal="right", vertical="center")
    cell.font = Font(bold=True)
    cell.number_format = CURRENCY_FORMAT if currency else NUMBER_FORMAT
    return cell


def build_report_workbook(
    dataset: ReportDataset,
    report_key: str,
    meta: str,
    company: str = COMPANY_NAME,
    password: str = REPORT_SHEET_PASSWORD,
):
    """Write the dataset into a styled, protected single-sheet workbook"""
    headers = list(dataset.headers)
    col_count = max(1, len(headers))
    rows = [[coerce_number(v) for v in r] for r in dataset.rows]

    output = BytesIO()
    sheet_name = (report_key or "Report")[:31]
    df = pd.DataFrame(rows, columns=headers) if headers else pd.DataFrame()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False, startrow=HEADER_ROW - 1)
    output.seek(0)
    wb = load_workbook(output)
    ws = wb[sheet_name]
    ws.page_setup.orientation = "landscape"
    ws.print_options.horizontalCentered = True

    # Banner spans the table, widened with extra columns to fit the meta line
    merged_width = col_count * DEFAULT_COLUMN_WIDTH
    extra_cols = 0
    if merged_width < BANNER_TARGET_WIDTH:
        extra_cols = math.ceil((BANNER_TARGET_WIDTH - merged_width) / EXTRA_COLUMN_WIDTH)
    merge_end = col_count + extra_cols
    for i in range(col_count + 1, merge_end + 1):
        ws.column_dimensions[get_column_letter(i)].width = EXTRA_COLUMN_WIDTH

    banner = [
        (1, company, Font(bold=True, size=16), 28),
        (2, dataset.title, Font(bold=True, size=20), 26),
        (3, meta, Font(size=12, color="FF374151"), None),
    ]
    for row, value, font, height in banner:
        ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=merge_end)
        cell = ws.cell(row=row, column=1, value=value)
        cell.font = font
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=(row == 3))
        if height:
            ws.row_dimensions[row].height = height
    ws.row_dimensions[4].height = 12

    # Header
    ws.row_dimensions[HEADER_ROW].height = 22
    for i in range(1, col_count + 1):
        cell = ws.cell(row=HEADER_ROW, column=i)
        cell.font = Font(bold=True, color="FF1F2937")
        cell.alignment = Alignment(horizontal="center", vertical="center")
        cell.fill = HEADER_FILL
        cell.border = CELL_BORDER

    # Data rows
    for r_idx, row in enumerate(rows):
        row_no = DATA_START_ROW + r_idx
        ws.row_dimensions[row_no].height = 18
        for c_idx, value in enumerate(row):
            header = headers[c_idx] if c_idx < len(headers) else ""
            cell = ws.cell(row=row_no, column=c_idx + 1)
            is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
            right = is_numeric_header(header) or is_number
            cell.alignment = Alignment(
                horizontal="right" if right else "left", vertical="center", wrap_text=True, indent=0 if right else 1,
            )
            if is_number:
                cell.number_format = CURRENCY_FORMAT if is_currency_header(header) else NUMBER_FORMAT
            cell.border = CELL_BORDER

    last_row = DATA_START_ROW + max(0, len(rows)) - 1
    totals_row = last_row + 1
    ws.row_dimensions[totals_row].height = 20

    garden_idx = _find_header(headers, "garden", exact=True)
    section_idx = _find_header(headers, "section", exact=True)
    label_col = section_idx + 1 if garden_idx != -1 and section_idx != -1 else 1
    label = ws.cell(row=totals_row, column=label_col, value="Totals")
    label.font = Font(bold=True)

    for idx, header in enumerate(headers):
        if should_sum(header):
            _sum_cell(ws, idx + 1, totals_row, DATA_START_ROW, last_row, is_currency_header(header))

    if report_key == "aging":
        lp_idx = _find_header(headers, "last payment")
        if lp_idx != -1:
            ws.cell(row=totals_row, column=lp_idx + 1).value = None
        int_idx = _find_header(headers, "interments")
        if int_idx != -1:
            _sum_cell(ws, int_idx + 1, totals_row, DATA_START_ROW, last_row, False)

    if report_key in ("inventory", "occupancy"):
        tl_idx = _find_header(headers, "total lots")
        sold_idx = _find_header(headers, "sold (total)")
        if sold_idx == -1:
            sold_idx = _find_header(headers, "sold lots")
        rate_idx = _find_header(headers, "occupancy rate")
        if tl_idx != -1 and sold_idx != -1 and rate_idx != -1:
            # The rate is derived from the summed columns, so both must carry a SUM
            _sum_cell(ws, tl_idx + 1, totals_row, DATA_START_ROW, last_row, False)
            _sum_cell(ws, sold_idx + 1, totals_row, DATA_START_ROW, last_row, False)
            tl = f"{get_column_letter(tl_idx + 1)}{totals_row}"
            sl = f"{get_column_letter(sold_idx + 1)}{totals_row}"
            rate = ws.cell(row=totals_row, column=rate_idx + 1)
            rate.value = f"=IF({tl}=0,0,ROUND(({sl}/{tl})*100,1))"
            rate.font = Font(bold=True)
            rate.alignment = Alignment(horizontal="right", vertical="center")

    for i in range(1, col_count + 1):
        cell = ws.cell(row=totals_row, column=i)
        cell.border = CELL_BORDER
        cell.fill = TOTALS_FILL

    ws.freeze_panes = f"A{HEADER_ROW + 1}"

    # Auto-fit table columns
    for i in range(1, col_count + 1):
        max_len = len(str(ws.cell(row=HEADER_ROW, column=i).value or ""))
        for r in range(DATA_START_ROW, last_row + 1):
            value = ws.cell(row=r, column=i).value
            max_len = max(max_len, len("" if value is None else str(value)))
        ws.column_dimensions[get_column_letter(i)].width = min(max(max_len + 10, 18), 100)

    merged_chars = max(
        sum(ws.column_dimensions[get_column_letter(i)].width or DEFAULT_COLUMN_WIDTH for i in range(1, merge_end + 1)) - 2,
        10,
    )
    ws.row_dimensions[3].height = max(20, math.ceil(len(meta) / merged_chars) * 14)

    ws.protection.set_password(password)
    ws.protection.selectLockedCells = False
    ws.protection.selectUnlockedCells = True
    ws.protection.enable()
    return wb


def export_report_bytes(dataset: ReportDataset, report_key: str, meta: str, **kwargs) -> bytes:
    wb = build_report_workbook(dataset, report_key, meta, **kwargs)
    buffer = BytesIO()
    wb.save(buffer)
    logger.info("Exported %s report with %d rows", report_key, len(dataset.rows))
    return buffer.getvalue()


def save_report(dataset: ReportDataset, report_key: str, meta: str, out_dir: Path, label: Optional[str] = None) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / report_file_name(label or dataset.title)
    path.write_bytes(export_report_bytes(dataset, report_key, meta))
    return path


def to_csv(dataset: ReportDataset) -> str:
    """CSV text; values holding quotes, commas or newlines are quoted with inner quotes doubled"""
    return dataset.to_dataframe().to_csv(index=False, lineterminator="\n")
