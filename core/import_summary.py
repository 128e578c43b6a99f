"""
Bulk spreadsheet import

The same file is sent to the accounts import and then to the deceased import.
The deceased pass is optional: any failure there is logged and ignored.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from config.settings import IMPORT_ERROR_DELAY
from data_manager.api_client import ApiRejection, NetworkError

logger = logging.getLogger(__name__)

MAX_LISTED_ERRORS = 10


@dataclass
class ImportSummary:
    ok: bool
    level: str
    message: str
    error_message: str = ""
    error_delay: float = IMPORT_ERROR_DELAY


def _counts(result: Optional[dict]):
    result = result or {}
    return int(result.get("total") or 0), int(result.get("created") or 0), int(result.get("failed") or 0)


def _created_line(name: str, created: int, total: int) -> str:
    line = f"{name}: {created} created"
    if total > created:
        line += f" ({total} total)"
    return line


def collect_errors(users_result: Optional[dict], deceased_result: Optional[dict]) -> List[str]:
    errors = [f"Account: {e}" for e in (users_result or {}).get("errors") or []]
    errors += [f"Deceased: {e}" for e in (deceased_result or {}).get("errors") or []]
    return errors


def failure_details(errors: List[str], failed: int) -> str:
    text = f"{failed} row(s) failed:\n\n" + "\n".join(errors[:MAX_LISTED_ERRORS])
    if len(errors) > MAX_LISTED_ERRORS:
        text += f"\n... and {len(errors) - MAX_LISTED_ERRORS} more"
    return text


def summarize(users_result: Optional[dict], deceased_result: Optional[dict]) -> ImportSummary:
    u = users_result or {}
    d = deceased_result or {}

    if not u.get("success") and not d.get("success"):
        message = u.get("message") or d.get("message") or "Import failed. Please check the file and try again."
        return ImportSummary(ok=False, level="error", message=message)

    total_accounts, created_accounts, failed_accounts = _counts(u)
    total_deceased, created_deceased, failed_deceased = _counts(d)
    total_created = created_accounts + created_deceased
    total_failed = failed_accounts + failed_deceased

    if total_created > 0:
        lines = ["Import Successful!", ""]
        if created_accounts > 0:
            lines.append(_created_line("Accounts", created_accounts, total_accounts))
        if created_deceased > 0:
            lines.append(_created_line("Deceased", created_deceased, total_deceased))
        if total_failed > 0:
            lines += ["", f"Note: {total_failed} row(s) failed"]
        message = "\n".join(lines)
    else:
        message = "Import completed, but no records were created."

    errors = collect_errors(u, d)
    error_message = failure_details(errors, total_failed) if errors and total_failed > 0 else ""
    return ImportSummary(
        ok=True,
        level="warning" if total_failed > 0 else "success",
        message=message,
        error_message=error_message,
    )


def _call_import(fn, file_path) -> dict:
    """Rejections come back as a failed result so the summary can report them"""
    try:
        return fn(file_path)
    except ApiRejection as e:
        logger.error("Import rejected: %s", e.message)
        return {"success": False, **e.payload, "message": e.message}


def import_file(api, file_path) -> ImportSummary:
    """Run both imports on one file; network errors from the accounts pass propagate"""
    users_result = _call_import(api.import_users, file_path)
    try:
        deceased_result = _call_import(api.import_deceased, file_path)
    except NetworkError as e:
        logger.warning("Deceased import skipped: %s", e)
        deceased_result = None

    summary = summarize(users_result, deceased_result)
    if summary.error_message:
        logger.error("Import row errors: %s", collect_errors(users_result, deceased_result))
    return summary
