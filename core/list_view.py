"""
Shared list behaviour for the CRUD pages: search, sort, paginate, page-size memory
and load state. The per-page field extractors sit at the bottom.
"""
import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from config.constants import (
    ACTION_CHIP_COLORS, LoadStatus, MASTER_ADMIN_EMAIL, MASTER_ADMIN_USERNAME,
    PAGE_SIZE_KEYS, Role,
)
from config.settings import DEFAULT_PAGE_SIZE, PAGE_SIZE_FILE, PAGE_SIZE_OPTIONS
from data_manager.api_client import DashboardError
from data_manager.schema import ActivityLogEntry, Lot, Ownership, User
from utils.date_utils import epoch_millis, fmt_clock_time, fmt_local_date, fmt_short_date

logger = logging.getLogger(__name__)

T = TypeVar("T")

ASC = "asc"
DESC = "desc"


@dataclass
class SortConfig:
    key: Optional[str] = None
    direction: str = ASC

    def toggle(self, key: str) -> "SortConfig":
        """Same key while ascending flips to descending; anything else starts ascending"""
        if self.key == key and self.direction == ASC:
            return SortConfig(key, DESC)
        return SortConfig(key, ASC)


@dataclass
class Page(Generic[T]):
    rows: List[T]
    total: int
    page: int
    total_pages: int


@dataclass
class ListState:
    query: str = ""
    sort: SortConfig = field(default_factory=SortConfig)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def filter(self, rows: Sequence[T], search_fields: Sequence[Callable[[T], Any]]) -> List[T]:
        needle = (self.query or "").strip().lower()
        if not needle:
            return list(rows)
        return [
            r for r in rows
            if any(needle in str(fn(r) or "").lower() for fn in search_fields)
        ]

    def order(self, rows: List[T], sort_keys: Dict[str, Callable[[T], Any]]) -> List[T]:
        extractor = sort_keys.get(self.sort.key) if self.sort.key else None
        if extractor is None:
            return rows
        return sorted(rows, key=extractor, reverse=self.sort.direction == DESC)

    def apply(
        self,
        rows: Sequence[T],
        search_fields: Sequence[Callable[[T], Any]],
        sort_keys: Dict[str, Callable[[T], Any]],
    ) -> Page:
        filtered = self.order(self.filter(rows, search_fields), sort_keys)
        size = max(1, int(self.page_size))
        total_pages = max(1, math.ceil(len(filtered) / size))
        page = min(max(1, self.page), total_pages)
        start = (page - 1) * size
        return Page(rows=filtered[start:start + size], total=len(filtered), page=page, total_pages=total_pages)


def sort_date_key(value) -> int:
    return epoch_millis(value)


def _lower(value) -> str:
    return str(value or "").lower()


class PageSizeStore:
    """Remembers the chosen page size per list, in a small JSON file"""

    def __init__(self, path: Path = PAGE_SIZE_FILE):
        self.path = Path(path)

    def _load(self) -> Dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable page size file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, page: str) -> int:
        value = self._load().get(PAGE_SIZE_KEYS.get(page, page))
        return value if value in PAGE_SIZE_OPTIONS else DEFAULT_PAGE_SIZE

    def set(self, page: str, size: int):
        size = int(size)
        if size not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"page size must be one of {PAGE_SIZE_OPTIONS}")
        data = self._load()
        data[PAGE_SIZE_KEYS.get(page, page)] = size
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


@dataclass
class LoadState:
    status: LoadStatus = LoadStatus.LOADING
    data: Any = None
    error: str = ""

    @classmethod
    def loading(cls) -> "LoadState":
        return cls()

    @classmethod
    def loaded(cls, data) -> "LoadState":
        return cls(status=LoadStatus.LOADED, data=data)

    @classmethod
    def failed(cls, error) -> "LoadState":
        return cls(status=LoadStatus.FAILED, data=None, error=str(error))

    @property
    def is_loaded(self) -> bool:
        return self.status == LoadStatus.LOADED


def load(fetch: Callable[[], Any]) -> LoadState:
    """Run a fetch and wrap the outcome; errors become Failed, not placeholder rows"""
    try:
        return LoadState.loaded(fetch())
    except DashboardError as e:
        logger.error("Load failed: %s", e)
        return LoadState.failed(e)


# ---- accounts ----

USER_SEARCH_FIELDS = [
    lambda u: u.username,
    lambda u: u.full_name,
    lambda u: u.email,
    lambda u: u.role,
    lambda u: fmt_local_date(u.created_at),
]

USER_SORT_KEYS = {
    "username": lambda u: _lower(u.username),
    "name": lambda u: _lower(u.full_name),
    "email": lambda u: _lower(u.email),
    "role": lambda u: _lower(u.role),
    "created_at": lambda u: sort_date_key(u.created_at),
}


def is_master_admin(user: User) -> bool:
    return (
        _lower(user.username) == MASTER_ADMIN_USERNAME
        or _lower(user.email) == MASTER_ADMIN_EMAIL
    )


def visible_users(users: Sequence[User], viewer_role: str) -> List[User]:
    """Staff only manage customer accounts"""
    if viewer_role == Role.STAFF.value:
        return [u for u in users if u.role == Role.CUSTOMER.value]
    return list(users)


# ---- deceased records ----

DECEASED_SEARCH_FIELDS = [
    lambda d: d.name,
    lambda d: d.lot_label,
    lambda d: d.status,
]

DECEASED_SORT_KEYS = {
    "name": lambda d: _lower(d.name),
    "date_of_birth": lambda d: sort_date_key(d.date_of_birth),
    "date_of_death": lambda d: sort_date_key(d.date_of_death),
    "burial_date": lambda d: sort_date_key(d.burial_date),
    "location": lambda d: _lower(d.lot_label),
    "status": lambda d: _lower(d.status),
}


# ---- lot search ----

LOT_SEARCH_FIELDS = [
    lambda lot: lot.code,
    lambda lot: lot.owner,
]

LOT_SORT_KEYS = {
    "code": lambda lot: natural_key(lot.code),
    "garden": lambda lot: _lower(lot.garden),
    "status": lambda lot: lot.display_status,
    "owner": lambda lot: _lower(lot.owner),
}


def natural_key(text: str):
    """Split out digit runs so A2-10 sorts after A2-9"""
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", str(text or ""))]


def dedupe_lots(lots: Sequence[Lot]) -> List[Lot]:
    """First lot per code, ordered by code"""
    by_code: Dict[str, Lot] = {}
    for lot in lots:
        by_code.setdefault(lot.code, lot)
    return sorted(by_code.values(), key=lambda lot: natural_key(lot.code))


def filter_lots(lots: Sequence[Lot], garden: str = "", status: str = "") -> List[Lot]:
    """Garden and display-status dropdown filters ("" means any)"""
    out = []
    for lot in lots:
        if garden and lot.garden != garden:
            continue
        if status and lot.display_status != status:
            continue
        out.append(lot)
    return out


# ---- activity log ----

ACTIVITY_SEARCH_FIELDS = [
    lambda e: e.action,
    lambda e: e.type,
    lambda e: e.details,
    lambda e: e.user,
    lambda e: fmt_short_date(e.timestamp),
    lambda e: fmt_clock_time(e.timestamp),
]

ACTIVITY_SORT_KEYS = {
    "timestamp": lambda e: sort_date_key(e.timestamp),
    "action": lambda e: _lower(e.action),
    "user": lambda e: _lower(e.user),
    "type": lambda e: _lower(e.type),
}


def filter_activity(entries: Sequence[ActivityLogEntry], kind: str) -> List[ActivityLogEntry]:
    if not kind or kind == "all":
        return list(entries)
    if kind == "login":
        return [
            e for e in entries
            if e.action in ("Logged In", "Logged Out")
            or ("user" in _lower(e.type) and "logged" in _lower(e.details))
        ]
    return [e for e in entries if kind in _lower(e.user) or kind in _lower(e.type)]


def action_chip_color(action: str) -> str:
    return ACTION_CHIP_COLORS.get(action, "gray")


# ---- lot ownership ----

@dataclass
class CustomerLots:
    """One row of the ownership list: a customer and every lot they hold"""
    customer_id: str
    customer_name: str
    lots: List[Ownership] = field(default_factory=list)

    @property
    def total_lots(self) -> int:
        return len(self.lots)

    @property
    def status(self) -> str:
        occupied = [_lower(o.status) == "occupied" for o in self.lots]
        if occupied and all(occupied):
            return "Occupied"
        return "Mixed" if any(occupied) else "Reserved"

    @property
    def lot_codes(self) -> str:
        return ", ".join(sorted((o.code for o in self.lots), key=natural_key))


def group_ownerships(ownerships: Sequence[Ownership]) -> List[CustomerLots]:
    """Group by customer id, falling back to the name, in first-seen order"""
    groups: Dict[str, CustomerLots] = {}
    for o in ownerships:
        key = o.customer_id or o.customer_name or "Unknown"
        if key not in groups:
            groups[key] = CustomerLots(o.customer_id, o.customer_name or "Unknown")
        groups[key].lots.append(o)
    return list(groups.values())


OWNERSHIP_SEARCH_FIELDS = [
    lambda c: c.customer_name,
    lambda c: c.lot_codes,
    lambda c: c.status,
]

OWNERSHIP_SORT_KEYS = {
    "customer": lambda c: _lower(c.customer_name),
    "lots": lambda c: c.total_lots,
    "status": lambda c: c.status,
}


def transfer_problem(ownership: Ownership, new_customer_id) -> str:
    """Reason a transfer cannot be sent, or "" when it can"""
    if not str(new_customer_id or ""):
        return "Select the customer receiving the lot"
    if str(new_customer_id) == str(ownership.customer_id):
        return "Cannot transfer to the same customer"
    return ""
