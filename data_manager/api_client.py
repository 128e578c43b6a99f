"""HTTP client for the memorial park backend API."""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from config.constants import API_ENDPOINTS, IMPORT_EXTENSIONS
from config.settings import API_BASE_URL, API_TIMEOUT
from data_manager.schema import (
    ActivityLogEntry, AvailableLots, DeceasedRecord, LotMonthlyStatus, LotVault, Ownership,
    PaymentPlan, Session, User,
)

logger = logging.getLogger(__name__)

TRANSFER_BLOCKED_MESSAGE = "Cannot transfer a lot with a buried deceased."


class DashboardError(Exception):
    """Base class for errors shown to the operator"""


class ValidationError(DashboardError):
    def __init__(self, missing_fields: List[str], message: str = ""):
        self.missing_fields = list(missing_fields)
        super().__init__(message or "Missing required fields: " + ", ".join(self.missing_fields))


class ApiRejection(DashboardError):
    """The server answered but refused the request"""

    def __init__(self, message: str, payload: Optional[dict] = None):
        self.message = message
        self.payload = payload or {}
        super().__init__(message)


class NetworkError(DashboardError):
    pass


def dedupe_payments(payments: List[dict]) -> List[dict]:
    """Drop repeated rows with the same (id, lot_id), keeping the first"""
    seen = set()
    unique = []
    for p in payments:
        key = (p.get("id"), p.get("lot_id"))
        if key in seen:
            continue
        seen.add(key)
        unique.append(p)
    return unique


def _cache_bust() -> Dict[str, int]:
    return {"t": int(time.time() * 1000)}


class ApiClient:
    """Synchronous client; one instance per signed-in session"""

    def __init__(
        self,
        session: Optional[Session] = None,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.session = session or Session()
        self.base_url = base_url.rstrip("/") + "/"
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.client.close()

    # ---- transport ----

    def _headers(self) -> Dict[str, str]:
        if self.session.user_id is None:
            return {}
        return {"X-User-Id": str(self.session.user_id)}

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        path = API_ENDPOINTS[endpoint]
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            response = self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise NetworkError(f"Network error: {e}") from e
        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            if isinstance(data, dict) and data.get("message"):
                raise ApiRejection(data["message"], data)
            raise ApiRejection(f"Server error ({response.status_code})")

        if isinstance(data, list):
            return {"data": data}
        if not isinstance(data, dict):
            raise ApiRejection("Unexpected response from server")
        if data.get("success") is False:
            raise ApiRejection(data.get("message") or "Request failed", data)
        return data

    def get(self, endpoint: str, params: Optional[dict] = None) -> Dict[str, Any]:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, payload: Optional[dict] = None, params: Optional[dict] = None) -> Dict[str, Any]:
        return self._request("POST", endpoint, json=payload or {}, params=params)

    def upload(self, endpoint: str, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Multipart upload of an .xlsx/.xls import file"""
        path = Path(file_path)
        if path.suffix.lower() not in IMPORT_EXTENSIONS:
            raise ValidationError(["File"], "Please select an Excel file (.xlsx or .xls)")
        with open(path, "rb") as fh:
            files = {"file": (path.name, fh.read())}
        return self._request("POST", endpoint, files=files)

    # ---- authentication ----

    def login(self, username: str, password: str) -> Session:
        data = self.post("LOGIN", {"username": username, "password": password})
        user = data.get("user") or {}
        self.session = Session(
            user_id=user.get("id"),
            username=user.get("username", username),
            role=(user.get("user_type") or user.get("role") or "").lower(),
        )
        logger.info("Signed in as %s (%s)", self.session.username, self.session.role)
        return self.session

    def logout(self):
        try:
            self.post("LOGOUT")
        finally:
            self.session = Session()

    # ---- users ----

    def list_users(self) -> List[User]:
        data = self.get("GET_USERS")
        return [User.from_api(u) for u in data.get("users") or []]

    def create_user(self, payload: dict) -> Dict[str, Any]:
        return self.post("CREATE_USER", payload)

    def update_user(self, payload: dict) -> Dict[str, Any]:
        return self.post("UPDATE_USER", payload)

    def delete_user(self, user_id: int) -> Dict[str, Any]:
        return self.post("DELETE_USER", {"id": user_id})

    def import_users(self, file_path) -> Dict[str, Any]:
        return self.upload("IMPORT_USERS", file_path)

    def get_profile(self, user_id: int) -> Dict[str, Any]:
        return self.get("GET_PROFILE", {"id": user_id})

    def update_profile(self, payload: dict) -> Dict[str, Any]:
        return self.post("UPDATE_PROFILE", payload)

    # ---- deceased records ----

    def list_deceased(self) -> List[DeceasedRecord]:
        data = self.get("GET_DECEASED_RECORDS")
        return [DeceasedRecord.from_api(r) for r in data.get("deceased_records") or data.get("records") or []]

    def create_deceased(self, payload: dict) -> Dict[str, Any]:
        return self.post("CREATE_DECEASED_RECORD", payload)

    def update_deceased(self, payload: dict) -> Dict[str, Any]:
        return self.post("UPDATE_DECEASED_RECORD", payload)

    def delete_deceased(self, record_id: int) -> Dict[str, Any]:
        return self.post("DELETE_DECEASED_RECORD", {"id": record_id})

    def import_deceased(self, file_path) -> Dict[str, Any]:
        return self.upload("IMPORT_DECEASED_RECORDS", file_path)

    # ---- ownership and lots ----

    def list_ownerships(self, customer_id: Optional[str] = None) -> List[Ownership]:
        params = {"customer_id": customer_id} if customer_id else None
        data = self.get("GET_OWNERSHIPS", params)
        return [Ownership.from_api(o) for o in data.get("ownerships") or data.get("data") or []]

    def create_ownership(self, customer_id, garden: str, sector: str, block, lot_number,
                         lot_type: str = "standard") -> Dict[str, Any]:
        """Assign an available lot to a customer; the response carries lot_id"""
        return self.post("CREATE_OWNERSHIP", {
            "customer_id": customer_id,
            "garden": garden,
            "sector": sector,
            "block": int(block),
            "lotNumber": int(lot_number),
            "lotType": lot_type,
        })

    def update_ownership(self, ownership_id, customer_id) -> Dict[str, Any]:
        """Transfer a lot to another customer"""
        data = self.post("UPDATE_OWNERSHIP", {"id": ownership_id, "customer_id": int(customer_id)})
        if data.get("blocked") or data.get("needs_confirm"):
            raise ApiRejection(data.get("message") or TRANSFER_BLOCKED_MESSAGE, data)
        return data

    def delete_ownership(self, ownership_id) -> Dict[str, Any]:
        return self.post("DELETE_OWNERSHIP", {"id": ownership_id})

    def list_customer_users(self) -> List[User]:
        data = self.get("GET_CUSTOMER_USERS")
        return [User.from_api(u) for u in data.get("customers") or data.get("users") or []]

    def get_lot_vault(self, lot_id) -> LotVault:
        data = self.get("GET_LOT_VAULT", {"lot_id": lot_id})
        return LotVault.from_api(data.get("vault") or data)

    def set_lot_vault_option(self, lot_id, option: str) -> Dict[str, Any]:
        return self.post("SET_LOT_VAULT_OPTION", {"lot_id": lot_id, "option": option})

    def search_lots(self, **filters) -> List[dict]:
        data = self.get("SEARCH_LOTS", {k: v for k, v in filters.items() if v})
        return data.get("lots") or data.get("data") or []

    # ---- mapping ----

    def map_gardens(self) -> List[str]:
        data = self.get("MAP_GARDENS")
        return data.get("gardens") or data.get("data") or []

    def map_sectors(self, garden: str) -> List[str]:
        data = self.get("MAP_SECTORS", {"garden": garden})
        return data.get("sectors") or data.get("data") or []

    def map_blocks(self, garden: str, sector: str) -> List[str]:
        data = self.get("MAP_BLOCKS", {"garden": garden, "sector": sector})
        return [str(b) for b in data.get("blocks") or data.get("data") or []]

    def map_available_lots(self, garden: str, sector: str, block) -> AvailableLots:
        data = self.get("MAP_AVAILABLE_LOTS", {"garden": garden, "sector": sector, "block": block})
        return AvailableLots.from_api(data)

    def sector_polygons(self) -> List[dict]:
        data = self.get("MAP_SECTORS_POLY")
        return data.get("sectors") or data.get("data") or []

    def sector_corners(self, garden: str, sector: str) -> Optional[list]:
        for s in self.sector_polygons():
            if s.get("garden") == garden and s.get("sector") == sector:
                return s.get("coordinates")
        return None

    def sector_lots(self, sector: str, garden: Optional[str] = None) -> Dict[str, Any]:
        params = {"sector": sector}
        if garden:
            params["garden"] = garden
        return self.get("MAP_SECTOR_LOTS", params)

    def sector_path(self, garden: str, sector: str) -> List[tuple]:
        """Waypoints for one sector; the endpoint returns {garden: {sector: [[lat, lng], ...]}}"""
        data = self.get("MAP_SECTOR_PATHS")
        points = (data.get(garden) or {}).get(sector) or []
        return [(float(p[0]), float(p[1])) for p in points if len(p) >= 2]

    def ui_config(self) -> Dict[str, Any]:
        data = self.get("MAP_UI_CONFIG")
        config = data.get("config") or data
        return {k: v for k, v in config.items() if k != "success"}

    def map_markers(self) -> List[dict]:
        data = self.get("MAP_MARKERS")
        return data.get("points") or data.get("markers") or []

    # ---- payments ----

    def monthly_payment_status(self, customer_id=None) -> List[LotMonthlyStatus]:
        params = {**_cache_bust(), "refresh": 1}
        if customer_id is not None:
            params["customer_id"] = customer_id
        data = self.get("GET_MONTHLY_PAYMENT_STATUS", params)
        return [LotMonthlyStatus.from_api(s) for s in data.get("monthly_status") or []]

    def payment_plans(self, customer_id=None) -> List[PaymentPlan]:
        params = _cache_bust()
        if customer_id is not None:
            params["customer_id"] = customer_id
        data = self.get("GET_CUSTOMER_PAYMENT_PLAN", params)
        return [PaymentPlan.from_api(p) for p in data.get("payment_plans") or []]

    def payment_history(self) -> List[dict]:
        data = self.get("GET_ALL_PAYMENTS", _cache_bust())
        return dedupe_payments(data.get("payments") or [])

    def create_f2f_payment(self, lot_id, customer_id, months: List[dict], method: str = "Cash") -> Dict[str, Any]:
        """Onsite payment for one or more months: [{payment_month, payment_amount}]"""
        payload = {"lot_id": lot_id, "customer_id": customer_id, "payment_method": method, "bulk_payments": months}
        return self.post("CREATE_F2F_PAYMENT", payload)

    def create_checkout(self, lot_id, payment_month: str, payment_amount: float, customer_id,
                        success_url: str, cancel_url: str) -> Dict[str, Any]:
        """Gateway checkout for one month; the response carries checkout_id and checkout_url"""
        return self.post("CREATE_MONTHLY_PAYMENT", {
            "lot_id": lot_id,
            "payment_month": payment_month,
            "payment_amount": payment_amount,
            "customer_id": customer_id,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })

    def check_payment_status(self, checkout_id: str) -> Dict[str, Any]:
        return self.get("CHECK_PAYMENT_STATUS", {"checkout_id": checkout_id})

    def process_pending_payments(self, checkout_id: str) -> Dict[str, Any]:
        return self.get("PROCESS_PENDING_PAYMENTS", {"checkout_id": checkout_id})

    def email_receipt(self, checkout_id: str) -> Dict[str, Any]:
        return self.post("EMAIL_RECEIPT", {"checkout_id": checkout_id})

    def sync_payments(self) -> Dict[str, Any]:
        return self.get("SYNC_PAYMONGO")

    def auto_sync_payments(self) -> Dict[str, Any]:
        return self.get("AUTO_SYNC_PAYMONGO")

    # ---- reports and logs ----

    def reports(self, **params) -> Dict[str, Any]:
        return self.get("GET_REPORTS_V2", {k: v for k, v in params.items() if v not in (None, "")})

    def intake_payments(self, filter_: str = "all") -> List[dict]:
        return self.get("GET_INTAKE_PAYMENTS", {"filter": filter_}).get("payments") or []

    def dashboard_stats(self) -> Dict[str, Any]:
        return self.get("GET_DASHBOARD_STATS")

    def activity_logs(self, limit: int = 500) -> List[ActivityLogEntry]:
        data = self.get("GET_ACTIVITY_LOGS", {"limit": limit})
        return [ActivityLogEntry.from_api(e) for e in data.get("logs") or data.get("data") or []]

    def record_activity(self, action: str, type_: str, details: str) -> Dict[str, Any]:
        return self.post("RECORD_ACTIVITY", {"action": action, "type": type_, "details": details})
