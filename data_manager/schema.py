from dataclasses import dataclass, field, asdict
from typing import List, Optional

from config.constants import GARDEN_PREFIX, LotStatus, VaultOption
from utils.formatters import full_name, title_case, to_number


def _str(value) -> str:
    return "" if value is None else str(value)


@dataclass
class User:
    id: int
    username: str
    email: str = ""
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    role: str = ""
    contact_number: str = ""
    sex_at_birth: str = ""
    created_at: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "User":
        return cls(
            id=data.get("id"),
            username=_str(data.get("username")),
            email=_str(data.get("email")),
            first_name=_str(data.get("first_name")),
            middle_name=_str(data.get("middle_name")),
            last_name=_str(data.get("last_name")),
            role=_str(data.get("user_type") or data.get("account_type") or data.get("role")).lower(),
            contact_number=_str(data.get("contact_number")),
            sex_at_birth=_str(data.get("sex_at_birth")).lower(),
            created_at=_str(data.get("created_at")),
        )

    @property
    def full_name(self) -> str:
        return full_name(self.first_name, self.middle_name, self.last_name)


@dataclass
class CustomerProfile:
    street_address: str = ""
    barangay: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    emergency_contact_relationship: str = ""
    occupation: str = ""
    monthly_income: str = ""
    source_of_funds: str = ""
    notes: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "CustomerProfile":
        known = cls.__dataclass_fields__
        return cls(**{k: _str(v) for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LotBox:
    """Pixel bounding box of a lot inside its sector image"""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_api(cls, data: dict) -> "LotBox":
        return cls(
            x=to_number(data.get("x")),
            y=to_number(data.get("y")),
            width=to_number(data.get("width")),
            height=to_number(data.get("height")),
        )


@dataclass
class Lot:
    garden: str
    sector: str
    block_number: str
    lot_number: str
    status: str = LotStatus.AVAILABLE.value
    type: str = "standard"
    owner: str = ""
    deceased_names: List[str] = field(default_factory=list)
    coordinates: Optional[LotBox] = None

    @classmethod
    def from_api(cls, data: dict, garden: str = "", sector: str = "") -> "Lot":
        coords = data.get("coordinates")
        deceased = data.get("deceasedRecords") or []
        return cls(
            garden=_str(data.get("garden") or garden),
            sector=_str(data.get("sector") or sector),
            block_number=_str(data.get("blockNumber", data.get("block_number"))),
            lot_number=_str(data.get("lotNumber", data.get("lot_number"))),
            status=_str(data.get("status")).lower() or LotStatus.AVAILABLE.value,
            type=_str(data.get("type")).lower() or "standard",
            owner=_str(data.get("owner")),
            deceased_names=[_str(d.get("name")) for d in deceased if isinstance(d, dict)],
            coordinates=LotBox.from_api(coords) if isinstance(coords, dict) else None,
        )

    @property
    def display_status(self) -> str:
        try:
            return LotStatus(self.status).category
        except ValueError:
            return "Available"

    @property
    def code(self) -> str:
        prefix = GARDEN_PREFIX.get(self.garden) or (self.garden[:1] if self.garden else "")
        return f"{prefix}{self.sector}{self.block_number}-{self.lot_number}"

    @property
    def deceased_display(self) -> str:
        return ", ".join(self.deceased_names) if self.deceased_names else "-"


@dataclass
class LotVault:
    option: str = ""
    lower_body: bool = False
    upper_body: bool = False
    lower_bone: int = 0
    upper_bone: int = 0
    interments: int = 0
    available_options: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "LotVault":
        usage = data.get("usage") or data
        return cls(
            option=_str(data.get("option")).lower(),
            lower_body=bool(usage.get("lower_body")),
            upper_body=bool(usage.get("upper_body")),
            lower_bone=int(to_number(usage.get("lower_bone"))),
            upper_bone=int(to_number(usage.get("upper_bone"))),
            interments=int(to_number(data.get("interments", 0))),
            available_options=list(data.get("available_options") or data.get("availableOptions") or []),
        )

    @property
    def locked(self) -> bool:
        """A vault cannot be reconfigured once anyone is interred"""
        used = int(self.lower_body) + int(self.upper_body) + self.lower_bone + self.upper_bone
        return self.interments > 0 or used > 0

    @property
    def description(self) -> str:
        try:
            return VaultOption(self.option).description
        except ValueError:
            return ""

    @property
    def availability(self) -> str:
        lb = 1 if self.lower_body else 0
        ub = 1 if self.upper_body else 0
        if self.option == VaultOption.OPTION1.value:
            return f"Lower body {lb}/1, Upper body {ub}/1, Bones {self.lower_bone + self.upper_bone}/4"
        if self.option == VaultOption.OPTION2.value:
            return f"Lower body {lb}/1, Upper bones {self.upper_bone}/5"
        if self.option == VaultOption.OPTION3.value:
            return f"Lower bones {self.lower_bone}/3, Upper bones {self.upper_bone}/3"
        return "No vault selected yet"


@dataclass
class Ownership:
    id: int
    customer_id: str
    garden: str
    sector: str
    block: str
    lot_number: str
    vault_summary: str = ""
    customer_name: str = ""
    status: str = ""
    lot_type: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Ownership":
        return cls(
            id=data.get("id"),
            customer_id=_str(data.get("customerId", data.get("customer_id"))),
            garden=_str(data.get("garden")),
            sector=_str(data.get("sector")),
            block=_str(data.get("block")),
            lot_number=_str(data.get("lotNumber", data.get("lot_number"))),
            vault_summary=_str(data.get("vaultSummary", data.get("vault_summary"))),
            customer_name=_str(data.get("customer", data.get("customer_name"))),
            status=_str(data.get("status")),
            lot_type=_str(data.get("lotType", data.get("lot_type"))).lower(),
        )

    @property
    def code(self) -> str:
        return f"{self.garden} {self.sector}{self.block}-{self.lot_number}"

    @property
    def label(self) -> str:
        text = f"{self.garden} / Sector {self.sector} / Block {self.block} / Lot {self.lot_number}"
        if self.vault_summary:
            text += f" — {self.vault_summary}"
        return text


@dataclass
class AvailableLots:
    """Open lot numbers in one block, with the block's lot type"""
    lots: List[str] = field(default_factory=list)
    lot_type: str = "standard"

    @classmethod
    def from_api(cls, data: dict) -> "AvailableLots":
        lots = []
        for lot in data.get("lots") or data.get("data") or []:
            if isinstance(lot, dict):
                lot = lot.get("lotNumber", lot.get("lot_number"))
            if lot is not None:
                lots.append(_str(lot))
        return cls(lots=lots, lot_type=_str(data.get("lotType") or "standard").lower())


@dataclass
class DeceasedRecord:
    id: Optional[int]
    name: str
    date_of_birth: str = ""
    date_of_death: str = ""
    burial_date: str = ""
    customer_id: str = ""
    lot_id: str = ""
    lot_label: str = ""
    status: str = "BURIED"
    cause_of_death: str = ""
    funeral_home: str = ""
    notes: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "DeceasedRecord":
        return cls(
            id=data.get("id"),
            name=_str(data.get("name")),
            date_of_birth=_str(data.get("date_of_birth")),
            date_of_death=_str(data.get("date_of_death")),
            burial_date=_str(data.get("burial_date")),
            customer_id=_str(data.get("customer_id")),
            lot_id=_str(data.get("lot_id")),
            lot_label=_str(data.get("lot_label")),
            status=_str(data.get("status")) or "BURIED",
            cause_of_death=_str(data.get("cause_of_death")),
            funeral_home=_str(data.get("funeral_home")),
            notes=_str(data.get("notes")),
        )


@dataclass
class ScheduleEntry:
    amount_due: float
    status: str = ""


@dataclass
class PaymentPlan:
    lot_id: str
    total_amount: float = 0.0
    down_payment: float = 0.0
    payment_term_months: int = 0
    monthly_amount: float = 0.0
    schedule: List[ScheduleEntry] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "PaymentPlan":
        schedule = data.get("schedule") if isinstance(data.get("schedule"), list) else []
        return cls(
            lot_id=_str(data.get("lot_id")),
            total_amount=to_number(data.get("total_amount")),
            down_payment=to_number(data.get("down_payment")),
            payment_term_months=int(to_number(data.get("payment_term_months"))),
            monthly_amount=to_number(data.get("monthly_amount")),
            schedule=[
                ScheduleEntry(amount_due=to_number(s.get("amount_due")), status=_str(s.get("status")))
                for s in schedule
            ],
        )


@dataclass
class MonthlyPayment:
    year_month: str
    amount: float
    paid: bool = False
    overdue: bool = False
    amount_with_penalty: Optional[float] = None
    due_date: str = ""
    due_day: Optional[int] = None
    display: str = ""
    receipt_url: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "MonthlyPayment":
        awp = data.get("amount_with_penalty")
        due_day = data.get("due_day")
        return cls(
            year_month=_str(data.get("year_month")),
            amount=to_number(data.get("amount")),
            paid=bool(data.get("paid")),
            overdue=bool(data.get("overdue")),
            amount_with_penalty=None if awp is None else to_number(awp),
            due_date=_str(data.get("due_date")),
            due_day=int(to_number(due_day)) if due_day not in (None, "") else None,
            display=_str(data.get("display")),
            receipt_url=_str(data.get("receipt_url")),
        )


@dataclass
class LotMonthlyStatus:
    lot_id: str
    lot_label: str = ""
    monthly_payments: List[MonthlyPayment] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "LotMonthlyStatus":
        return cls(
            lot_id=_str(data.get("lot_id")),
            lot_label=_str(data.get("lot_label") or data.get("lot_display")),
            monthly_payments=[MonthlyPayment.from_api(m) for m in data.get("monthly_payments") or []],
        )


@dataclass
class ActivityLogEntry:
    id: int
    timestamp: str
    action: str = ""
    type: str = ""
    details: str = ""
    user: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "ActivityLogEntry":
        return cls(
            id=data.get("id"),
            timestamp=_str(data.get("timestamp")),
            action=_str(data.get("action")),
            type=_str(data.get("type")),
            details=_str(data.get("details")),
            user=_str(data.get("user")),
        )


@dataclass
class Session:
    """Signed-in user, passed explicitly to clients and page helpers"""
    user_id: Optional[int] = None
    username: str = ""
    role: str = ""

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


def deceased_payload(form: dict) -> dict:
    """Request body for create/update; split name fields are joined and title-cased"""
    name = full_name(form.get("first_name"), form.get("middle_name"), form.get("last_name")) or _str(form.get("name"))
    payload = {
        "name": title_case(name),
        "date_of_birth": _str(form.get("date_of_birth")),
        "date_of_death": _str(form.get("date_of_death")),
        "burial_date": _str(form.get("burial_date")),
        "customer_id": form.get("customer_id"),
        "lot_id": form.get("lot_id"),
        "status": "BURIED",
        "cause_of_death": _str(form.get("cause_of_death")),
        "funeral_home": _str(form.get("funeral_home")),
        "notes": _str(form.get("notes")),
    }
    if form.get("id") is not None:
        payload["id"] = form["id"]
    return payload
