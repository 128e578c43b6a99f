import re
from datetime import date
from typing import Dict, List, Optional, Tuple

from config.constants import ACCOUNT_FIELD_LABELS, CUSTOMER_FIELD_LABELS, Role
from utils.date_utils import parse_date

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.com$", re.IGNORECASE)
PHONE_RE = re.compile(r"^\+639\d{9}$")
CONTACT_PREFIX = "+639"

ValidationResult = Tuple[bool, List[str], Dict[str, str]]


def is_valid_email(email: str) -> bool:
    """Empty email is allowed; otherwise it must end in .com"""
    if not email:
        return True
    return bool(EMAIL_RE.match(email.strip()))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(re.sub(r"\s+", "", phone or "")))


def format_contact(raw: str) -> str:
    """Normalise typed input to +639XXXXXXXXX (possibly shorter while typing)"""
    digits = re.sub(r"\D", "", raw or "")
    digits = re.sub(r"^639?", "", digits)
    digits = re.sub(r"^09?", "", digits)
    return CONTACT_PREFIX + digits[:9]


def sanitize_name(value: str) -> str:
    """Keep letters (accented included), spaces, hyphens, apostrophes and periods"""
    if not value:
        return ""
    return re.sub(r"[^a-zA-Z\s\-'.À-ÿ]", "", value)


def _blank(value) -> bool:
    return value is None or str(value).strip() == ""


def _blank_contact(value) -> bool:
    return _blank(value) or str(value).strip() == CONTACT_PREFIX


def validate_account(form: dict) -> ValidationResult:
    """Identity step of the account form, returns (ok, missing_labels, field_errors)"""
    missing: List[str] = []
    errors: Dict[str, str] = {}

    for key in ("first_name", "last_name"):
        if _blank(form.get(key)):
            missing.append(ACCOUNT_FIELD_LABELS[key])

    contact = form.get("contact_number")
    if _blank_contact(contact):
        missing.append(ACCOUNT_FIELD_LABELS["contact_number"])
    elif not is_valid_phone(contact):
        missing.append(ACCOUNT_FIELD_LABELS["contact_number"])
        errors["contact_number"] = "Enter a valid PH mobile number (+639XXXXXXXXX)"

    if _blank(form.get("sex_at_birth")):
        missing.append(ACCOUNT_FIELD_LABELS["sex_at_birth"])
    if _blank(form.get("role")):
        missing.append(ACCOUNT_FIELD_LABELS["role"])
    elif form.get("role") not in [r.value for r in Role]:
        errors["role"] = f"Unknown role: {form.get('role')}"

    email = form.get("email") or ""
    if not is_valid_email(email):
        errors["email"] = "Email must be a valid .com address"

    return not missing and not errors, missing, errors


def validate_customer_profile(profile: dict) -> ValidationResult:
    """Customer details step; only required when the role is customer"""
    missing: List[str] = []
    errors: Dict[str, str] = {}

    for key, label in CUSTOMER_FIELD_LABELS.items():
        value = profile.get(key)
        if key == "emergency_contact_phone":
            if _blank_contact(value):
                missing.append(label)
            elif not is_valid_phone(value):
                missing.append(label)
                errors[key] = "Enter a valid PH mobile number (+639XXXXXXXXX)"
        elif _blank(value):
            missing.append(label)

    return not missing, missing, errors


def validate_deceased(form: dict, today: Optional[date] = None) -> ValidationResult:
    """Deceased record form: names, chronology of birth/death/burial, customer and lot"""
    today = today or date.today()
    missing: List[str] = []
    errors: Dict[str, str] = {}

    if _blank(form.get("customer_id")):
        missing.append("Customer")
    if _blank(form.get("lot_id")):
        missing.append("Owned Lot")
    if _blank(form.get("first_name")):
        missing.append("First Name")
    if _blank(form.get("last_name")):
        missing.append("Last Name")

    dob = parse_date(form.get("date_of_birth"))
    dod = parse_date(form.get("date_of_death"))
    burial = parse_date(form.get("burial_date"))

    if dob is None or dob > today:
        missing.append("Valid Date of Birth")
        errors["date_of_birth"] = "Date of birth is required and cannot be in the future"

    if dod is None or dod > today or (dob is not None and dod < dob):
        missing.append("Valid Date of Death")
        errors["date_of_death"] = "Date of death cannot be in the future or before birth"

    if burial is None or (dob is not None and burial < dob) or (dod is not None and burial < dod):
        missing.append("Valid Burial Date")
        errors["burial_date"] = "Burial date cannot be before birth or death"

    return not missing, missing, errors


def missing_fields_message(missing: List[str]) -> str:
    return "Missing required fields: " + ", ".join(missing)


def fix_following_message(problems: List[str]) -> str:
    return "Please fix the following: " + ", ".join(problems)
