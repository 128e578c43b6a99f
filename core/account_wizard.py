"""
Add/edit account dialog as a small state machine

Step 1 holds identity fields; step 2 (customer details) only exists for the
customer role. Nothing reaches the API until every step validates.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.constants import Role
from data_manager.api_client import ApiRejection, NetworkError
from data_manager.data_validator import (
    CONTACT_PREFIX, format_contact, is_valid_phone, missing_fields_message,
    sanitize_name, validate_account, validate_customer_profile,
)
from data_manager.schema import CustomerProfile, User

logger = logging.getLogger(__name__)

IDENTITY_STEP = 1
PROFILE_STEP = 2

NAME_FIELDS = ("first_name", "middle_name", "last_name")
PHONE_FIELDS = ("contact_number", "emergency_contact_phone")


@dataclass
class WizardResult:
    ok: bool
    message: str = ""
    missing: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def empty_account_form() -> dict:
    return {
        "email": "",
        "role": "",
        "first_name": "",
        "middle_name": "",
        "last_name": "",
        "contact_number": CONTACT_PREFIX,
        "sex_at_birth": "",
    }


class AccountWizard:
    def __init__(self, api, viewer_role: str = Role.ADMIN.value, editing: Optional[User] = None,
                 profile: Optional[CustomerProfile] = None):
        self.api = api
        self.viewer_role = viewer_role
        self.editing = editing
        self.account = empty_account_form()
        self.profile = (profile or CustomerProfile()).to_dict()
        if editing is not None:
            self.account.update({
                "email": editing.email,
                "role": editing.role,
                "first_name": editing.first_name,
                "middle_name": editing.middle_name,
                "last_name": editing.last_name,
                "contact_number": editing.contact_number or CONTACT_PREFIX,
                "sex_at_birth": editing.sex_at_birth,
            })
        if viewer_role == Role.STAFF.value and editing is None:
            self.account["role"] = Role.CUSTOMER.value
        self.step = IDENTITY_STEP
        self.is_open = True
        self.errors: Dict[str, str] = {}
        self.message = ""

    @property
    def requires_profile(self) -> bool:
        return (self.account.get("role") or "").lower() == Role.CUSTOMER.value

    @property
    def step_count(self) -> int:
        return 2 if self.requires_profile else 1

    def set_field(self, name: str, value):
        if name in NAME_FIELDS:
            value = sanitize_name(value)
        if name in PHONE_FIELDS:
            value = format_contact(value)
        if name in self.account:
            self.account[name] = value
        else:
            self.profile[name] = value

    def field_enabled(self, name: str) -> bool:
        """Contact opens once the last name is set; gender and role once the contact is valid"""
        if name == "contact_number":
            return bool((self.account.get("last_name") or "").strip())
        if name in ("sex_at_birth", "role"):
            return is_valid_phone(self.account.get("contact_number"))
        return True

    def _fail(self, missing: List[str], errors: Dict[str, str], message: str = "") -> WizardResult:
        self.errors = errors
        self.message = message or (missing_fields_message(missing) if missing else next(iter(errors.values()), ""))
        return WizardResult(ok=False, message=self.message, missing=missing, errors=errors)

    def _check_staff_scope(self) -> Optional[WizardResult]:
        if self.viewer_role == Role.STAFF.value and self.account.get("role") != Role.CUSTOMER.value:
            return self._fail([], {"role": "Staff can update customers only."})
        return None

    def next(self) -> WizardResult:
        ok, missing, errors = validate_account(self.account)
        if not ok:
            return self._fail(missing, errors)
        self.errors = {}
        self.message = ""
        if self.requires_profile:
            self.step = PROFILE_STEP
        return WizardResult(ok=True)

    def back(self):
        self.step = IDENTITY_STEP

    def validate_all(self) -> WizardResult:
        ok, missing, errors = validate_account(self.account)
        if not ok:
            self.step = IDENTITY_STEP
            return self._fail(missing, errors)
        if self.requires_profile:
            ok, missing, errors = validate_customer_profile(self.profile)
            if not ok:
                self.step = PROFILE_STEP
                return self._fail(missing, errors)
        return WizardResult(ok=True)

    def payload(self) -> dict:
        data = {
            "user_type": self.account["role"],
            "email": self.account["email"],
            "first_name": self.account["first_name"],
            "middle_name": self.account["middle_name"],
            "last_name": self.account["last_name"],
            "contact_number": self.account["contact_number"],
            "sex_at_birth": self.account["sex_at_birth"],
        }
        if self.requires_profile:
            data.update(self.profile)
        return data

    def submit(self) -> WizardResult:
        scope = self._check_staff_scope()
        if scope is not None:
            return scope
        result = self.validate_all()
        if not result.ok:
            return result

        try:
            if self.editing is None:
                response = self.api.create_user(self.payload())
                message = "User created successfully!"
                if response.get("username"):
                    message += f" Username: {response['username']}"
                if response.get("default_password"):
                    message += f" Default password: {response['default_password']}"
            else:
                payload = {"id": self.editing.id, "username": self.editing.username, **self.payload()}
                self.api.update_user(payload)
                if self.requires_profile:
                    self.api.update_profile({
                        "id": self.editing.id,
                        "username": self.editing.username,
                        "email": self.account["email"],
                        "contact_number": self.account["contact_number"],
                        "sex_at_birth": self.account["sex_at_birth"],
                        **self.profile,
                    })
                message = "User updated successfully!"
        except ApiRejection as e:
            logger.warning("Account save rejected: %s", e.message)
            return self._fail([], {}, e.message or "Failed to save user")
        except NetworkError as e:
            return self._fail([], {}, str(e))

        self.is_open = False
        self.message = message
        logger.info("Saved account for %s", self.account["last_name"])
        return WizardResult(ok=True, message=message)
