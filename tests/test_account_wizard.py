"""Add/edit account wizard tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.account_wizard import IDENTITY_STEP, PROFILE_STEP, AccountWizard
from data_manager.api_client import ApiRejection, NetworkError
from data_manager.schema import User


class FakeApi:
    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail

    def _record(self, name, payload):
        self.calls.append((name, payload))
        if self.fail is not None:
            raise self.fail
        return {"success": True, "username": "jdelacruz", "default_password": "Welcome123"}

    def create_user(self, payload):
        return self._record("create_user", payload)

    def update_user(self, payload):
        return self._record("update_user", payload)

    def update_profile(self, payload):
        return self._record("update_profile", payload)


PROFILE = {
    "street_address": "1 Rizal St",
    "city": "Calamba",
    "province": "Laguna",
    "postal_code": "4027",
    "emergency_contact_name": "Ana",
    "emergency_contact_phone": "09181234567",
    "emergency_contact_relationship": "Sister",
}


def _fill_identity(wizard, role="customer"):
    wizard.set_field("first_name", "Juan")
    wizard.set_field("last_name", "Dela Cruz")
    wizard.set_field("contact_number", "09171234567")
    wizard.set_field("sex_at_birth", "male")
    wizard.set_field("role", role)


@pytest.fixture
def api():
    return FakeApi()


class TestFieldRules:
    def test_contact_waits_for_last_name(self, api):
        wizard = AccountWizard(api)
        assert not wizard.field_enabled("contact_number")
        wizard.set_field("last_name", "Cruz")
        assert wizard.field_enabled("contact_number")

    def test_role_waits_for_valid_contact(self, api):
        wizard = AccountWizard(api)
        wizard.set_field("contact_number", "0917")
        assert not wizard.field_enabled("role")
        wizard.set_field("contact_number", "09171234567")
        assert wizard.field_enabled("role")
        assert wizard.field_enabled("sex_at_birth")

    def test_names_are_sanitized(self, api):
        wizard = AccountWizard(api)
        wizard.set_field("first_name", "Juan2")
        assert wizard.account["first_name"] == "Juan"

    def test_profile_fields_are_kept_apart(self, api):
        wizard = AccountWizard(api)
        wizard.set_field("city", "Calamba")
        assert wizard.profile["city"] == "Calamba"
        assert "city" not in wizard.account

    def test_staff_creates_customers(self, api):
        assert AccountWizard(api, viewer_role="staff").account["role"] == "customer"


class TestSteps:
    def test_customer_goes_to_profile_step(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard)
        assert wizard.next().ok
        assert wizard.step == PROFILE_STEP
        assert wizard.step_count == 2

    def test_cashier_has_one_step(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard, role="cashier")
        assert wizard.next().ok
        assert wizard.step == IDENTITY_STEP
        assert wizard.step_count == 1

    def test_next_blocks_on_missing_identity(self, api):
        wizard = AccountWizard(api)
        result = wizard.next()
        assert not result.ok
        assert result.message.startswith("Missing required fields: First Name, Last Name")
        assert wizard.step == IDENTITY_STEP

    def test_back(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard)
        wizard.next()
        wizard.back()
        assert wizard.step == IDENTITY_STEP


class TestSubmit:
    def test_incomplete_profile_blocks_create(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard)
        wizard.next()
        wizard.set_field("street_address", "1 Rizal St")
        result = wizard.submit()
        assert not result.ok
        assert result.missing == [
            "City", "Province", "Postal Code", "Emergency Contact Name",
            "Emergency Contact Phone", "Emergency Contact Relationship",
        ]
        for label in result.missing:
            assert label in result.message
        assert wizard.step == PROFILE_STEP
        assert api.calls == []

    def test_create_customer(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard)
        for name, value in PROFILE.items():
            wizard.set_field(name, value)
        result = wizard.submit()
        assert result.ok
        assert "Username: jdelacruz" in result.message
        assert "Default password: Welcome123" in result.message
        name, payload = api.calls[0]
        assert name == "create_user"
        assert payload["user_type"] == "customer"
        assert payload["contact_number"] == "+639171234567"
        assert payload["emergency_contact_phone"] == "+639181234567"
        assert not wizard.is_open

    def test_non_customer_payload_has_no_profile(self, api):
        wizard = AccountWizard(api)
        _fill_identity(wizard, role="cashier")
        wizard.submit()
        assert "city" not in api.calls[0][1]

    def test_edit_customer_updates_profile(self, api):
        user = User(id=5, username="jdoe", first_name="Juan", last_name="Doe", role="customer",
                    contact_number="+639171234567", sex_at_birth="male")
        wizard = AccountWizard(api, editing=user)
        for name, value in PROFILE.items():
            wizard.set_field(name, value)
        result = wizard.submit()
        assert result.message == "User updated successfully!"
        assert [c[0] for c in api.calls] == ["update_user", "update_profile"]
        assert api.calls[0][1]["id"] == 5

    def test_staff_cannot_edit_staff(self, api):
        user = User(id=6, username="m", first_name="Maria", last_name="Santos", role="staff",
                    contact_number="+639171234567", sex_at_birth="female")
        wizard = AccountWizard(api, viewer_role="staff", editing=user)
        result = wizard.submit()
        assert not result.ok
        assert result.message == "Staff can update customers only."
        assert api.calls == []

    def test_rejection_keeps_dialog_open(self):
        api = FakeApi(fail=ApiRejection("Email already exists"))
        wizard = AccountWizard(api)
        _fill_identity(wizard, role="cashier")
        result = wizard.submit()
        assert not result.ok
        assert result.message == "Email already exists"
        assert wizard.is_open

    def test_network_error(self):
        api = FakeApi(fail=NetworkError("Network error: timed out"))
        wizard = AccountWizard(api)
        _fill_identity(wizard, role="cashier")
        assert wizard.submit().message == "Network error: timed out"
