"""API client tests against httpx.MockTransport"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import json

import httpx
import pytest

from data_manager.api_client import (
    ApiClient, ApiRejection, NetworkError, ValidationError, dedupe_payments,
)
from data_manager.schema import Session

BASE = "http://backend.test/api"


class Recorder:
    """Routes requests by endpoint file name and keeps every request"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = request.url.path.rsplit("/", 1)[-1]
        route = self.routes.get(name)
        if route is None:
            return httpx.Response(404, json={"success": False, "message": f"no route {name}"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)


def _client(routes, session=None):
    recorder = Recorder(routes)
    return ApiClient(session=session, base_url=BASE, transport=httpx.MockTransport(recorder)), recorder


class TestEnvelope:
    def test_success_false_raises_rejection(self):
        api, _ = _client({"get_users.php": {"success": False, "message": "Not allowed"}})
        with pytest.raises(ApiRejection) as exc:
            api.list_users()
        assert exc.value.message == "Not allowed"

    def test_http_error_with_message(self):
        api, _ = _client({"get_users.php": lambda r: httpx.Response(403, json={"message": "Forbidden"})})
        with pytest.raises(ApiRejection, match="Forbidden"):
            api.list_users()

    def test_http_error_without_json(self):
        api, _ = _client({"get_users.php": lambda r: httpx.Response(500, text="<html>oops</html>")})
        with pytest.raises(ApiRejection, match=r"Server error \(500\)"):
            api.list_users()

    def test_transport_error_is_network_error(self):
        def down(request):
            raise httpx.ConnectError("connection refused", request=request)
        api, _ = _client({"get_users.php": down})
        with pytest.raises(NetworkError, match="Network error"):
            api.list_users()

    def test_bare_list_is_wrapped(self):
        api, _ = _client({"get_lots.php": [{"garden": "Joy Garden", "sector": "A", "coordinates": [[0, 0]] * 4}]})
        assert api.sector_polygons()[0]["sector"] == "A"


class TestSession:
    def test_login_and_user_header(self):
        api, rec = _client({
            "login.php": {"success": True, "user": {"id": 7, "username": "cashier1", "user_type": "Cashier"}},
            "get_users.php": {"success": True, "users": []},
        })
        session = api.login("cashier1", "secret")
        assert session == Session(user_id=7, username="cashier1", role="cashier")
        assert json.loads(rec.requests[0].content) == {"username": "cashier1", "password": "secret"}
        api.list_users()
        assert rec.requests[1].headers["X-User-Id"] == "7"

    def test_no_header_when_signed_out(self):
        api, rec = _client({"get_users.php": {"success": True, "users": []}})
        api.list_users()
        assert "X-User-Id" not in rec.requests[0].headers

    def test_logout_clears_session_even_on_failure(self):
        api, _ = _client({"logout.php": {"success": False, "message": "expired"}}, session=Session(user_id=1))
        with pytest.raises(ApiRejection):
            api.logout()
        assert not api.session.authenticated


class TestReads:
    def test_users(self):
        api, _ = _client({"get_users.php": {"success": True, "users": [
            {"id": 1, "username": "jdoe", "user_type": "Customer", "first_name": "Juan", "last_name": "Doe"},
        ]}})
        user = api.list_users()[0]
        assert user.role == "customer"
        assert user.full_name == "Juan Doe"

    def test_payment_history_is_deduplicated_and_cache_busted(self):
        api, rec = _client({"get_all_payments.php": {"success": True, "payments": [
            {"id": 1, "lot_id": 10}, {"id": 1, "lot_id": 10}, {"id": 1, "lot_id": 11},
        ]}})
        assert len(api.payment_history()) == 2
        assert "t" in rec.requests[0].url.params

    def test_monthly_status_for_customer(self):
        api, rec = _client({"get_monthly_payment_status.php": {"success": True, "monthly_status": [
            {"lot_id": 10, "lot_label": "JA1-2", "monthly_payments": [{"year_month": "2024-01", "amount": "1000"}]},
        ]}})
        statuses = api.monthly_payment_status(customer_id=5)
        assert statuses[0].lot_id == "10"
        assert statuses[0].monthly_payments[0].amount == 1000.0
        assert rec.requests[0].url.params["customer_id"] == "5"

    def test_reports_drop_empty_params(self):
        api, rec = _client({"get_reports_v2.php": {"success": True, "reports": {}}})
        api.reports(type="all", date_range="all", start_date="", end_date=None)
        params = rec.requests[0].url.params
        assert params["type"] == "all"
        assert "start_date" not in params
        assert "end_date" not in params

    def test_sector_path(self):
        api, _ = _client({"sector_paths.php": {"Joy Garden": {"A": [[14.1, 121.1], [14.2, 121.2]]}}})
        assert api.sector_path("Joy Garden", "A") == [(14.1, 121.1), (14.2, 121.2)]
        assert api.sector_path("Joy Garden", "Z") == []

    def test_sector_corners(self):
        api, _ = _client({"get_lots.php": [{"garden": "Joy Garden", "sector": "A", "coordinates": [[1, 2]] * 4}]})
        assert api.sector_corners("Joy Garden", "A") == [[1, 2]] * 4
        assert api.sector_corners("Joy Garden", "B") is None

    def test_markers_and_ui_config(self):
        api, _ = _client({
            "map_markers.php": {"points": [{"title": "Chapel", "lat": 1, "lng": 2}]},
            "ui_config.php": {"success": True, "sectorOverlayOpacity": 0.7},
        })
        assert api.map_markers()[0]["title"] == "Chapel"
        assert api.ui_config() == {"sectorOverlayOpacity": 0.7}


class TestWrites:
    def test_f2f_payment_body(self):
        api, rec = _client({"create_f2f_payment.php": {"success": True}})
        api.create_f2f_payment(10, 5, [{"payment_month": "2024-02", "payment_amount": 1030.0}])
        assert rec.requests[0].method == "POST"
        assert json.loads(rec.requests[0].content) == {
            "lot_id": 10, "customer_id": 5, "payment_method": "Cash",
            "bulk_payments": [{"payment_month": "2024-02", "payment_amount": 1030.0}],
        }

    def test_delete_user(self):
        api, rec = _client({"delete_user.php": {"success": True}})
        api.delete_user(3)
        assert json.loads(rec.requests[0].content) == {"id": 3}


class TestOwnership:
    def test_list_ownerships(self):
        api, _ = _client({"get_ownerships.php": {"success": True, "ownerships": [{
            "id": 4, "customerId": 9, "customer": "Ana Cruz", "garden": "Joy Garden", "sector": "A",
            "block": 2, "lotNumber": 15, "status": "Occupied", "lotType": "Deluxe",
        }]}})
        ownership = api.list_ownerships()[0]
        assert ownership.customer_name == "Ana Cruz"
        assert ownership.lot_type == "deluxe"
        assert ownership.code == "Joy Garden A2-15"

    def test_create_body(self):
        api, rec = _client({"create_ownership.php": {"success": True, "lot_id": 77}})
        assert api.create_ownership("9", "Joy Garden", "A", "2", "15", "premium")["lot_id"] == 77
        assert json.loads(rec.requests[0].content) == {
            "customer_id": "9", "garden": "Joy Garden", "sector": "A", "block": 2, "lotNumber": 15,
            "lotType": "premium",
        }

    def test_transfer_body(self):
        api, rec = _client({"update_ownership.php": {"success": True}})
        api.update_ownership(4, "12")
        assert json.loads(rec.requests[0].content) == {"id": 4, "customer_id": 12}

    def test_blocked_transfer_raises(self):
        api, _ = _client({"update_ownership.php": {"success": True, "blocked": True}})
        with pytest.raises(ApiRejection, match="buried deceased"):
            api.update_ownership(4, 12)

    def test_delete_body(self):
        api, rec = _client({"delete_ownership.php": {"success": True}})
        api.delete_ownership(4)
        assert json.loads(rec.requests[0].content) == {"id": 4}

    def test_blocks_for_sector(self):
        api, rec = _client({"get_mapping_blocks.php": {"success": True, "blocks": [1, 2, 3]}})
        assert api.map_blocks("Joy Garden", "A") == ["1", "2", "3"]
        assert dict(rec.requests[0].url.params) == {"garden": "Joy Garden", "sector": "A"}

    def test_available_lots_with_type(self):
        api, rec = _client({"get_mapping_available_lots.php": {"lots": [3, 5], "lotType": "Premium"}})
        available = api.map_available_lots("Joy Garden", "A", "2")
        assert available.lots == ["3", "5"]
        assert available.lot_type == "premium"
        assert dict(rec.requests[0].url.params) == {"garden": "Joy Garden", "sector": "A", "block": "2"}

    def test_available_lots_bare_list_defaults_to_standard(self):
        api, _ = _client({"get_mapping_available_lots.php": [{"lot_number": 8}]})
        available = api.map_available_lots("Joy Garden", "A", "2")
        assert available.lots == ["8"]
        assert available.lot_type == "standard"


class TestUpload:
    def test_rejects_non_excel(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("a,b")
        api, rec = _client({})
        with pytest.raises(ValidationError, match="Excel"):
            api.import_users(path)
        assert rec.requests == []

    def test_multipart_upload(self, tmp_path):
        path = tmp_path / "users.xlsx"
        path.write_bytes(b"PK\x03\x04fake")
        api, rec = _client({"import_users.php": {"success": True, "created": 1}})
        assert api.import_users(path)["created"] == 1
        request = rec.requests[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'filename="users.xlsx"' in request.content


def test_dedupe_payments_keeps_first():
    first = {"id": 1, "lot_id": 2, "amount": 10}
    assert dedupe_payments([first, {"id": 1, "lot_id": 2, "amount": 99}]) == [first]
