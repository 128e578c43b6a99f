"""Bulk import summary tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.import_summary import collect_errors, failure_details, import_file, summarize
from data_manager.api_client import ApiRejection, NetworkError


class FakeApi:
    def __init__(self, users, deceased):
        self.users = users
        self.deceased = deceased
        self.files = []

    @staticmethod
    def _answer(result):
        if isinstance(result, Exception):
            raise result
        return result

    def import_users(self, path):
        self.files.append(("users", path))
        return self._answer(self.users)

    def import_deceased(self, path):
        self.files.append(("deceased", path))
        return self._answer(self.deceased)


class TestSummarize:
    def test_both_created(self):
        summary = summarize(
            {"success": True, "total": 5, "created": 3, "failed": 0},
            {"success": True, "total": 2, "created": 2, "failed": 0},
        )
        assert summary.ok
        assert summary.level == "success"
        assert summary.message == "Import Successful!\n\nAccounts: 3 created (5 total)\nDeceased: 2 created"
        assert summary.error_message == ""

    def test_failed_rows_warn(self):
        summary = summarize(
            {"success": True, "total": 3, "created": 1, "failed": 2, "errors": ["Row 2: bad", "Row 3: bad"]},
            None,
        )
        assert summary.level == "warning"
        assert summary.message.endswith("\n\nNote: 2 row(s) failed")
        assert summary.error_message == "2 row(s) failed:\n\nAccount: Row 2: bad\nAccount: Row 3: bad"

    def test_nothing_created(self):
        summary = summarize({"success": True, "total": 0, "created": 0}, {"success": False})
        assert summary.ok
        assert summary.message == "Import completed, but no records were created."

    def test_both_failed_uses_first_message(self):
        summary = summarize({"success": False, "message": "Bad header"}, {"success": False, "message": "Other"})
        assert not summary.ok
        assert summary.level == "error"
        assert summary.message == "Bad header"

    def test_both_failed_default_message(self):
        assert summarize(None, None).message == "Import failed. Please check the file and try again."


class TestErrors:
    def test_prefixes(self):
        errors = collect_errors({"errors": ["a"]}, {"errors": ["b"]})
        assert errors == ["Account: a", "Deceased: b"]

    def test_only_ten_listed(self):
        errors = [f"Row {i}" for i in range(13)]
        text = failure_details(errors, 13)
        assert text.startswith("13 row(s) failed:\n\n")
        assert "Row 9" in text
        assert "Row 10" not in text
        assert text.endswith("\n... and 3 more")


class TestImportFile:
    def test_same_file_sent_to_both(self, tmp_path):
        path = tmp_path / "import.xlsx"
        api = FakeApi({"success": True, "created": 1, "total": 1}, {"success": True, "created": 0})
        summary = import_file(api, path)
        assert api.files == [("users", path), ("deceased", path)]
        assert summary.message == "Import Successful!\n\nAccounts: 1 created"

    def test_deceased_network_error_is_skipped(self):
        api = FakeApi({"success": True, "created": 2, "total": 2}, NetworkError("Network error: down"))
        summary = import_file(api, "f.xlsx")
        assert summary.ok
        assert summary.level == "success"

    def test_rejection_becomes_failed_result(self):
        api = FakeApi(
            ApiRejection("Missing column: username", {"success": False, "errors": ["Row 1"]}),
            ApiRejection("No deceased sheet"),
        )
        summary = import_file(api, "f.xlsx")
        assert not summary.ok
        assert summary.message == "Missing column: username"

    def test_accounts_network_error_propagates(self):
        api = FakeApi(NetworkError("Network error: down"), {"success": True})
        with pytest.raises(NetworkError):
            import_file(api, "f.xlsx")
