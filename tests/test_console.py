"""
Tests for the operator console, run against a fake API client.
"""
import io

import pytest
from openpyxl import Workbook
from rich.console import Console

from app.client import JobSubmissionError
from app.console import ExchangeConsole
from app.domain.entities.registry import get_entity_definition


class FakeClient:
    def __init__(self):
        self.submitted = []
        self.exports = []

    def preview(self, content, file_name, entity_type, file_type=None):
        if file_type == "xlsx":
            raise JobSubmissionError("POST /import-preview returned 415", status_code=415)
        return {
            "file_type": file_type,
            "preview": {"columns": ["Email"], "sample_rows": [{"Email": "a@example.com"}]},
            "mappings": [],
        }

    def submit_import(self, content, file_name, entity_type, mappings, **kwargs):
        self.submitted.append({"file_name": file_name, "mappings": mappings, **kwargs})
        kwargs["on_progress"](100)
        return {"id": "job-1", "status": "pending"}

    def submit_export(self, entity_type, columns, *, file_type="csv", filter_expression=None):
        self.exports.append({"entity_type": entity_type, "columns": columns, "filter": filter_expression})
        return {"id": "export-1", "status": "pending"}

    def wait_for_job(self, job_id, *, kind="import", on_update=None, **kwargs):
        if kind == "export":
            return {"id": job_id, "status": "completed", "total_rows": 1, "file_name": "apprentices_export.csv"}
        return {"id": job_id, "status": "completed", "progress": 100, "processed_rows": 2,
                "total_rows": 2, "error_rows": 0, "error_preview": []}

    def download_export(self, job_id):
        return b"email\na@example.com\n"


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def exchange(fake_client):
    return ExchangeConsole(fake_client, console=Console(file=io.StringIO(), width=200))


def _workbook_bytes():
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["First Name", "Last Name", "Email", "Trade"])
    sheet.append(["Jane", "Citizen", "jane@example.com", "Electrical"])
    sheet.append(["Sam", "Smith", "sam@example.com", "Plumbing"])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestImportCommand:
    def test_spreadsheet_import_reads_headers_locally(self, exchange, fake_client, tmp_path):
        path = tmp_path / "apprentices.xlsx"
        path.write_bytes(_workbook_bytes())

        result = exchange.run_import(path, "apprentices", update_existing=False, skip_errors=True,
                                     interactive=False)

        assert result == 0
        submitted = fake_client.submitted[0]
        assert submitted["file_type"] == "xlsx"
        targets = {m["source_column"]: m["target_field"] for m in submitted["mappings"]}
        assert targets == {"First Name": "first_name", "Last Name": "last_name", "Email": "email",
                           "Trade": "trade"}

    def test_unreadable_spreadsheet_fails_before_upload(self, exchange, fake_client, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"not a workbook")

        assert exchange.run_import(path, "apprentices", update_existing=False, skip_errors=False,
                                   interactive=False) == 1
        assert fake_client.submitted == []


class TestExportCommand:
    def test_defaults_to_every_registered_column(self, exchange, fake_client, tmp_path):
        result = exchange.run_export("apprentices", None, "csv", None, tmp_path / "out.csv")

        assert result == 0
        assert fake_client.exports[0]["columns"] == get_entity_definition("apprentices").field_names
        assert (tmp_path / "out.csv").read_bytes() == b"email\na@example.com\n"

    def test_named_columns_keep_registry_order(self, exchange, fake_client, tmp_path):
        exchange.run_export("apprentices", "trade, email", "csv", "status=active", tmp_path / "out.csv")

        assert fake_client.exports[0]["columns"] == ["email", "trade"]
        assert fake_client.exports[0]["filter"] == "status=active"

    def test_unknown_column_is_rejected(self, exchange, fake_client, tmp_path):
        assert exchange.run_export("apprentices", "industry", "csv", None, tmp_path / "out.csv") == 1
        assert fake_client.exports == []

    def test_interactive_toggles(self, exchange, fake_client, tmp_path, monkeypatch):
        commands = iter(["all", "email", "trade", "done"])
        monkeypatch.setattr("app.console.Prompt.ask", lambda *args, **kwargs: next(commands))

        exchange.run_export("apprentices", None, "csv", None, tmp_path / "out.csv", interactive=True)

        assert fake_client.exports[0]["columns"] == ["email", "trade"]

    def test_empty_selection_is_not_submitted(self, exchange, fake_client, tmp_path, monkeypatch):
        commands = iter(["all", "done"])
        monkeypatch.setattr("app.console.Prompt.ask", lambda *args, **kwargs: next(commands))

        assert exchange.run_export("apprentices", None, "csv", None, tmp_path / "out.csv", interactive=True) == 1
        assert fake_client.exports == []
