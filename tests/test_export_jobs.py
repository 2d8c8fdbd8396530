"""
Tests for export filters, column selection, the export executor and the
export endpoints.
"""
import csv
import io
import json

import pytest
from openpyxl import load_workbook

from app.api.schemas.shared import JobStatus
from app.domain.entities.registry import EntityType, get_entity_definition
from app.domain.errors import JobNotReadyError
from app.domain.exports.columns import ColumnSelection
from app.domain.exports.executor import run_export_job
from app.domain.exports.filters import (
    FilterSyntaxError,
    UnknownFilterFieldError,
    apply_filters,
    build_conditions,
    parse_filter_expression,
)
from app.domain.exports.jobs import create_export_job, get_export_artifact, get_export_job
from app.domain.file_types import FileType

APPRENTICES = [
    {"first_name": "Jane", "last_name": "Citizen", "email": "jane@example.com", "status": "active",
     "trade": "Electrical", "start_date": "2023-02-01"},
    {"first_name": "Sam", "last_name": "Smith", "email": "sam@example.com", "status": "completed",
     "trade": "Plumbing", "start_date": "2021-07-15"},
    {"first_name": "Ali", "last_name": "Khan", "email": "ali@example.com", "status": "Active",
     "trade": "Carpentry", "start_date": "2024-01-10"},
]


@pytest.fixture
def seeded_store(store):
    for record in APPRENTICES:
        store.create(EntityType.APPRENTICES, json.dumps([record["email"]]), record)
    return store


class TestFilters:
    def test_parse_pairs(self):
        assert parse_filter_expression("status=active, trade = Electrical") == [
            ("status", "active"),
            ("trade", "Electrical"),
        ]

    def test_empty_expression_has_no_pairs(self):
        assert parse_filter_expression("  ") == []

    @pytest.mark.parametrize("expression", ["status", "=active", "status=active,oops"])
    def test_syntax_errors(self, expression):
        with pytest.raises(FilterSyntaxError):
            parse_filter_expression(expression)

    def test_exact_match_is_case_insensitive(self):
        conditions = build_conditions([("status", "active")], get_entity_definition("apprentices"))
        matched = apply_filters(APPRENTICES, conditions)
        assert [r["first_name"] for r in matched] == ["Jane", "Ali"]

    def test_after_and_before_compare_iso_dates(self):
        definition = get_entity_definition("apprentices")
        conditions = build_conditions(
            [("start_date_after", "2022-01-01"), ("start_date_before", "2024-01-01")], definition
        )
        assert [r["first_name"] for r in apply_filters(APPRENTICES, conditions)] == ["Jane"]

    def test_unknown_key_is_rejected(self):
        with pytest.raises(UnknownFilterFieldError):
            build_conditions([("created_after", "2024-01-01")], get_entity_definition("apprentices"))


class TestColumnSelection:
    def test_defaults_to_every_registered_field(self):
        selection = ColumnSelection("apprentices")
        assert selection.selected == get_entity_definition("apprentices").field_names
        assert selection.all_selected

    def test_toggle_all_from_all_selected_clears(self):
        selection = ColumnSelection("apprentices")
        selection.toggle_all()
        assert selection.selected == []

    def test_toggle_all_from_partial_selects_everything(self):
        selection = ColumnSelection("apprentices")
        selection.toggle_all()
        selection.toggle("email")
        selection.toggle_all()
        assert selection.all_selected

    def test_toggle_single_column_keeps_registry_order(self):
        selection = ColumnSelection("apprentices")
        assert selection.toggle("first_name") is False
        assert selection.toggle("first_name") is True
        assert selection.selected[0] == "first_name"

    def test_changing_entity_resets_selection(self):
        selection = ColumnSelection("apprentices")
        selection.toggle_all()
        selection.select_entity_type("host_employers")
        assert selection.selected == get_entity_definition("host_employers").field_names

    def test_unknown_column(self):
        with pytest.raises(KeyError):
            ColumnSelection("apprentices").toggle("industry")


class TestExportExecutor:
    def _run(self, store, file_type=FileType.CSV, columns=("first_name", "email"), filter_expression=None):
        job = create_export_job(
            entity_type=EntityType.APPRENTICES,
            file_type=file_type,
            columns=list(columns),
            filter_expression=filter_expression,
        )
        run_export_job(job.id, store=store)
        return get_export_job(job.id)

    def test_csv_export_with_filter_and_columns(self, seeded_store):
        job = self._run(seeded_store, filter_expression="status=active")

        assert job.status == JobStatus.COMPLETED
        assert job.total_rows == 2
        assert job.download_url == f"/export-jobs/{job.id}/download"
        _, content = get_export_artifact(job.id)
        rows = list(csv.DictReader(io.StringIO(content.decode("utf-8"))))
        assert rows == [
            {"first_name": "Jane", "email": "jane@example.com"},
            {"first_name": "Ali", "email": "ali@example.com"},
        ]

    def test_json_export(self, seeded_store):
        job = self._run(seeded_store, file_type=FileType.JSON, columns=("email", "trade"))
        _, content = get_export_artifact(job.id)
        assert json.loads(content)[1] == {"email": "sam@example.com", "trade": "Plumbing"}

    def test_xlsx_export(self, seeded_store):
        job = self._run(seeded_store, file_type=FileType.XLSX, columns=("last_name",))
        _, content = get_export_artifact(job.id)
        sheet = load_workbook(io.BytesIO(content)).active
        values = [row[0] for row in sheet.iter_rows(values_only=True)]
        assert values == ["last_name", "Citizen", "Smith", "Khan"]

    def test_unknown_filter_key_fails_the_job(self, seeded_store):
        job = self._run(seeded_store, filter_expression="created_after=2024-01-01")

        assert job.status == JobStatus.FAILED
        assert "created_after" in job.error_message
        assert job.download_url is None
        with pytest.raises(JobNotReadyError):
            get_export_artifact(job.id)

    def test_empty_entity_exports_header_only(self, store):
        job = self._run(store)
        _, content = get_export_artifact(job.id)
        assert job.total_rows == 0
        assert content.decode("utf-8").strip() == "first_name,email"


class TestExportEndpoints:
    def test_submit_poll_and_download(self, client, seeded_store):
        response = client.post("/export-jobs", json={
            "entity_type": "apprentices",
            "file_type": "csv",
            "columns": ["email", "status"],
            "filter": "trade=Plumbing",
        })
        assert response.status_code == 201
        job_id = response.json()["job"]["id"]

        job = client.get(f"/export-jobs/{job_id}").json()["job"]
        assert job["status"] == "completed"
        assert job["download_url"] == f"/export-jobs/{job_id}/download"

        first = client.get(job["download_url"])
        second = client.get(job["download_url"])
        assert first.status_code == 200
        assert first.headers["content-type"].startswith("text/csv")
        assert first.content == second.content
        assert b"sam@example.com,completed" in first.content

    def test_download_before_completion_is_409(self, client):
        job = create_export_job(entity_type=EntityType.APPRENTICES, file_type=FileType.CSV, columns=["email"])
        response = client.get(f"/export-jobs/{job.id}/download")
        assert response.status_code == 409

    def test_empty_columns_rejected(self, client):
        response = client.post("/export-jobs", json={"entity_type": "apprentices", "columns": []})
        assert response.status_code == 422

    def test_filter_syntax_checked_at_submission(self, client):
        response = client.post("/export-jobs", json={
            "entity_type": "apprentices",
            "columns": ["email"],
            "filter": "status",
        })
        assert response.status_code == 422

    def test_unregistered_column_rejected(self, client):
        response = client.post("/export-jobs", json={"entity_type": "apprentices", "columns": ["industry"]})
        assert response.status_code == 400

    def test_delete_removes_job_and_artifact(self, client, seeded_store, export_dir):
        job_id = client.post("/export-jobs", json={
            "entity_type": "apprentices", "columns": ["email"],
        }).json()["job"]["id"]
        assert any(export_dir.rglob("*.csv"))

        response = client.delete(f"/export-jobs/{job_id}", params={"confirm": "true"})
        assert response.status_code == 200
        assert client.get(f"/export-jobs/{job_id}").status_code == 404
        assert not any(export_dir.rglob("*.csv"))
