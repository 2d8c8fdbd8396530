"""
Tests for the file preview parser and the preview/auto-map endpoints.
"""
import json

import pytest

from app.domain.errors import PreviewParseError, UnsupportedPreviewFormatError
from app.domain.file_types import FileType
from app.domain.imports.preview import build_import_preview


def _csv(rows):
    return ("\n".join(rows) + "\n").encode("utf-8")


def test_csv_preview_trims_headers_and_drops_blank_rows():
    content = _csv([
        " First Name , Last Name ,Email",
        "Jane,Citizen,jane@example.com",
        " , , ",
        "",
        "Sam,Smith,sam@example.com",
    ])
    result = build_import_preview(content, FileType.CSV, "apprentices")

    assert result.preview.columns == ["First Name", "Last Name", "Email"]
    assert [row["Email"] for row in result.preview.sample_rows] == ["jane@example.com", "sam@example.com"]
    assert [m.target_field for m in result.mappings] == ["first_name", "last_name", "email"]


def test_csv_preview_samples_at_most_five_rows():
    rows = ["Email"] + [f"user{i}@example.com" for i in range(12)]
    result = build_import_preview(_csv(rows), FileType.CSV, "apprentices")
    assert len(result.preview.sample_rows) == 5


def test_csv_values_stay_text():
    result = build_import_preview(_csv(["Code,Title", "0042,Plumbing"]), FileType.CSV, "qualifications")
    assert result.preview.sample_rows[0]["Code"] == "0042"


def test_json_preview_uses_keys_of_first_object():
    content = json.dumps([
        {"name": "Acme Builders", "industry": "Construction", "rating": 4},
        {"name": "Bright Sparks", "industry": "Electrical"},
    ]).encode()
    result = build_import_preview(content, FileType.JSON, "host_employers")

    assert result.preview.columns == ["name", "industry", "rating"]
    assert result.preview.sample_rows[0]["rating"] == 4
    mapped = {m.source_column: m.target_field for m in result.mappings}
    assert mapped == {"name": "name", "industry": "industry", "rating": None}


@pytest.mark.parametrize(
    "content",
    [
        b"{not json",
        b'{"name": "single object"}',
        b"[]",
        b'[1, 2, 3]',
    ],
)
def test_malformed_json_raises_parse_error(content):
    with pytest.raises(PreviewParseError):
        build_import_preview(content, FileType.JSON, "host_employers")


def test_empty_csv_raises_parse_error():
    with pytest.raises(PreviewParseError):
        build_import_preview(b"", FileType.CSV, "apprentices")


def test_non_utf8_csv_raises_parse_error():
    with pytest.raises(PreviewParseError):
        build_import_preview(b"Name\n\xff\xfe\xfa\n", FileType.CSV, "apprentices")


def test_spreadsheet_preview_is_unsupported():
    with pytest.raises(UnsupportedPreviewFormatError):
        build_import_preview(b"PK\x03\x04", FileType.XLSX, "apprentices")


class TestPreviewEndpoint:
    def test_returns_preview_and_mappings_together(self, client):
        response = client.post(
            "/import-preview",
            files={"file": ("people.csv", _csv(["Email,Trade", "a@example.com,Carpentry"]), "text/csv")},
            data={"entity_type": "apprentices"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["file_type"] == "csv"
        assert body["preview"]["columns"] == ["Email", "Trade"]
        assert body["mappings"][0] == {
            "source_column": "Email",
            "target_field": "email",
            "required": True,
            "transform": None,
        }

    def test_parse_failure_is_422(self, client):
        response = client.post(
            "/import-preview",
            files={"file": ("people.json", b"{oops", "application/json")},
            data={"entity_type": "apprentices"},
        )
        assert response.status_code == 422
        assert "Could not parse" in response.json()["detail"]

    def test_spreadsheet_is_415(self, client):
        response = client.post(
            "/import-preview",
            files={"file": ("people.xlsx", b"PK\x03\x04", "application/octet-stream")},
            data={"entity_type": "apprentices"},
        )
        assert response.status_code == 415

    def test_unknown_entity_is_400(self, client):
        response = client.post(
            "/import-preview",
            files={"file": ("people.csv", b"Email\na@example.com\n", "text/csv")},
            data={"entity_type": "spaceships"},
        )
        assert response.status_code == 400

    def test_oversized_upload_is_413(self, client, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "upload_max_file_size_mb", 0)
        response = client.post(
            "/import-preview",
            files={"file": ("people.csv", b"Email\na@example.com\n", "text/csv")},
            data={"entity_type": "apprentices"},
        )
        assert response.status_code == 413


def test_auto_map_endpoint_keeps_existing_mapping(client):
    response = client.post(
        "/auto-map",
        json={
            "entity_type": "apprentices",
            "columns": ["Email", "Phone"],
            "mappings": [{"source_column": "Email", "target_field": "notes"}],
        },
    )
    assert response.status_code == 200
    mappings = {m["source_column"]: m["target_field"] for m in response.json()["mappings"]}
    assert mappings == {"Email": "notes", "Phone": "phone"}
