import logging

from app.console import build_parser
from app.core.logging_config import JobContextFilter, job_log_context


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Data Exchange API", "version": "1.0.0"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"


def test_log_records_carry_job_context():
    record = logging.LogRecord("app", logging.INFO, __file__, 1, "row processed", None, None)
    job_filter = JobContextFilter()

    with job_log_context("import", "abc123"):
        job_filter.filter(record)
    assert record.job == "import:abc123"

    job_filter.filter(record)
    assert record.job == "-"


def test_list_entities(client):
    response = client.get("/entities")
    assert response.status_code == 200
    entities = {e["entity_type"]: e for e in response.json()["entities"]}
    assert "apprentices" in entities
    assert entities["apprentices"]["natural_key"] == ["email"]


def test_entity_fields(client):
    response = client.get("/entities/apprentices/fields")
    assert response.status_code == 200
    fields = response.json()["entity"]["fields"]
    assert fields[0] == {"label": "First Name", "target_field": "first_name", "required": True}


def test_unknown_entity_fields_is_404(client):
    assert client.get("/entities/spaceships/fields").status_code == 404


def test_console_parser():
    args = build_parser().parse_args(
        ["--url", "http://api.test", "export", "--entity", "apprentices", "--format", "json",
         "--filter", "status=active"]
    )
    assert args.url == "http://api.test"
    assert args.command == "export"
    assert args.format == "json"
    assert args.filter_expression == "status=active"
