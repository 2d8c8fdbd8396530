import pytest

from app.core.config import settings
from app.domain.imports.transforms import TransformError, apply_transform, parse_transform_tokens
from app.utils.date import parse_flexible_date


@pytest.mark.parametrize(
    "value, transform, expected",
    [
        ("  Electrical ", "trim", "Electrical"),
        ("ACTIVE", "lower", "active"),
        ("nsw", "upper", "NSW"),
        ("jane o'neil", "title", "Jane O'Neil"),
        ("$1,250.50", "number", 1250.5),
        ("42", "integer", 42),
        ("Yes", "boolean", True),
        ("n", "boolean", False),
        ("(02) 9555-1234", "phone", "0295551234"),
        ("+61 412 345 678", "phone", "+61412345678"),
        ("2024-03-01", "date", "2024-03-01"),
        ("anything", "none", "anything"),
        ("  MiXeD ", "trim|lower", "mixed"),
    ],
)
def test_transform_tokens(value, transform, expected):
    assert apply_transform(value, transform) == expected


def test_no_transform_returns_value_unchanged():
    assert apply_transform(" raw ", None) == " raw "
    assert apply_transform(" raw ", "") == " raw "


def test_blank_values_pass_through_every_token():
    assert apply_transform("", "date|integer") == ""
    assert apply_transform(None, "number") is None


def test_unknown_token_is_an_error():
    with pytest.raises(TransformError, match="Unknown transform 'reverse'"):
        apply_transform("abc", "trim|reverse")


@pytest.mark.parametrize(
    "value, transform",
    [("soon", "date"), ("12 apples", "number"), ("4.5", "integer"), ("maybe", "boolean"), ("123", "phone")],
)
def test_unconvertible_values_raise(value, transform):
    with pytest.raises(TransformError):
        apply_transform(value, transform)


def test_parse_transform_tokens_normalizes_case_and_spacing():
    assert parse_transform_tokens(" Trim | LOWER ||") == ["trim", "lower"]


def test_ambiguous_numeric_dates_follow_dayfirst_setting(monkeypatch):
    monkeypatch.setattr(settings, "date_default_dayfirst", True)
    assert parse_flexible_date("03/04/2024").isoformat() == "2024-04-03"

    monkeypatch.setattr(settings, "date_default_dayfirst", False)
    assert parse_flexible_date("03/04/2024").isoformat() == "2024-03-04"


def test_unambiguous_numeric_dates_ignore_dayfirst_setting(monkeypatch):
    monkeypatch.setattr(settings, "date_default_dayfirst", False)
    assert parse_flexible_date("25/12/2023").isoformat() == "2023-12-25"
