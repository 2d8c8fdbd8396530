import pytest

from app.api.schemas.shared import ColumnMapping
from app.domain.entities.registry import get_entity_definition, get_entity_fields
from app.domain.errors import MappingValidationError, RowError
from app.domain.imports.mapper import infer_mappings, map_record, normalize_name
from app.domain.imports.mapping_editor import MappingEditor, validate_mappings, validate_submission


APPRENTICE_FIELDS = get_entity_fields("apprentices")


def _by_column(mappings):
    return {m.source_column: m for m in mappings}


def test_normalize_name_strips_separators_and_case():
    assert normalize_name(" First_Name ") == "firstname"
    assert normalize_name("date-of birth") == "dateofbirth"


def test_infer_mappings_matches_label_and_key_variants():
    columns = ["first name", "LAST_NAME", "E-mail", "Date Of Birth", "Favourite Colour"]
    mappings = _by_column(infer_mappings(columns, APPRENTICE_FIELDS))

    assert mappings["first name"].target_field == "first_name"
    assert mappings["LAST_NAME"].target_field == "last_name"
    assert mappings["E-mail"].target_field == "email"
    assert mappings["Date Of Birth"].target_field == "date_of_birth"
    assert mappings["Favourite Colour"].target_field is None


def test_infer_mappings_is_exact_match_only():
    mappings = infer_mappings(["Emial", "First"], APPRENTICE_FIELDS)
    assert all(m.target_field is None for m in mappings)


def test_one_mapping_per_column_in_column_order():
    columns = ["Notes", "Email", "Unknown"]
    mappings = infer_mappings(columns, APPRENTICE_FIELDS)
    assert [m.source_column for m in mappings] == columns


def test_required_only_for_universally_required_fields():
    mappings = _by_column(infer_mappings(["Email", "Trade", "Phone", "First Name"], APPRENTICE_FIELDS))

    assert mappings["Email"].required is True
    assert mappings["First Name"].required is True
    # Required in the registry, but not universally required
    assert mappings["Trade"].required is False
    assert mappings["Phone"].required is False


def test_rerun_never_overwrites_mapped_columns():
    existing = [
        ColumnMapping(source_column="Email", target_field="notes"),
        ColumnMapping(source_column="Phone", transform="phone"),
    ]
    mappings = _by_column(infer_mappings(["Email", "Phone"], APPRENTICE_FIELDS, existing))

    assert mappings["Email"].target_field == "notes"
    assert mappings["Phone"].target_field == "phone"
    assert mappings["Phone"].transform == "phone"


def test_infer_mappings_is_idempotent():
    columns = ["First Name", "Email", "Mystery"]
    first = infer_mappings(columns, APPRENTICE_FIELDS)
    assert infer_mappings(columns, APPRENTICE_FIELDS, first) == first


def test_validate_mappings_rejects_nothing_mapped():
    with pytest.raises(MappingValidationError):
        validate_mappings([ColumnMapping(source_column="a"), ColumnMapping(source_column="b")])


def test_validate_mappings_rejects_required_without_target():
    mappings = [
        ColumnMapping(source_column="Email", target_field="email", required=True),
        ColumnMapping(source_column="Name", required=True),
    ]
    with pytest.raises(MappingValidationError, match="Name"):
        validate_mappings(mappings)


def test_validate_submission_requires_key_fields():
    definition = get_entity_definition("apprentices")
    mappings = [ColumnMapping(source_column="First", target_field="first_name")]
    with pytest.raises(MappingValidationError, match="email"):
        validate_submission(mappings, definition)


def test_validate_submission_rejects_fields_of_other_entities():
    definition = get_entity_definition("apprentices")
    mappings = [
        ColumnMapping(source_column="Email", target_field="email"),
        ColumnMapping(source_column="Industry", target_field="industry"),
    ]
    with pytest.raises(MappingValidationError, match="industry"):
        validate_submission(mappings, definition)


def test_map_record_applies_transform_before_assignment():
    mappings = [
        ColumnMapping(source_column="Mail", target_field="email", transform="trim|lower"),
        ColumnMapping(source_column="Ignored"),
    ]
    payload = map_record({"Mail": "  Jane@Example.COM ", "Ignored": "x"}, mappings)
    assert payload == {"email": "jane@example.com"}


def test_map_record_fails_row_on_blank_required_value():
    mappings = [ColumnMapping(source_column="Email", target_field="email", required=True)]
    with pytest.raises(RowError) as exc_info:
        map_record({"Email": "   "}, mappings, row_number=4)
    assert exc_info.value.describe().startswith("Row 4:")


class TestMappingEditor:
    def test_starts_from_inferred_mapping(self):
        editor = MappingEditor("apprentices", ["Email", "Shoe Size"])
        assert editor.mappings[0].target_field == "email"
        assert editor.unmapped_columns() == ["Shoe Size"]

    def test_edits_and_auto_map_remaining(self):
        editor = MappingEditor("apprentices", ["Email", "Mobile", "Phone"])
        editor.set_target("Mobile", "phone")
        editor.set_transform("Mobile", "phone")
        editor.skip("Phone")
        editor.auto_map_remaining()

        mappings = _by_column(editor.mappings)
        assert mappings["Mobile"].target_field == "phone"
        assert mappings["Mobile"].transform == "phone"
        # Skipped columns are unmapped again, so auto-map reclaims them
        assert mappings["Phone"].target_field == "phone"

    def test_set_target_rejects_unknown_field(self):
        editor = MappingEditor("apprentices", ["Email"])
        with pytest.raises(MappingValidationError):
            editor.set_target("Email", "industry")

    def test_changing_entity_type_resets_every_decision(self):
        editor = MappingEditor("apprentices", ["Email", "Name"])
        editor.set_target("Name", "notes")
        editor.set_transform("Email", "lower")

        editor.select_entity_type("host_employers")

        mappings = _by_column(editor.mappings)
        assert editor.entity_type.value == "host_employers"
        assert mappings["Name"].target_field == "name"
        assert mappings["Email"].transform is None

    def test_confirm_freezes_mapping(self):
        editor = MappingEditor("apprentices", ["Email", "First Name"])
        confirmed = editor.confirm()

        assert isinstance(confirmed, tuple)
        assert editor.is_confirmed
        with pytest.raises(MappingValidationError):
            editor.set_required("Email", False)
        with pytest.raises(Exception):
            confirmed[0].required = False

    def test_confirm_validates(self):
        editor = MappingEditor("apprentices", ["Unknown"])
        with pytest.raises(MappingValidationError):
            editor.confirm()
        assert not editor.is_confirmed
