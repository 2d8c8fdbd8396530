import pytest

from app.domain.entities.registry import (
    ENTITY_REGISTRY,
    EntityType,
    get_entity_definition,
    get_entity_fields,
    list_entity_types,
    resolve_entity_type,
)
from app.domain.errors import UnknownEntityTypeError


def test_every_entity_type_has_a_definition():
    assert set(ENTITY_REGISTRY) == set(EntityType)
    assert [d.entity_type for d in list_entity_types()] == list(EntityType)


def test_natural_key_fields_are_registered_fields():
    for definition in list_entity_types():
        assert definition.natural_key
        for key in definition.natural_key:
            assert key in definition.field_names, (definition.entity_type, key)


def test_apprentice_fields_keep_registry_order():
    fields = get_entity_fields("apprentices")
    assert [f.target_field for f in fields[:3]] == ["first_name", "last_name", "email"]
    assert fields[0].label == "First Name"
    assert fields[0].required is True


def test_field_keys_are_unique_per_entity():
    for definition in list_entity_types():
        assert len(definition.field_names) == len(set(definition.field_names))


def test_resolve_entity_type_accepts_identifier_with_whitespace():
    assert resolve_entity_type(" host_employers ") is EntityType.HOST_EMPLOYERS


def test_unknown_entity_type_raises():
    with pytest.raises(UnknownEntityTypeError) as exc_info:
        get_entity_fields("spaceships")
    assert exc_info.value.entity_type == "spaceships"
