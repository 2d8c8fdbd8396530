"""
Entity registry endpoints: which entity types exist and which fields they accept.
"""
from fastapi import APIRouter, HTTPException

from app.api.schemas.shared import EntityFieldInfo, EntityFieldsResponse, EntityListResponse, EntityTypeInfo
from app.domain.entities.registry import EntityDefinition, get_entity_definition, list_entity_types
from app.domain.errors import UnknownEntityTypeError

router = APIRouter(tags=["entities"])


def to_entity_info(definition: EntityDefinition) -> EntityTypeInfo:
    return EntityTypeInfo(
        entity_type=definition.entity_type.value,
        label=definition.label,
        natural_key=list(definition.natural_key),
        fields=[
            EntityFieldInfo(label=field.label, target_field=field.target_field, required=field.required)
            for field in definition.fields
        ],
    )


@router.get("/entities", response_model=EntityListResponse)
async def list_entities_endpoint():
    return EntityListResponse(
        success=True,
        entities=[to_entity_info(definition) for definition in list_entity_types()],
    )


@router.get("/entities/{entity_type}/fields", response_model=EntityFieldsResponse)
async def get_entity_fields_endpoint(entity_type: str):
    try:
        definition = get_entity_definition(entity_type)
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return EntityFieldsResponse(success=True, entity=to_entity_info(definition))
