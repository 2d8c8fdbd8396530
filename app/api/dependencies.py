"""
Shared dependencies, state, and utility functions for the API.

Routers receive the entity store and extraction service through
``Depends`` so tests can swap them with ``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import HTTPException

from app.core.config import settings
from app.domain.agreements.extraction import AnthropicRateExtractor, RateExtractionService
from app.domain.agreements.workflow import DraftRegistry
from app.domain.entities.registry import EntityDefinition, get_entity_definition
from app.domain.entities.store import EntityStore, SqlEntityStore
from app.domain.errors import UnknownEntityTypeError
from app.domain.file_types import FileType, detect_file_type

# Open agreement drafts (in production, use Redis or database)
draft_registry = DraftRegistry()


def get_entity_store() -> EntityStore:
    return SqlEntityStore()


def get_extraction_service() -> RateExtractionService:
    return AnthropicRateExtractor()


def get_draft_registry() -> DraftRegistry:
    return draft_registry


def ensure_within_size_limit(file_size: int, file_name: str) -> None:
    """Raise an HTTPException if a file exceeds the configured upload limit."""
    if file_size > settings.upload_max_file_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=(
                f"{file_name} is too large. "
                f"Maximum allowed upload size is {settings.upload_max_file_size_mb}MB."
            ),
        )


def resolve_file_type(declared: Optional[str], filename: Optional[str]) -> FileType:
    """
    Use the declared file type, falling back to the filename extension.

    Raises:
    - HTTPException 415: if neither identifies csv, json or xlsx
    """
    if declared:
        try:
            return FileType(declared.strip().lower())
        except ValueError:
            raise HTTPException(status_code=415, detail=f"Unsupported file type '{declared}'")
    detected = detect_file_type(filename)
    if detected is None:
        raise HTTPException(status_code=415, detail="Unsupported file type")
    return detected


def resolve_entity(entity_type: str) -> EntityDefinition:
    """Look up an entity type from a request body/form, 400 when unknown."""
    try:
        return get_entity_definition(entity_type)
    except UnknownEntityTypeError as e:
        raise HTTPException(status_code=400, detail=str(e))
