"""
Static catalog of importable/exportable fields per business entity type.

The catalog is built at import time and never mutated. Every component that
needs to know "which fields does this entity have" resolves them through
``get_entity_definition`` rather than branching on the entity identifier.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple, Union

from app.domain.errors import UnknownEntityTypeError


class EntityType(str, Enum):
    APPRENTICES = "apprentices"
    HOST_EMPLOYERS = "host_employers"
    TRAINING_CONTRACTS = "training_contracts"
    PLACEMENTS = "placements"
    DOCUMENTS = "documents"
    COMPLIANCE_RECORDS = "compliance_records"
    TIMESHEETS = "timesheets"
    USERS = "users"
    TASKS = "tasks"
    QUALIFICATIONS = "qualifications"
    UNITS_OF_COMPETENCY = "units_of_competency"
    AWARD_RATES = "award_rates"
    ENTERPRISE_AGREEMENT_RATES = "enterprise_agreement_rates"
    CUSTOM_PAY_RATES = "custom_pay_rates"


@dataclass(frozen=True)
class EntityFieldSpec:
    label: str
    target_field: str
    required: bool = False


@dataclass(frozen=True)
class EntityDefinition:
    entity_type: EntityType
    label: str
    fields: Tuple[EntityFieldSpec, ...]
    natural_key: Tuple[str, ...]

    @property
    def field_names(self) -> List[str]:
        return [field.target_field for field in self.fields]


def _f(label: str, target_field: str, required: bool = False) -> EntityFieldSpec:
    return EntityFieldSpec(label=label, target_field=target_field, required=required)


_DEFINITIONS: Tuple[EntityDefinition, ...] = (
    EntityDefinition(
        EntityType.APPRENTICES,
        "Apprentices",
        (
            _f("First Name", "first_name", True),
            _f("Last Name", "last_name", True),
            _f("Email", "email", True),
            _f("Phone", "phone"),
            _f("Date of Birth", "date_of_birth"),
            _f("Trade", "trade", True),
            _f("Status", "status"),
            _f("Progress", "progress"),
            _f("Start Date", "start_date"),
            _f("End Date", "end_date"),
            _f("Notes", "notes"),
        ),
        ("email",),
    ),
    EntityDefinition(
        EntityType.HOST_EMPLOYERS,
        "Host Employers",
        (
            _f("Name", "name", True),
            _f("Industry", "industry", True),
            _f("Contact Person", "contact_person", True),
            _f("Email", "email", True),
            _f("Phone", "phone"),
            _f("Address", "address"),
            _f("Status", "status"),
            _f("Safety Rating", "safety_rating"),
            _f("Compliance Status", "compliance_status"),
            _f("Notes", "notes"),
        ),
        ("name",),
    ),
    EntityDefinition(
        EntityType.TRAINING_CONTRACTS,
        "Training Contracts",
        (
            _f("Contract Number", "contract_number", True),
            _f("Apprentice ID", "apprentice_id", True),
            _f("Start Date", "start_date", True),
            _f("End Date", "end_date", True),
            _f("Status", "status"),
            _f("Document URL", "document_url"),
            _f("Approved By", "approved_by"),
            _f("Approval Date", "approval_date"),
        ),
        ("contract_number",),
    ),
    EntityDefinition(
        EntityType.PLACEMENTS,
        "Placements",
        (
            _f("Apprentice ID", "apprentice_id", True),
            _f("Host Employer ID", "host_employer_id", True),
            _f("Start Date", "start_date", True),
            _f("End Date", "end_date"),
            _f("Status", "status"),
            _f("Position", "position", True),
            _f("Supervisor", "supervisor"),
            _f("Supervisor Contact", "supervisor_contact"),
            _f("Notes", "notes"),
        ),
        ("apprentice_id", "host_employer_id", "start_date"),
    ),
    EntityDefinition(
        EntityType.DOCUMENTS,
        "Documents",
        (
            _f("Title", "title", True),
            _f("Type", "type", True),
            _f("URL", "url", True),
            _f("Related To", "related_to", True),
            _f("Related ID", "related_id", True),
            _f("Expiry Date", "expiry_date"),
            _f("Status", "status"),
        ),
        ("url",),
    ),
    EntityDefinition(
        EntityType.COMPLIANCE_RECORDS,
        "Compliance Records",
        (
            _f("Type", "type", True),
            _f("Related To", "related_to", True),
            _f("Related ID", "related_id", True),
            _f("Status", "status", True),
            _f("Due Date", "due_date"),
            _f("Completion Date", "completion_date"),
            _f("Notes", "notes"),
        ),
        ("type", "related_to", "related_id"),
    ),
    EntityDefinition(
        EntityType.TIMESHEETS,
        "Timesheets",
        (
            _f("Apprentice ID", "apprentice_id", True),
            _f("Placement ID", "placement_id", True),
            _f("Week Starting", "week_starting", True),
            _f("Status", "status"),
            _f("Total Hours", "total_hours", True),
            _f("Notes", "notes"),
        ),
        ("apprentice_id", "week_starting"),
    ),
    EntityDefinition(
        EntityType.USERS,
        "Users",
        (
            _f("Username", "username", True),
            _f("Email", "email", True),
            _f("First Name", "first_name"),
            _f("Last Name", "last_name"),
            _f("Role", "role"),
        ),
        ("email",),
    ),
    EntityDefinition(
        EntityType.TASKS,
        "Tasks",
        (
            _f("Title", "title", True),
            _f("Description", "description"),
            _f("Assigned To", "assigned_to"),
            _f("Due Date", "due_date"),
            _f("Priority", "priority"),
            _f("Status", "status"),
            _f("Related To", "related_to"),
            _f("Related ID", "related_id"),
        ),
        ("title",),
    ),
    EntityDefinition(
        EntityType.QUALIFICATIONS,
        "Qualifications",
        (
            _f("Code", "code", True),
            _f("Title", "title", True),
            _f("Level", "level"),
            _f("Status", "status"),
            _f("Release Date", "release_date"),
            _f("Training Package Code", "training_package_code"),
            _f("Training Package Title", "training_package_title"),
        ),
        ("code",),
    ),
    EntityDefinition(
        EntityType.UNITS_OF_COMPETENCY,
        "Units of Competency",
        (
            _f("Code", "code", True),
            _f("Title", "title", True),
            _f("Qualification Code", "qualification_code"),
            _f("Nominal Hours", "nominal_hours"),
            _f("Status", "status"),
        ),
        ("code",),
    ),
    EntityDefinition(
        EntityType.AWARD_RATES,
        "Award Rates",
        (
            _f("Award Code", "award_code", True),
            _f("Classification", "classification", True),
            _f("Level", "level"),
            _f("Hourly Rate", "hourly_rate", True),
            _f("Weekly Rate", "weekly_rate"),
            _f("Annual Rate", "annual_rate"),
            _f("Effective From", "effective_from", True),
            _f("Effective To", "effective_to"),
            _f("Apprentice Year", "apprentice_year"),
            _f("Is Adult", "is_adult"),
        ),
        ("award_code", "classification", "effective_from"),
    ),
    EntityDefinition(
        EntityType.ENTERPRISE_AGREEMENT_RATES,
        "Enterprise Agreement Rates",
        (
            _f("Agreement Code", "agreement_code", True),
            _f("Classification", "classification", True),
            _f("Level", "level"),
            _f("Hourly Rate", "hourly_rate", True),
            _f("Weekly Rate", "weekly_rate"),
            _f("Effective From", "effective_from", True),
            _f("Effective To", "effective_to"),
            _f("Is Apprentice", "is_apprentice"),
            _f("Apprentice Year", "apprentice_year"),
        ),
        ("agreement_code", "classification", "effective_from"),
    ),
    EntityDefinition(
        EntityType.CUSTOM_PAY_RATES,
        "Custom Pay Rates",
        (
            _f("Name", "name", True),
            _f("Hourly Rate", "hourly_rate", True),
            _f("Weekly Rate", "weekly_rate"),
            _f("Annual Rate", "annual_rate"),
            _f("Effective From", "effective_from", True),
            _f("Effective To", "effective_to"),
            _f("Notes", "notes"),
        ),
        ("name", "effective_from"),
    ),
)

ENTITY_REGISTRY: Dict[EntityType, EntityDefinition] = {
    definition.entity_type: definition for definition in _DEFINITIONS
}


def resolve_entity_type(value: Union[str, EntityType]) -> EntityType:
    """Coerce an identifier to ``EntityType`` or raise ``UnknownEntityTypeError``."""
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType((value or "").strip())
    except ValueError:
        raise UnknownEntityTypeError(value)


def get_entity_definition(entity_type: Union[str, EntityType]) -> EntityDefinition:
    return ENTITY_REGISTRY[resolve_entity_type(entity_type)]


def get_entity_fields(entity_type: Union[str, EntityType]) -> Tuple[EntityFieldSpec, ...]:
    return get_entity_definition(entity_type).fields


def list_entity_types() -> List[EntityDefinition]:
    return list(_DEFINITIONS)
