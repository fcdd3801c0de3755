"""
Candidate schemas and the target field catalog.

The catalog is the fixed list of fields a candidate record carries.
Field ids double as the column names of the candidates table, which is
why several of them contain spaces.
"""

from pydantic import ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from models.base import BaseSchema


class FieldDefinition(BaseSchema):
    """One entry of the target field catalog."""

    id: str = Field(..., description="Field key (candidates table column)")
    label: str = Field(..., description="Human name shown in templates and prompts")
    required: bool = Field(default=False, description="Must be mapped before review")
    auto_populate: bool = Field(
        default=False,
        description="Filled by the system, never by column mapping"
    )


# ===================
# CATALOG
# ===================

NAME_FIELD = "Name"
EMAIL_FIELD = "Email"
DATA_SOURCE_FIELD = "Data Source"
LOADED_DATE_FIELD = "When Data is loaded in database"
UPDATED_DATE_FIELD = "When was the profile updated lastly"

DEFAULT_FILE_SOURCE = "File Upload"
MANUAL_ENTRY_SOURCE = "Manual Entry"

TARGET_FIELD_CATALOG: tuple[FieldDefinition, ...] = (
    FieldDefinition(id="Name", label="Full Name", required=True),
    FieldDefinition(id="Phone", label="Phone Number", required=True),
    FieldDefinition(id="Email", label="Email Address", required=True),
    FieldDefinition(id="Location", label="Location", required=True),
    FieldDefinition(id="Tech", label="Technology Stack", required=True),
    FieldDefinition(id="Number of Experience", label="Years of Experience", required=True),
    FieldDefinition(id=DATA_SOURCE_FIELD, label="Source of Data", auto_populate=True),
    FieldDefinition(id=LOADED_DATE_FIELD, label="Database Upload Date", auto_populate=True),
    FieldDefinition(id="Currency Sal", label="Salary (Currency)"),
    FieldDefinition(id="Which Company working", label="Current Company"),
    FieldDefinition(id=UPDATED_DATE_FIELD, label="Last Profile Update", auto_populate=True),
)

# A transformed candidate: every catalog id -> string value
CandidateRecord = dict[str, str]


def field_ids(catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG) -> list[str]:
    """All catalog ids in catalog order."""
    return [f.id for f in catalog]


def mappable_fields(
    catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG
) -> list[FieldDefinition]:
    """Fields a spreadsheet column may be mapped to."""
    return [f for f in catalog if not f.auto_populate]


def required_field_ids(
    catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG
) -> list[str]:
    """Ids of required fields in catalog order."""
    return [f.id for f in catalog if f.required]


def empty_candidate(
    catalog: tuple[FieldDefinition, ...] = TARGET_FIELD_CATALOG
) -> CandidateRecord:
    """Candidate record with every field set to empty string."""
    return {f.id: "" for f in catalog}


# ===================
# API SCHEMAS
# ===================

class CandidateSchema(BaseSchema):
    """Base for candidate payloads; accepts table column names or snake_case."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        populate_by_name=True
    )


class CandidateCreate(CandidateSchema):
    """
    Manually entered candidate.

    Required: Name, Email
    """

    name: str = Field(..., min_length=1, alias="Name")
    phone: str = Field("", alias="Phone")
    email: str = Field(..., min_length=1, alias="Email")
    location: str = Field("", alias="Location")
    tech: str = Field("", alias="Tech")
    experience: str = Field("", alias="Number of Experience")
    salary: str = Field("", alias="Currency Sal")
    company: str = Field("", alias="Which Company working")

    def to_record(self) -> dict:
        """Serialize with table column names."""
        return self.model_dump(by_alias=True)


class CandidateUpdate(CandidateSchema):
    """
    Update existing candidate.

    All fields optional - only provided fields are updated.
    Name and Email may not be blanked.
    """

    name: Optional[str] = Field(None, alias="Name")
    phone: Optional[str] = Field(None, alias="Phone")
    email: Optional[str] = Field(None, alias="Email")
    location: Optional[str] = Field(None, alias="Location")
    tech: Optional[str] = Field(None, alias="Tech")
    experience: Optional[str] = Field(None, alias="Number of Experience")
    salary: Optional[str] = Field(None, alias="Currency Sal")
    company: Optional[str] = Field(None, alias="Which Company working")

    @field_validator("name", "email")
    @classmethod
    def identity_not_blank(cls, v: Optional[str]) -> Optional[str]:
        """Name and Email are required fields."""
        if v is not None and not v.strip():
            raise ValueError("Name and Email are required fields")
        return v

    def to_record(self) -> dict:
        """Serialize only the provided fields with table column names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CandidateResponse(CandidateSchema):
    """Candidate row as stored."""

    id: str = Field(..., description="Candidate UUID")
    user_id: Optional[str] = Field(None, description="Owner of the record")
    created_at: Optional[datetime] = None

    name: str = Field(..., alias="Name")
    phone: Optional[str] = Field(None, alias="Phone")
    email: Optional[str] = Field(None, alias="Email")
    location: Optional[str] = Field(None, alias="Location")
    tech: Optional[str] = Field(None, alias="Tech")
    experience: Optional[str] = Field(None, alias="Number of Experience")
    data_source: Optional[str] = Field(None, alias=DATA_SOURCE_FIELD)
    loaded_at: Optional[str] = Field(None, alias=LOADED_DATE_FIELD)
    salary: Optional[str] = Field(None, alias="Currency Sal")
    company: Optional[str] = Field(None, alias="Which Company working")
    profile_updated_at: Optional[str] = Field(None, alias=UPDATED_DATE_FIELD)

    def to_record(self) -> CandidateRecord:
        """Catalog fields only, None rendered as empty string."""
        dumped = self.model_dump(by_alias=True)
        return {fid: dumped.get(fid) or "" for fid in field_ids()}


class CandidateListResponse(BaseSchema):
    """List of candidates with pagination."""

    data: list[CandidateResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class BulkDeleteRequest(BaseSchema):
    """Delete several candidates at once."""

    ids: list[str] = Field(..., min_length=1)


class BulkDeleteResponse(BaseSchema):
    """Result of a bulk delete."""

    deleted: int
    message: str
