"""
Request models for the lead workflow API.

Fields accept both snake_case and the camelCase names the browser client
sends (contactComplete, contactMethod, ...). Contact method and notes are
validated by the engine so that the API returns workflow error codes for
them.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lead_workflow.models import NewLead, ProgressUpdate


class _RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


class LeadCreateRequest(_RequestModel):
    """New lead intake."""
    name: str = Field(..., min_length=1, max_length=200)
    company: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    source: Optional[str] = Field(None, max_length=100)
    status: str = Field("new", max_length=50)
    notes: Optional[str] = None
    value: Optional[float] = Field(None, ge=0)

    def to_new_lead(self) -> NewLead:
        return NewLead(
            name=self.name,
            company=self.company,
            email=self.email,
            phone=self.phone,
            source=self.source,
            status=self.status,
            notes=self.notes,
            value=self.value,
        )


class ClaimRequest(_RequestModel):
    """Optional notes recorded with the claim."""
    notes: Optional[str] = None


class ProgressUpdateRequest(_RequestModel):
    """Partial progress update. Omitted fields are left unchanged."""
    contact_complete: Optional[bool] = None
    items_confirmed: Optional[bool] = None
    submitted_to_design: Optional[bool] = None

    def to_update(self) -> ProgressUpdate:
        return ProgressUpdate(
            contact_complete=self.contact_complete,
            items_confirmed=self.items_confirmed,
            submitted_to_design=self.submitted_to_design,
        )


class ContactLogRequest(_RequestModel):
    contact_method: str = Field(..., max_length=50)
    notes: Optional[str] = None


class UserCreateRequest(_RequestModel):
    username: str = Field(..., min_length=1, max_length=100)
    role: str = Field(..., max_length=30)
    full_name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    permissions: Optional[List[str]] = None


class UserPermissionsRequest(_RequestModel):
    """Replace a user's permission override. Null or [] restores role defaults."""
    permissions: Optional[List[str]] = None
