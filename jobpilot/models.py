"""Data models for job application tracking."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Identity and ownership stay as the server sent them.
READ_ONLY_FIELDS = frozenset({"id", "owner"})


class WireModel(BaseModel):
    """Base for payloads exchanged with the backend in camelCase."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", validate_assignment=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AuthUser(WireModel):
    """The user a session token resolves to."""

    id: int
    email: str
    name: Optional[str] = None


class Owner(WireModel):
    """Reference to the user an application belongs to."""

    id: int


class InterviewInfo(WireModel):
    """Interview snapshot attached to an application."""

    application_id: Optional[int] = Field(default=None, alias="applicationId")
    date: Optional[str] = None
    interviewer: Optional[str] = None
    prep_notes: Optional[str] = Field(default=None, alias="prepNotes")


class Application(WireModel):
    """A tracked job application as served by /jobs."""

    id: int
    title: Optional[str] = None
    company: Optional[str] = None
    date_applied: Optional[str] = Field(default=None, alias="dateApplied")
    status: Optional[str] = None
    notes: Optional[str] = None
    job_description: Optional[str] = Field(default=None, alias="jobDescription")
    interview: Optional[InterviewInfo] = None
    owner: Optional[Owner] = None

    def apply_fields(self, fields: dict[str, Any]) -> list[str]:
        """Overwrite attributes from a partial payload keyed by wire or attribute name.

        Values are validated as they are assigned. Keys whose value does not
        fit the field are left untouched and returned.
        """
        aliases = {
            info.alias: name
            for name, info in type(self).model_fields.items()
            if info.alias
        }
        rejected = []
        for key, value in fields.items():
            name = aliases.get(key, key)
            if name in READ_ONLY_FIELDS:
                continue
            try:
                setattr(self, name, value)
            except ValidationError:
                rejected.append(key)
        return rejected

    def owned_by(self, user_id: int) -> bool:
        return self.owner is not None and self.owner.id == user_id


class LookupStatus(str, Enum):
    """Outcome of a single-application interview lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class InterviewLookup(BaseModel):
    """Tagged result of fetching the interview for one application."""

    status: LookupStatus
    interview: Optional[InterviewInfo] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND
