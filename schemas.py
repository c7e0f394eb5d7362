from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Bounds of a SQLite INTEGER primary key
MIN_RECORD_ID = -(2**63)
MAX_RECORD_ID = 2**63 - 1


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    """Base for every wire model: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# --- Request bodies ---
# Required fields are Optional here on purpose: presence is checked by the
# owning component so a missing field yields the documented 400 message.


class UserCreate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class JobCreate(CamelModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    type: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None


class ApplicationCreate(CamelModel):
    job_id: Optional[int] = Field(None, ge=MIN_RECORD_ID, le=MAX_RECORD_ID)
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    qualification: Optional[str] = None
    resume_file_name: Optional[str] = None
    interview_preference: Optional[str] = None
    message: Optional[str] = None


# --- Records ---


class User(CamelModel):
    id: int
    name: str
    email: str
    password: str
    role: str


class Job(CamelModel):
    id: int
    title: str
    company: str
    location: str
    type: str
    salary: str
    description: Optional[str] = ""
    requirements: Optional[str] = ""
    posted_date: Optional[UtcDatetime] = None


class Application(CamelModel):
    id: int
    job_id: int
    name: str
    email: str
    phone: str
    location: str
    qualification: str
    resume_file_name: str
    interview_preference: str
    message: Optional[str] = ""
    invite_sent: bool
    invite_sent_date: Optional[UtcDatetime] = None
    applied_date: Optional[UtcDatetime] = None


class Notification(CamelModel):
    id: int
    user_id: int
    job_id: int
    application_id: Optional[int] = None
    type: str
    title: str
    message: str
    job_title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    job_type: Optional[str] = None
    read: bool
    created_at: Optional[UtcDatetime] = None


# --- Response envelopes ---


class ActionResponse(CamelModel):
    success: bool
    message: Optional[str] = None


class LoginResponse(ActionResponse):
    user: User


class JobCreatedResponse(ActionResponse):
    job: Job
    notified_count: int


class ApplicationSubmittedResponse(ActionResponse):
    application: Application


class InviteResponse(ActionResponse):
    notification_created: Optional[bool] = None
    user_notified: Optional[str] = None
    warning: Optional[str] = None


class UnreadCount(BaseModel):
    count: int

