# counsel_intake/models/schemas.py
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; readable from ORM rows."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- Links ----------
class LinkCreate(CamelModel):
    intake_type: str = Field(
        ...,
        min_length=1,
        max_length=40,
        validation_alias=AliasChoices("intakeType", "caseType", "intake_type"),
    )


class LinkOut(CamelModel):
    link_id: str
    case_type: str
    status: str
    created_at: datetime
    expires_at: datetime
    client_id: Optional[int] = None
    url: Optional[str] = None


class LinkCreated(CamelModel):
    success: bool = True
    message: str
    link_id: str
    url: str
    expires_at: datetime


# ---------- Sessions ----------
class MessageOut(CamelModel):
    role: str
    content: str
    kind: str
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime


class DocumentOut(CamelModel):
    id: int
    name: str
    url: str
    type: str
    category: str
    content_type: str = ""
    size_bytes: int = 0
    uploaded_at: datetime


class SessionSummary(CamelModel):
    session_id: str
    case_type: str
    status: str
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    completion_percentage: int = 0
    is_converted: bool = False
    client_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class SessionOut(SessionSummary):
    next_question_index: int = 0
    converted_at: Optional[datetime] = None
    case_id: Optional[int] = None
    messages: List[MessageOut] = Field(default_factory=list)
    documents: List[DocumentOut] = Field(default_factory=list)


class InitiateIn(CamelModel):
    case_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("caseType", "intakeType", "case_type"))


class InitiateOut(CamelModel):
    success: bool = True
    message: str
    intake_id: str


class CompleteOut(CamelModel):
    success: bool = True
    message: str
    client_id: int


class CaseCreated(CamelModel):
    success: bool = True
    message: str
    case_id: int
    case_number: str
    client_id: int


class UpdateDataOut(CamelModel):
    success: bool = True
    message: str
    completion_percentage: int


# ---------- Conversation ----------
class TurnIn(CamelModel):
    intake_id: str = Field(..., min_length=1, max_length=64)
    message: Optional[str] = Field(default=None, max_length=8000)
    initial: bool = False


class TurnOut(CamelModel):
    message: str
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = False
    transcript: Optional[str] = None


# ---------- Documents ----------
class UploadResultOut(CamelModel):
    name: str
    ok: bool
    document: Optional[DocumentOut] = None
    error: Optional[str] = None


class UploadOut(CamelModel):
    success: bool
    message: str
    documents: List[DocumentOut] = Field(default_factory=list)
    results: List[UploadResultOut] = Field(default_factory=list)


# ---------- Clients ----------
class ClientOut(CamelModel):
    id: int
    source_session_id: Optional[str] = None
    personal_info: Dict[str, Any] = Field(default_factory=dict)
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    case_info: Dict[str, Any] = Field(default_factory=dict)
    immigration_info: Optional[Dict[str, Any]] = None
    criminal_history: Optional[Dict[str, Any]] = None
    financial_info: Optional[Dict[str, Any]] = None
    medical_info: Optional[Dict[str, Any]] = None
    communication_preferences: Optional[Dict[str, Any]] = None
    consents: Optional[Dict[str, Any]] = None
    documents: List[Dict[str, Any]] = Field(default_factory=list)
    document_mentions: Optional[List[Dict[str, Any]]] = None
    created_at: datetime


# ---------- Notifications ----------
class NotificationOut(CamelModel):
    id: int
    message: str
    type: str
    read: bool
    link: Optional[str] = None
    created_at: datetime
