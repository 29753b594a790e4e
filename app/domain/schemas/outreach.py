"""Pydantic schemas for the outreach admin and internal APIs."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Channel = Literal["sms", "whatsapp"]
ConsentAction = Literal["opt_in", "opt_out"]
SessionState = Literal["pending", "sent", "responded", "expired", "stopped"]


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class SessionRead(CamelModel):
    id: int
    call_sid: str
    e164: str
    channel: str
    state: str
    last_sent_at: Optional[datetime] = None
    followup_due_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SessionDetailRead(SessionRead):
    meta: dict[str, Any] = Field(default_factory=dict)


class MessageRead(CamelModel):
    direction: str
    body: str
    created_at: Optional[datetime] = None


class ReplyEventRead(CamelModel):
    signal: str
    created_at: Optional[datetime] = None


class ConsentEntry(CamelModel):
    status: str
    last_change_at: Optional[datetime] = None


class SessionListResponse(CamelModel):
    items: list[SessionRead]
    next_offset: Optional[int] = None


class SessionDetailResponse(CamelModel):
    session: SessionDetailRead
    messages: list[MessageRead]
    reply_events: list[ReplyEventRead] = Field(default_factory=list)
    consent: dict[str, ConsentEntry]


class ConsentUpdateRequest(BaseModel):
    e164: str = Field(min_length=1)
    action: ConsentAction
    channel: Channel


class OkResponse(BaseModel):
    ok: bool = True


class SweepResult(BaseModel):
    success: bool = True
    sent: int
    timestamp: str
