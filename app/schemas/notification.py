from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    person_id: UUID
    title: str
    body: str
    event_type: str
    distribution_id: str
    is_read: bool
    read_at: datetime | None = None
    metadata_: dict[str, Any] | None = Field(default=None, alias="metadata_")
    is_active: bool
    created_at: datetime


class MarkReadRequest(BaseModel):
    # empty marks every unread notification of the caller
    notification_ids: list[UUID] = Field(default_factory=list)


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    count: int
