from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DistributionTypeBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1, max_length=3, pattern=r"^[A-Za-z0-9]+$")
    color: str = Field(default="#6B7280", pattern=r"^#[0-9A-Fa-f]{6}$")
    priority: int = Field(default=1, ge=1, le=3)
    description: str | None = None


class DistributionTypeCreate(DistributionTypeBase):
    pass


class DistributionTypeUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    code: str | None = Field(
        default=None, min_length=1, max_length=3, pattern=r"^[A-Za-z0-9]+$"
    )
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    priority: int | None = Field(default=None, ge=1, le=3)
    description: str | None = None


class DistributionTypeRead(DistributionTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime
