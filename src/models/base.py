"""Shared Pydantic base models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SwellSyncBase(BaseModel):
    """Base model with shared config for all SwellSync schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class StatusResponse(SwellSyncBase):
    status: str = "ok"


class ErrorDetail(BaseModel):
    detail: str
