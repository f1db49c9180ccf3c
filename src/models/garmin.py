"""Pydantic models for the Garmin connect flow and activity sync."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.models.base import SwellSyncBase


class AuthorizationStart(SwellSyncBase):
    authorization_url: str
    state: str


class ConnectionResult(SwellSyncBase):
    connected: bool
    external_account_id: str | None = None


class ConnectionStatus(SwellSyncBase):
    configured: bool
    connected: bool
    expires_at: datetime | None = None


class SyncResult(SwellSyncBase):
    synced: int = Field(ge=0)
    skipped: int = Field(ge=0)
    errors: list[str] = Field(default_factory=list)
