"""In-memory Persistence for local development and tests.

Behaves like the Postgres adapter where it matters: the external activity
id is unique (duplicate inserts raise ConflictError) and stored records are
copies, so callers never mutate the store by accident.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace

from src.wearables.base import ConflictError, SessionDraft, WearableCredential

logger = logging.getLogger("swellsync.db.memory")


class InMemoryPersistence:
    """Dict-backed Persistence implementation."""

    def __init__(self) -> None:
        self._credentials: dict[str, WearableCredential] = {}
        self._sessions: dict[str, SessionDraft] = {}

    async def create_session_draft(self, draft: SessionDraft) -> str:
        if draft.external_activity_id in self._sessions:
            raise ConflictError(draft.external_activity_id)
        session_id = str(uuid.uuid4())
        self._sessions[draft.external_activity_id] = replace(draft, id=session_id)
        return session_id

    async def find_session_by_external_activity_id(
        self, external_activity_id: str
    ) -> SessionDraft | None:
        stored = self._sessions.get(external_activity_id)
        return replace(stored) if stored else None

    async def get_credential(self, user_id: str) -> WearableCredential | None:
        stored = self._credentials.get(user_id)
        return replace(stored) if stored else None

    async def upsert_credential(self, credential: WearableCredential) -> None:
        previous = self._credentials.get(credential.user_id)
        stored = replace(credential)
        if stored.external_account_id is None and previous is not None:
            stored.external_account_id = previous.external_account_id
        self._credentials[credential.user_id] = stored

    async def delete_credential(self, user_id: str) -> None:
        if self._credentials.pop(user_id, None) is not None:
            logger.debug("Deleted credential for user %s", user_id)

    async def find_user_by_external_account_id(self, external_account_id: str) -> str | None:
        for credential in self._credentials.values():
            if credential.external_account_id == external_account_id:
                return credential.user_id
        return None

    async def ping(self) -> bool:
        return True

    # Inspection helpers

    def sessions(self) -> list[SessionDraft]:
        return [replace(s) for s in self._sessions.values()]
