"""Session persistence for MultiBuild.

Stores one serialized WorkflowState per session id plus a pointer to the
current session. Payloads are versioned; ``get`` distinguishes a missing
session from one that cannot be decoded. Writes replace the stored blob
(last write wins).

Note: Firebase Admin SDK for Python is synchronous. Methods are async for
interface compatibility with the workflow engine.
"""

import inspect
import json
import random
import string
import time
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Optional

import structlog
from firebase_admin import firestore
from pydantic import ValidationError as PydanticValidationError

from config.errors import SessionCorruptError, SessionNotFoundError, SessionStoreError
from config.settings import settings
from models.workflow import WorkflowState

logger = structlog.get_logger()

SCHEMA_VERSION = 1
_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_session_id() -> str:
    """New id of the form ``session-<epoch ms>-<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"session-{int(time.time() * 1000)}-{suffix}"


def encode_state(state: WorkflowState) -> Dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "savedAt": datetime.utcnow().isoformat(),
        "state": state.model_dump(mode="json", by_alias=True),
    }


def decode_state(session_id: str, payload: Any) -> WorkflowState:
    """Rebuild a WorkflowState from a stored payload.

    Raises:
        SessionCorruptError: Wrong shape, unknown schema version or invalid state.
    """
    if not isinstance(payload, dict):
        raise SessionCorruptError(session_id, "payload is not an object")
    version = payload.get("schemaVersion")
    if version != SCHEMA_VERSION:
        raise SessionCorruptError(session_id, f"unsupported schema version: {version!r}")
    try:
        return WorkflowState.model_validate(payload.get("state") or {})
    except PydanticValidationError as e:
        raise SessionCorruptError(session_id, f"{e.error_count()} invalid fields")


class SessionStore(ABC):
    """Typed key-value store for workflow sessions."""

    @abstractmethod
    async def get(self, session_id: str) -> WorkflowState:
        """Load a session.

        Raises:
            SessionNotFoundError: Nothing stored under ``session_id``.
            SessionCorruptError: Stored payload cannot be decoded.
        """

    @abstractmethod
    async def put(self, session_id: str, state: WorkflowState) -> None:
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def get_current_session_id(self) -> Optional[str]:
        ...

    @abstractmethod
    async def set_current_session_id(self, session_id: Optional[str]) -> None:
        ...


class InMemorySessionStore(SessionStore):
    """Process-local store holding JSON blobs, used locally and in tests."""

    def __init__(self):
        self._blobs: Dict[str, str] = {}
        self._current: Optional[str] = None

    async def get(self, session_id: str) -> WorkflowState:
        blob = self._blobs.get(session_id)
        if blob is None:
            raise SessionNotFoundError(session_id)
        try:
            payload = json.loads(blob)
        except json.JSONDecodeError as e:
            raise SessionCorruptError(session_id, f"invalid JSON: {e.msg}")
        return decode_state(session_id, payload)

    async def put(self, session_id: str, state: WorkflowState) -> None:
        self._blobs[session_id] = json.dumps(encode_state(state))
        logger.debug("session_saved", session_id=session_id, backend="memory", phase=state.phase)

    async def delete(self, session_id: str) -> None:
        self._blobs.pop(session_id, None)
        if self._current == session_id:
            self._current = None

    async def get_current_session_id(self) -> Optional[str]:
        return self._current

    async def set_current_session_id(self, session_id: Optional[str]) -> None:
        self._current = session_id

    def put_raw(self, session_id: str, blob: str) -> None:
        """Store an arbitrary blob, e.g. one written by an older client."""
        self._blobs[session_id] = blob

    def __len__(self) -> int:
        return len(self._blobs)


class FirestoreSessionStore(SessionStore):
    """Sessions in the ``sessions`` collection; pointer in ``meta/currentSession``."""

    COLLECTION_SESSIONS = "sessions"
    COLLECTION_META = "meta"
    DOCUMENT_CURRENT = "currentSession"

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        """Get Firestore client (lazy initialization)."""
        if self._db is None:
            self._db = firestore.client()
        return self._db

    async def _maybe_await(self, result: Any) -> Any:
        """Await result if it is awaitable (supports AsyncMock in unit tests)."""
        if inspect.isawaitable(result):
            return await result
        return result

    async def get(self, session_id: str) -> WorkflowState:
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            doc = await self._maybe_await(doc_ref.get())
        except Exception as e:
            logger.error("session_get_failed", session_id=session_id, error=str(e))
            raise SessionStoreError(f"Failed to load session: {str(e)}", session_id=session_id)

        if not doc.exists:
            raise SessionNotFoundError(session_id)
        return decode_state(session_id, doc.to_dict())

    async def put(self, session_id: str, state: WorkflowState) -> None:
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            await self._maybe_await(doc_ref.set(encode_state(state)))
            logger.debug("session_saved", session_id=session_id, backend="firestore", phase=state.phase)
        except Exception as e:
            logger.error("session_put_failed", session_id=session_id, error=str(e))
            raise SessionStoreError(f"Failed to save session: {str(e)}", session_id=session_id)

    async def delete(self, session_id: str) -> None:
        try:
            doc_ref = self.db.collection(self.COLLECTION_SESSIONS).document(session_id)
            await self._maybe_await(doc_ref.delete())
            if await self.get_current_session_id() == session_id:
                await self.set_current_session_id(None)
        except SessionStoreError:
            raise
        except Exception as e:
            logger.error("session_delete_failed", session_id=session_id, error=str(e))
            raise SessionStoreError(f"Failed to delete session: {str(e)}", session_id=session_id)

    async def get_current_session_id(self) -> Optional[str]:
        try:
            doc_ref = self.db.collection(self.COLLECTION_META).document(self.DOCUMENT_CURRENT)
            doc = await self._maybe_await(doc_ref.get())
        except Exception as e:
            logger.error("current_session_get_failed", error=str(e))
            raise SessionStoreError(f"Failed to read current session: {str(e)}")
        if not doc.exists:
            return None
        return (doc.to_dict() or {}).get("sessionId")

    async def set_current_session_id(self, session_id: Optional[str]) -> None:
        try:
            doc_ref = self.db.collection(self.COLLECTION_META).document(self.DOCUMENT_CURRENT)
            await self._maybe_await(doc_ref.set({"sessionId": session_id}))
        except Exception as e:
            logger.error("current_session_set_failed", session_id=session_id, error=str(e))
            raise SessionStoreError(f"Failed to write current session: {str(e)}", session_id=session_id)


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """Process-wide store for the configured ``SESSION_BACKEND``."""
    if settings.session_backend == "firestore":
        logger.info("session_store_selected", backend="firestore")
        return FirestoreSessionStore()
    logger.info("session_store_selected", backend="memory")
    return InMemorySessionStore()
