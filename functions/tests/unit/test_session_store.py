"""Unit tests for session persistence."""

import json
import re
from unittest.mock import MagicMock, patch

import pytest

from config.errors import ErrorCode, SessionCorruptError, SessionNotFoundError, SessionStoreError
from models.parsed_request import ParsedRequest
from models.workflow import WorkflowState
from services.session_store import (
    SCHEMA_VERSION,
    FirestoreSessionStore,
    InMemorySessionStore,
    decode_state,
    encode_state,
    generate_session_id,
    get_session_store,
)


@pytest.fixture
def sample_state():
    return WorkflowState(
        session_id="session-1",
        phase="clarification",
        message_count=2,
        parsed_request=ParsedRequest(build_type="fire_pit", confidence=0.6),
        asked_questions=["dimensions"],
    )


class TestEncoding:
    """Tests for the versioned payload format."""

    def test_encode_is_versioned(self, sample_state):
        payload = encode_state(sample_state)

        assert payload["schemaVersion"] == SCHEMA_VERSION
        assert payload["state"]["sessionId"] == "session-1"
        assert payload["state"]["askedQuestions"] == ["dimensions"]
        json.dumps(payload)

    def test_decode_round_trip(self, sample_state):
        restored = decode_state("session-1", encode_state(sample_state))

        assert restored.phase == "clarification"
        assert restored.parsed_request.build_type == "fire_pit"
        assert restored.message_count == 2

    def test_unknown_version_is_corrupt(self, sample_state):
        payload = encode_state(sample_state)
        payload["schemaVersion"] = 99

        with pytest.raises(SessionCorruptError) as exc_info:
            decode_state("session-1", payload)

        assert exc_info.value.code == ErrorCode.SESSION_CORRUPT

    def test_non_object_is_corrupt(self):
        with pytest.raises(SessionCorruptError):
            decode_state("session-1", ["not", "a", "dict"])

    def test_invalid_state_is_corrupt(self):
        payload = {"schemaVersion": SCHEMA_VERSION, "state": {"sessionId": "s", "messageCount": -1}}

        with pytest.raises(SessionCorruptError):
            decode_state("s", payload)

    def test_session_id_format(self):
        session_id = generate_session_id()

        assert re.fullmatch(r"session-\d{13}-[0-9a-z]{9}", session_id)
        assert generate_session_id() != session_id


class TestInMemorySessionStore:
    """Tests for InMemorySessionStore."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, memory_store, sample_state):
        await memory_store.put("session-1", sample_state)

        restored = await memory_store.get("session-1")

        assert restored.session_id == "session-1"
        assert restored.asked_questions == ["dimensions"]
        assert len(memory_store) == 1

    @pytest.mark.asyncio
    async def test_missing_session(self, memory_store):
        with pytest.raises(SessionNotFoundError) as exc_info:
            await memory_store.get("nope")

        assert exc_info.value.code == ErrorCode.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_invalid_json_is_corrupt(self, memory_store):
        memory_store.put_raw("bad", "{oops")

        with pytest.raises(SessionCorruptError):
            await memory_store.get("bad")

    @pytest.mark.asyncio
    async def test_last_write_wins(self, memory_store, sample_state):
        await memory_store.put("session-1", sample_state)
        newer = sample_state.model_copy(update={"message_count": 5})
        await memory_store.put("session-1", newer)

        restored = await memory_store.get("session-1")

        assert restored.message_count == 5

    @pytest.mark.asyncio
    async def test_delete_clears_pointer(self, memory_store, sample_state):
        await memory_store.put("session-1", sample_state)
        await memory_store.set_current_session_id("session-1")

        await memory_store.delete("session-1")

        assert await memory_store.get_current_session_id() is None
        with pytest.raises(SessionNotFoundError):
            await memory_store.get("session-1")

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, memory_store):
        await memory_store.delete("never-stored")


class TestFirestoreSessionStore:
    """Tests for FirestoreSessionStore with mocked Firestore."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, mock_firestore_client, sample_state):
        store = FirestoreSessionStore(db=mock_firestore_client)

        await store.put("session-1", sample_state)
        restored = await store.get("session-1")

        stored = mock_firestore_client.documents[("sessions", "session-1")]
        assert stored["schemaVersion"] == SCHEMA_VERSION
        assert restored.phase == "clarification"

    @pytest.mark.asyncio
    async def test_missing_document(self, mock_firestore_client):
        store = FirestoreSessionStore(db=mock_firestore_client)

        with pytest.raises(SessionNotFoundError):
            await store.get("missing")

    @pytest.mark.asyncio
    async def test_corrupt_document(self, mock_firestore_client):
        mock_firestore_client.documents[("sessions", "old")] = {"phase": "review"}
        store = FirestoreSessionStore(db=mock_firestore_client)

        with pytest.raises(SessionCorruptError):
            await store.get("old")

    @pytest.mark.asyncio
    async def test_current_session_pointer(self, mock_firestore_client, sample_state):
        store = FirestoreSessionStore(db=mock_firestore_client)

        assert await store.get_current_session_id() is None
        await store.set_current_session_id("session-1")
        assert await store.get_current_session_id() == "session-1"
        assert mock_firestore_client.documents[("meta", "currentSession")] == {"sessionId": "session-1"}

    @pytest.mark.asyncio
    async def test_delete_clears_pointer(self, mock_firestore_client, sample_state):
        store = FirestoreSessionStore(db=mock_firestore_client)
        await store.put("session-1", sample_state)
        await store.set_current_session_id("session-1")

        await store.delete("session-1")

        assert ("sessions", "session-1") not in mock_firestore_client.documents
        assert await store.get_current_session_id() is None

    @pytest.mark.asyncio
    async def test_backend_failure_wrapped(self, sample_state):
        client = MagicMock()
        client.collection.side_effect = Exception("firestore unavailable")
        store = FirestoreSessionStore(db=client)

        with pytest.raises(SessionStoreError) as exc_info:
            await store.put("session-1", sample_state)

        assert exc_info.value.code == ErrorCode.SESSION_STORE_ERROR
        assert "firestore unavailable" in exc_info.value.message


class TestGetSessionStore:
    def test_memory_backend_by_default(self):
        with patch("services.session_store.settings") as mock_settings:
            mock_settings.session_backend = "memory"
            store = get_session_store()

        assert isinstance(store, InMemorySessionStore)
        assert get_session_store() is store

    def test_firestore_backend(self):
        with patch("services.session_store.settings") as mock_settings:
            mock_settings.session_backend = "firestore"
            store = get_session_store()

        assert isinstance(store, FirestoreSessionStore)
