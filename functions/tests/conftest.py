"""Pytest configuration and shared fixtures for MultiBuild tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (agents/, models/, services/, config/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from agents...`.
# This guarantees that `functions/` is importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Run every test in emulator mode without an advisory key.

    Secret and settings caches are cleared so a key from the developer's
    shell or .env never leaks into a test.
    """
    from config.secrets import clear_secret_cache
    from config.settings import settings
    from services.session_store import get_session_store

    monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    clear_secret_cache()
    settings._llm_api_key = None
    get_session_store.cache_clear()

    yield

    clear_secret_cache()
    settings._llm_api_key = None
    get_session_store.cache_clear()


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client with an in-memory document map."""
    documents = {}
    client = MagicMock()

    def _document(collection_name):
        def _factory(document_id):
            key = (collection_name, document_id)
            document_mock = MagicMock()

            async def _get():
                data = documents.get(key)
                return MagicMock(exists=data is not None, id=document_id, to_dict=lambda: data)

            async def _set(data):
                documents[key] = data

            async def _delete():
                documents.pop(key, None)

            document_mock.get = AsyncMock(side_effect=_get)
            document_mock.set = AsyncMock(side_effect=_set)
            document_mock.delete = AsyncMock(side_effect=_delete)
            return document_mock
        return _factory

    def _collection(collection_name):
        collection_mock = MagicMock()
        collection_mock.document.side_effect = _document(collection_name)
        return collection_mock

    client.collection.side_effect = _collection
    client.documents = documents
    return client


# ============================================================================
# LLM Mocks
# ============================================================================

ADVISORY_TEXT = """Overall this is a manageable project.

Material Alternatives:
- Use reclaimed fire bricks for the dome
- Consider vermiculite concrete for insulation

Tips:
- Soak bricks before laying them
- Cure the oven with small fires for a week

Safety:
- Wear a dust mask when cutting bricks

Complexity: 6/10
You could save about €45 by using reclaimed bricks.
"""


@pytest.fixture
def advisory_text():
    """Canned advisory reply returned by the mock LLM."""
    return ADVISORY_TEXT


@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content=ADVISORY_TEXT,
        response_metadata={"token_usage": {"total_tokens": 120}}
    )
    return mock


@pytest.fixture
def mock_llm_service(mock_chat_openai):
    """Configured LLMService backed by the mock client."""
    from services.llm_service import LLMService

    with patch('services.llm_service.ChatOpenAI', return_value=mock_chat_openai):
        service = LLMService(api_key="test-api-key")
        service._client = mock_chat_openai
        return service


@pytest.fixture
def advisory_service(mock_llm_service):
    """Configured AdvisoryService backed by the mock LLM."""
    from services.advisory_service import AdvisoryService

    return AdvisoryService(llm=mock_llm_service)


# ============================================================================
# Session Fixtures
# ============================================================================

@pytest.fixture
def memory_store():
    """Fresh in-memory session store."""
    from services.session_store import InMemorySessionStore

    return InMemorySessionStore()


@pytest.fixture
def engine_factory(memory_store):
    """Create a workflow engine on the shared in-memory store."""
    from agents.workflow_engine import WorkflowEngine

    async def _create(**kwargs):
        kwargs.setdefault("store", memory_store)
        return await WorkflowEngine.create(**kwargs)

    return _create


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def catalog():
    from services.catalog_service import CatalogService

    return CatalogService()


@pytest.fixture
def pizza_oven_request():
    """Confident pizza oven request with full dimensions."""
    from models.parsed_request import Dimensions, ParsedRequest

    return ParsedRequest(
        build_type="pizza_oven",
        dimensions=Dimensions(length=1.2, width=1.2, height=1.0),
        materials=["brick"],
        confidence=0.9,
        experience="beginner",
        source_text="I want to build a pizza oven 1.2m x 1.2m x 1m with bricks, I'm a beginner",
    )


@pytest.fixture
def garden_wall_request():
    """Garden wall request with a budget."""
    from models.parsed_request import Dimensions, ParsedRequest

    return ParsedRequest(
        build_type="garden_wall",
        dimensions=Dimensions(length=6.0, width=0.3, height=1.5),
        confidence=0.9,
        budget=800.0,
        experience="intermediate",
        source_text="Build a garden wall 6m x 0.3m x 1.5m with a budget of 800 euros",
    )


@pytest.fixture
def pizza_oven_materials(catalog, pizza_oven_request):
    return catalog.calculate_material_needs("pizza_oven", pizza_oven_request.dimensions)


@pytest.fixture
def garden_wall_materials(catalog, garden_wall_request):
    return catalog.calculate_material_needs("garden_wall", garden_wall_request.dimensions)
