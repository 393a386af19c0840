"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database (a single shared
connection via StaticPool) with the full memory schema, plus store,
retriever, extractor and service instances bound to it. Without a Gemini
key the extractor runs on heuristics, so no network calls are made.
"""

import pytest

from tiered_memory.core.database import Database
from tiered_memory.memory.extractor import MemoryExtractor
from tiered_memory.memory.retriever import MemoryRetriever
from tiered_memory.memory.store import TieredMemoryStore
from tiered_memory.models.schemas import ConversationTurn, MemoryClassification
from tiered_memory.services.memory_service import MemoryService

from tests.helpers import make_candidate, make_settings


@pytest.fixture
def test_settings():
    return make_settings()


@pytest.fixture
def database(test_settings):
    """Connected in-memory database with the schema created."""
    db = Database(test_settings)
    db.connect()
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def store(database, test_settings):
    return TieredMemoryStore(database, test_settings)


@pytest.fixture
def retriever(store, test_settings):
    return MemoryRetriever(store, test_settings)


@pytest.fixture
def memory_extractor(test_settings):
    """Extractor without a model: every turn uses the heuristic path."""
    return MemoryExtractor(test_settings)


@pytest.fixture
def memory_service(database, test_settings, memory_extractor):
    """Service on the test database; workers are not started."""
    return MemoryService(database, test_settings, extractor=memory_extractor)


@pytest.fixture
async def running_service(memory_service):
    """Service with its extraction workers running."""
    await memory_service.start()
    yield memory_service
    await memory_service.stop()


@pytest.fixture
def sam_turn():
    return ConversationTurn(
        user_input="My name is Sam, I live in Austin",
        ai_output="Nice to meet you, Sam",
        user_id="user123"
    )


@pytest.fixture
def sample_candidates():
    """Candidates across the promotion boundary."""
    return [
        make_candidate(
            "My name is Sam, I live in Austin",
            MemoryClassification.CONSCIOUS_INFO,
            0.6,
            is_conscious=True
        ),
        make_candidate("The release deadline is Friday", MemoryClassification.ESSENTIAL, 0.9),
        make_candidate("We chatted about the weather", MemoryClassification.CONVERSATIONAL, 0.5),
    ]
