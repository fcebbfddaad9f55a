from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from caregiver_questionnaire.definitions import DefinitionCatalog, DefinitionLoader
from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.responses import ResponseStore
from caregiver_questionnaire.sessions import SessionManager

from helpers.mocks import (
    MockDefinitionRepository,
    MockProfileWriter,
    MockResponseRepository,
    MockSessionRepository,
)

DEFINITIONS_DIR = Path(__file__).resolve().parents[1] / "definitions"


@pytest.fixture(scope="session")
def loader():
    """Load the seed definitions once for the entire test session."""
    ld = DefinitionLoader(DEFINITIONS_DIR)
    ld.load()
    return ld


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession; flush/commit are no-ops."""
    return AsyncMock()


@pytest.fixture
def definition_repo(loader):
    """Fresh definition repository holding the published seed definitions."""
    repo = MockDefinitionRepository()
    for definition in loader.definitions.values():
        repo.add(definition)
    return repo


@pytest.fixture
def session_repo():
    return MockSessionRepository()


@pytest.fixture
def response_repo():
    return MockResponseRepository()


@pytest.fixture
def profiles():
    return MockProfileWriter()


@pytest.fixture
def catalog(definition_repo):
    return DefinitionCatalog(definition_repo)


@pytest.fixture
def responses(response_repo, session_repo):
    return ResponseStore(response_repo, session_repo)


@pytest.fixture
def sessions(session_repo, responses, catalog):
    return SessionManager(session_repo, responses, catalog)


@pytest.fixture
def engine(catalog, sessions, responses, profiles):
    """QuestionnaireEngine wired to the in-memory repositories."""
    return QuestionnaireEngine(
        catalog=catalog,
        sessions=sessions,
        responses=responses,
        profiles=profiles,
    )
