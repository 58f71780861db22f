"""Shared fixtures: the app wired to mocked Firestore, auth, model and Fit clients."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.testclient import TestClient

from src.core.models import Goal, Profile
from src.main import create_app
from src.shell.auth import AuthError
from src.shell.gemini_client import GeminiConfig
from src.shell.google_fit import GoogleFitConfig


USER_ID = "a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6"
AUTH = {"Authorization": "Bearer lc_valid_token"}


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def auth_headers():
    return dict(AUTH)


@pytest.fixture
def mock_db():
    """Firestore client double with empty-account defaults."""
    db = MagicMock()
    db.get_profile.return_value = Profile(user_id=USER_ID)
    db.get_recent_logs.return_value = []
    db.get_logs_range.return_value = []
    db.get_log_timestamps.return_value = []
    db.get_active_goal.return_value = None
    db.get_events.return_value = []
    db.get_latest_nudge.return_value = None
    db.get_cached_guidance.return_value = None
    db.get_brain_memory.return_value = {}
    db.get_insights.return_value = ([], 0)
    db.get_integration.return_value = None
    db.consume_oauth_state.return_value = None
    db.acknowledge_nudge.return_value = True
    db.add_log.side_effect = lambda log: log
    db.add_events.side_effect = lambda events: len(events)
    db.set_active_goal.side_effect = lambda uid, goal_type, value: Goal(
        user_id=uid, goal_type=goal_type, goal_value=value
    )
    return db


@pytest.fixture
def mock_auth():
    """Auth client accepting only AUTH's token."""
    auth = MagicMock()

    def resolve(header):
        if not header:
            raise AuthError("Not authorized.")
        if header != AUTH["Authorization"]:
            raise AuthError("User not found or token invalid.")
        return USER_ID

    auth.get_user_id.side_effect = resolve
    return auth


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.config = GeminiConfig(api_key="test", guidance_model="gemini-guide")
    llm.generate = AsyncMock()
    llm.generate_model = AsyncMock()
    return llm


@pytest.fixture
def mock_fit():
    fit = MagicMock()
    fit.config = GoogleFitConfig(client_id="cid", client_secret="secret", redirect_uri="https://api/cb")
    fit.exchange_code = AsyncMock()
    fit.refresh_access_token = AsyncMock()
    fit.aggregate_steps = AsyncMock(return_value=0)
    return fit


@pytest.fixture
def client(mock_db, mock_auth, mock_llm, mock_fit):
    """Test client with every outside dependency mocked."""
    with patch("src.shell.handlers.get_firestore_client", return_value=mock_db), \
            patch("src.shell.handlers.get_auth_client", return_value=mock_auth), \
            patch("src.shell.handlers.get_llm_client", return_value=mock_llm), \
            patch("src.shell.integrations.get_firestore_client", return_value=mock_db), \
            patch("src.shell.integrations.get_fit_client", return_value=mock_fit), \
            patch("src.main.get_auth_client", return_value=mock_auth):
        yield TestClient(create_app())
