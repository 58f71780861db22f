"""Integration tests for API endpoints using Starlette TestClient."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from starlette.testclient import TestClient

from src.core.models import (
    Event,
    Goal,
    Guidance,
    GuidanceReply,
    LogEntry,
    MemoryUpdate,
    Nudge,
    Profile,
    WeeklyReview,
    utcnow,
)
from src.core.parsing import Err, Ok
from src.main import create_app
from src.shell.firestore_client import StoreError
from src.shell.gemini_client import LLMError
from src.shell.handlers import dump
from src.shell.sentinel import SentinelReport


ANALYSIS_REPLY = """<reasoning>Slept 7h, ran, mood good.</reasoning>
{"clarity": {"score": 7, "label": "High", "color_hex": "#22c55e"},
 "immune": {"score": 5},
 "notes": "Nice steady day.",
 "tags": ["run", "sleep"]}"""


def make_log(user_id, days_ago=0, clarity=7, notes=None, tags=()):
    return LogEntry(
        user_id=user_id,
        created_at=utcnow() - timedelta(days=days_ago),
        log="Ran 5k",
        clarity_score=clarity,
        immune_score=6,
        physical_score=8,
        ai_notes=notes,
        tags=list(tags),
    )


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_json(self, client):
        """Health endpoint returns JSON with status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "lightcore-api"}


class TestRegisterEndpoint:
    """Tests for /auth/register endpoint."""

    def test_register_success(self, client, mock_auth):
        """Successful registration returns API key."""
        mock_auth.register_user.return_value = ("lc_new_key", "uid")
        response = client.post("/auth/register", json={"email": "test@example.com"})

        assert response.status_code == 200
        assert response.json()["api_key"] == "lc_new_key"
        mock_auth.register_user.assert_called_once_with("test@example.com")

    def test_register_missing_email(self, client):
        """Registration without email returns 400."""
        response = client.post("/auth/register", json={})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_register_invalid_email(self, client):
        response = client.post("/auth/register", json={"email": "not-an-email"})
        assert response.status_code == 400

    def test_register_bad_body(self, client):
        """Non-JSON body returns 400."""
        response = client.post("/auth/register", content=b"nope")
        assert response.status_code == 400
        assert response.json()["error"] == "Request body must be valid JSON."

    def test_register_store_failure(self, client, mock_auth):
        mock_auth.register_user.side_effect = RuntimeError("firestore down")
        response = client.post("/auth/register", json={"email": "test@example.com"})
        assert response.status_code == 500
        assert response.json() == {"error": "Registration failed."}


class TestValidateEndpoint:
    """Tests for /auth/validate endpoint."""

    def test_validate_missing_key(self, client):
        response = client.post("/auth/validate", json={})
        assert response.json()["valid"] is False

    def test_validate_existing_key(self, client, mock_auth, user_id):
        mock_auth.validate_api_key.return_value = user_id
        response = client.post("/auth/validate", json={"api_key": "lc_valid_token"})
        assert response.json() == {"valid": True}

    def test_validate_unknown_key(self, client, mock_auth):
        mock_auth.validate_api_key.return_value = None
        response = client.post("/auth/validate", json={"api_key": "lc_other"})
        assert response.json() == {"valid": False}


class TestAuthentication:
    """Tests for bearer token handling on protected routes."""

    def test_missing_header(self, client):
        response = client.get("/recent-logs")
        assert response.status_code == 401
        assert response.json() == {"error": "Not authorized."}

    def test_unknown_token(self, client):
        response = client.get("/recent-logs", headers={"Authorization": "Bearer lc_wrong"})
        assert response.status_code == 401
        assert response.json() == {"error": "User not found or token invalid."}

    def test_wrong_method(self, client, auth_headers):
        response = client.get("/analyze-log", headers=auth_headers)
        assert response.status_code == 405
        assert "error" in response.json()

    def test_unexpected_error_is_500(self, client, mock_db, auth_headers):
        """Store failures surface as 500 with the message."""
        mock_db.get_recent_logs.side_effect = StoreError("Log select error: timeout")
        response = client.get("/recent-logs", headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Log select error: timeout"}


class TestAnalyzeLog:
    """Tests for /analyze-log."""

    def test_scores_stores_and_updates_streak(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_llm.generate.return_value = ANALYSIS_REPLY
        response = client.post(
            "/analyze-log",
            json={"log": "Ran 5k, felt great", "sleep_hours": 7, "sleep_quality": "good"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["clarity_score"] == 7
        assert data["clarity_label"] == "High"
        assert data["immune_score"] == 5
        assert data["immune_label"] == "N/A"
        assert data["physical_score"] == 0
        assert data["physical_color"] == "#6B7280"
        assert data["ai_notes"] == "Nice steady day."
        assert data["tags"] == ["run", "sleep"]
        assert data["sleep_hours"] == 7
        assert data["streak_count"] == 1

        stored = mock_db.add_log.call_args[0][0]
        assert stored.user_id == user_id
        mock_db.touch_brain_context.assert_called_once_with(user_id, stored.id)
        streak = mock_db.save_streak.call_args[0][1]
        assert streak.streak_count == 1

    def test_consecutive_day_extends_streak(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_db.get_profile.return_value = Profile(
            user_id=user_id, streak_count=3, last_log_date=utcnow() - timedelta(days=1)
        )
        mock_llm.generate.return_value = ANALYSIS_REPLY
        response = client.post("/analyze-log", json={"log": "Again"}, headers=auth_headers)
        assert response.json()["streak_count"] == 4

    def test_history_and_goal_in_prompt(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_db.get_active_goal.return_value = Goal(user_id=user_id, goal_type="log_frequency", goal_value=5)
        mock_llm.generate.return_value = ANALYSIS_REPLY
        client.post("/analyze-log", json={"log": "Slow day"}, headers=auth_headers)

        prompt = mock_llm.generate.call_args[0][0]
        assert 'This log: "Slow day"' in prompt
        assert "log 5 days" in prompt
        mock_db.get_recent_logs.assert_called_once_with(user_id, 3)

    def test_wrong_typed_scores_are_defaulted(self, client, mock_db, mock_llm, auth_headers):
        """Odd field types in the reply still store the log."""
        mock_llm.generate.return_value = (
            '{"clarity": {"score": "high", "label": 5}, "immune": {"score": 6, "color_hex": 3}}'
        )
        response = client.post("/analyze-log", json={"log": "Busy day"}, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["clarity_score"] == 0
        assert data["clarity_label"] == "N/A"
        assert data["immune_score"] == 6
        assert data["immune_color"] == "#6B7280"
        mock_db.add_log.assert_called_once()

    def test_missing_log(self, client, auth_headers):
        response = client.post("/analyze-log", json={"log": "  "}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Log text is required."}

    def test_sleep_hours_out_of_range(self, client, auth_headers):
        response = client.post("/analyze-log", json={"log": "x", "sleep_hours": 30}, headers=auth_headers)
        assert response.status_code == 400

    def test_unparsable_reply(self, client, mock_db, mock_llm, auth_headers):
        """No JSON in the reply gives the analysis fallback and stores nothing."""
        mock_llm.generate.return_value = "I am unable to help."
        response = client.post("/analyze-log", json={"log": "x"}, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Could not generate analysis for this log."}
        mock_db.add_log.assert_not_called()
        mock_db.save_streak.assert_not_called()

    def test_model_failure(self, client, mock_db, mock_llm, auth_headers):
        mock_llm.generate.side_effect = LLMError("Gemini API error: 503")
        response = client.post("/analyze-log", json={"log": "x"}, headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Gemini API error: 503"}
        mock_db.add_log.assert_not_called()


class TestParseEvents:
    """Tests for /parse-events."""

    BODY = {"log_id": "log-1", "log_text": "Coffee at 8am", "userTimezone": "America/New_York"}

    def test_stores_events(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_llm.generate.return_value = (
            '[{"event_type": "Caffeine", "event_time": "2025-03-10T08:00:00-04:00"}]'
        )
        response = client.post("/parse-events", json=self.BODY, headers=auth_headers)

        assert response.status_code == 200
        [event] = response.json()["events"]
        assert event["event_type"] == "Caffeine"
        assert event["log_id"] == "log-1"
        stored = mock_db.add_events.call_args[0][0]
        assert stored[0].user_id == user_id
        assert '"America/New_York"' in mock_llm.generate.call_args[0][0]

    def test_missing_fields(self, client, auth_headers):
        response = client.post("/parse-events", json={"log_id": "log-1"}, headers=auth_headers)
        assert response.status_code == 400

    def test_parse_failure_returns_empty(self, client, mock_db, mock_llm, auth_headers):
        mock_llm.generate.return_value = "no events found"
        response = client.post("/parse-events", json=self.BODY, headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"events": []}
        mock_db.add_events.assert_not_called()


class TestReadEndpoints:
    """Tests for recent logs, chart data, events and insights."""

    def test_recent_logs(self, client, mock_db, auth_headers, user_id):
        mock_db.get_recent_logs.return_value = [make_log(user_id)]
        response = client.get("/recent-logs", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()[0]["log"] == "Ran 5k"
        mock_db.get_recent_logs.assert_called_once_with(user_id, 10)

    def test_chart_data(self, client, mock_db, auth_headers, user_id):
        mock_db.get_logs_range.return_value = [
            LogEntry(user_id=user_id, created_at=datetime(2025, 3, 10, 8, tzinfo=timezone.utc),
                     log="a", clarity_score=6, immune_score=6, physical_score=6),
            LogEntry(user_id=user_id, created_at=datetime(2025, 3, 10, 20, tzinfo=timezone.utc),
                     log="b", clarity_score=8, immune_score=None, physical_score=6),
        ]
        response = client.get("/chart-data?range=7&tz=UTC", headers=auth_headers)
        assert response.json() == {
            "labels": ["2025-03-10"],
            "clarityData": [7.0],
            "immuneData": [3.0],
            "physicalData": [6.0],
        }
        start, end = mock_db.get_logs_range.call_args[0][1:]
        assert end - start == timedelta(days=7)

    def test_chart_data_bad_range(self, client, auth_headers):
        assert client.get("/chart-data?range=0", headers=auth_headers).status_code == 400
        assert client.get("/chart-data?range=week", headers=auth_headers).status_code == 400

    def test_events(self, client, mock_db, auth_headers, user_id):
        mock_db.get_events.return_value = [
            Event(user_id=user_id, log_id="l", event_type="Meal", event_time=utcnow())
        ]
        response = client.get("/events?days=3", headers=auth_headers)
        assert response.json()[0]["event_type"] == "Meal"

    def test_past_insights(self, client, mock_db, auth_headers, user_id):
        stamp = datetime(2025, 3, 5, 9, tzinfo=timezone.utc)
        mock_db.get_insights.return_value = ([{"created_at": stamp, "insight_text": "Hydrate"}], 12)
        response = client.get(
            "/past-insights?limit=5&offset=5&startDate=2025-03-01&endDate=2025-03-31",
            headers=auth_headers,
        )

        assert response.json() == {
            "insights": [{"created_at": "2025-03-05T09:00:00Z", "insight_text": "Hydrate"}],
            "count": 12,
        }
        args = mock_db.get_insights.call_args[0]
        assert args[:3] == (user_id, 5, 5)
        assert args[3] == datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert args[4].date() == datetime(2025, 3, 31).date()
        assert args[4].hour == 23

    def test_past_insights_bad_date(self, client, auth_headers):
        response = client.get("/past-insights?startDate=yesterday", headers=auth_headers)
        assert response.status_code == 400


class TestDashboard:
    """Tests for /dashboard."""

    def test_empty_account_defaults(self, client, auth_headers):
        response = client.get("/dashboard?tz=UTC", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["weeklySummaryData"] == {"progress": 0, "goal": {"goal_value": 6}}
        assert data["chronoDeckData"] == []
        assert data["nudgeData"] is None
        assert data["recentEntriesData"] == []
        assert data["lightcoreGuideData"]["current_state"] == "Unable to load guidance."
        assert data["logCount"] == 0

    def test_populated(self, client, mock_db, auth_headers, user_id):
        now = utcnow()
        mock_db.get_active_goal.return_value = Goal(user_id=user_id, goal_type="log_frequency", goal_value=4)
        mock_db.get_log_timestamps.return_value = [now, now - timedelta(days=1), now - timedelta(days=30)]
        mock_db.get_latest_nudge.return_value = Nudge(user_id=user_id, headline="Dip", body_text="Rest")
        mock_db.get_cached_guidance.return_value = Guidance(current_state="Doing well", positives=["sleep"])
        mock_db.get_recent_logs.return_value = [make_log(user_id)]

        data = client.get("/dashboard?tz=UTC", headers=auth_headers).json()

        assert data["weeklySummaryData"] == {"progress": 2, "goal": {"goal_value": 4}}
        assert data["nudgeData"]["headline"] == "Dip"
        assert data["lightcoreGuideData"]["current_state"] == "Doing well"
        assert len(data["recentEntriesData"]) == 1
        assert data["logCount"] == 3

    def test_failed_reads_use_empty_values(self, client, mock_db, auth_headers, user_id):
        """One failing panel does not fail the dashboard."""
        mock_db.get_events.side_effect = StoreError("Event select error: timeout")
        mock_db.get_brain_memory.side_effect = RuntimeError("boom")
        mock_db.get_recent_logs.return_value = [make_log(user_id)]

        response = client.get("/dashboard", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["chronoDeckData"] == []
        assert data["lightcoreGuideData"]["current_state"] == "Unable to load guidance."
        assert len(data["recentEntriesData"]) == 1

    def test_guidance_falls_back_to_summary(self, client, mock_db, auth_headers):
        mock_db.get_brain_memory.return_value = {"user_summary": "Early riser"}
        data = client.get("/dashboard", headers=auth_headers).json()
        assert data["lightcoreGuideData"] == {
            "current_state": "Early riser",
            "positives": [],
            "concerns": [],
            "suggestions": [],
        }


class TestGoals:
    """Tests for /goals and /goal-progress."""

    def test_no_active_goal(self, client, auth_headers):
        assert client.get("/goals", headers=auth_headers).json() == {"goal": None}

    def test_set_goal(self, client, mock_db, auth_headers, user_id):
        response = client.post("/goals", json={"goal_type": "log_frequency", "goal_value": 5}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["goal"]["goal_value"] == 5
        mock_db.set_active_goal.assert_called_once_with(user_id, "log_frequency", 5)

    def test_invalid_goal_value(self, client, mock_db, auth_headers):
        for value in (0, -2, "5", True, None):
            response = client.post(
                "/goals", json={"goal_type": "log_frequency", "goal_value": value}, headers=auth_headers
            )
            assert response.status_code == 400
        mock_db.set_active_goal.assert_not_called()

    def test_invalid_goal_type(self, client, auth_headers):
        response = client.post("/goals", json={"goal_type": "a/b", "goal_value": 3}, headers=auth_headers)
        assert response.status_code == 400

    def test_goal_progress(self, client, mock_db, auth_headers, user_id):
        mock_db.get_active_goal.return_value = Goal(user_id=user_id, goal_type="log_frequency", goal_value=5)
        now = utcnow()
        mock_db.get_log_timestamps.return_value = [now, now, now - timedelta(days=40)]
        data = client.get("/goal-progress?tz=UTC", headers=auth_headers).json()
        assert data["progress"] == 1
        assert data["goal"]["goal_type"] == "log_frequency"


class TestNudges:
    """Tests for /nudges and /nudges/acknowledge."""

    def test_latest_nudge(self, client, mock_db, auth_headers, user_id):
        mock_db.get_latest_nudge.return_value = Nudge(user_id=user_id, headline="h", body_text="b")
        assert client.get("/nudges", headers=auth_headers).json()["nudge"]["headline"] == "h"

    def test_acknowledge(self, client, mock_db, auth_headers, user_id):
        response = client.post("/nudges/acknowledge", json={"nudgeId": "n-1"}, headers=auth_headers)
        assert response.json() == {"success": True}
        mock_db.acknowledge_nudge.assert_called_once_with(user_id, "n-1")

    def test_acknowledge_missing_id(self, client, auth_headers):
        assert client.post("/nudges/acknowledge", json={}, headers=auth_headers).status_code == 400

    def test_acknowledge_unknown(self, client, mock_db, auth_headers):
        mock_db.acknowledge_nudge.return_value = False
        response = client.post("/nudges/acknowledge", json={"nudgeId": "other"}, headers=auth_headers)
        assert response.status_code == 400


class TestGuidance:
    """Tests for /generate-guidance and /weekly-review."""

    def test_starter_guidance_without_data(self, client, mock_llm, auth_headers):
        response = client.post("/generate-guidance", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["guidance"]["current_state"].startswith("Log data for a few days")
        mock_llm.generate_model.assert_not_called()

    def test_generates_and_saves_memory(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_db.get_recent_logs.return_value = [make_log(user_id)]
        mock_db.get_brain_memory.return_value = {"user_summary": "Runner"}
        memory = MemoryUpdate(new_user_summary="Runner, sleeps late")
        mock_llm.generate_model.return_value = Ok(
            GuidanceReply(guidance_for_user=Guidance(current_state="Solid week"), memory_update=memory)
        )

        response = client.post("/generate-guidance", headers=auth_headers)

        assert response.json()["guidance"]["current_state"] == "Solid week"
        mock_db.save_brain_memory.assert_called_once_with(user_id, memory)
        mock_db.save_guidance.assert_called_once()
        prompt = mock_llm.generate_model.call_args[0][0]
        assert "Runner" in prompt
        assert mock_llm.generate_model.call_args[1]["model"] == "gemini-guide"

    def test_guidance_failure(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_db.get_recent_logs.return_value = [make_log(user_id)]
        mock_llm.generate_model.return_value = Err("no JSON object found in reply")
        response = client.post("/generate-guidance", headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Sorry, I couldn't generate guidance right now."}
        mock_db.save_brain_memory.assert_not_called()

    def test_weekly_review_not_enough_data(self, client, mock_db, auth_headers, user_id):
        mock_db.get_logs_range.return_value = [make_log(user_id, 8), make_log(user_id, 9)]
        data = client.get("/weekly-review", headers=auth_headers).json()
        assert data["review"] is None
        assert "Not enough data" in data["message"]

    def test_weekly_review(self, client, mock_db, mock_llm, auth_headers, user_id):
        mock_db.get_logs_range.return_value = [
            make_log(user_id, 8, tags=["run"]),
            make_log(user_id, 9, tags=["run"]),
            make_log(user_id, 10, clarity=None),
        ]
        review = WeeklyReview(headline="Good week", narrative="Steady.", key_takeaway="Sleep earlier")
        mock_llm.generate_model.return_value = Ok(review)

        data = client.get("/weekly-review?tz=UTC", headers=auth_headers).json()

        assert data["review"]["headline"] == "Good week"
        assert data["summary"]["log_count"] == 3
        assert data["summary"]["top_tags"] == ["run"]
        start, end = mock_db.get_logs_range.call_args[0][1:]
        assert end - start == timedelta(days=7)
        assert start.weekday() == 6


class TestAccount:
    """Tests for settings, export and delete."""

    def test_get_settings(self, client, auth_headers):
        data = client.get("/settings", headers=auth_headers).json()
        assert data == {"preferred_ui": "classic", "streak_count": 0}

    def test_update_settings(self, client, mock_db, auth_headers, user_id):
        response = client.post("/settings", json={"settings": {"preferred_ui": "matrix"}}, headers=auth_headers)
        assert response.status_code == 200
        mock_db.set_preferred_ui.assert_called_once_with(user_id, "matrix")

    def test_update_settings_missing_payload(self, client, auth_headers):
        assert client.post("/settings", json={}, headers=auth_headers).status_code == 400

    def test_export(self, client, mock_db, auth_headers):
        mock_db.export_user_data.return_value = {
            "daily_logs": [{"log": "a", "created_at": datetime(2025, 3, 1, tzinfo=timezone.utc)}],
            "events": [],
            "nudges": [],
            "goals": [],
            "brain_context": None,
        }
        response = client.get("/export", headers=auth_headers)
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        assert response.json()["daily_logs"][0]["created_at"] == "2025-03-01T00:00:00Z"

    def test_export_failure(self, client, mock_db, auth_headers):
        mock_db.export_user_data.side_effect = StoreError("Export error: boom")
        response = client.get("/export", headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Export failed."}

    def test_delete(self, client, mock_db, auth_headers, user_id):
        response = client.post("/delete-my-data", headers=auth_headers)
        assert response.json()["success"] is True
        mock_db.delete_user_data.assert_called_once_with(user_id)

    def test_delete_failure(self, client, mock_db, auth_headers):
        mock_db.delete_user_data.side_effect = StoreError("Delete error: boom")
        response = client.post("/delete-my-data", headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Delete request failed."}


class TestTrendSentinel:
    """Tests for /trend-sentinel."""

    def test_runs_sentinel(self, client, monkeypatch):
        monkeypatch.delenv("SENTINEL_SECRET", raising=False)
        report = SentinelReport(checked=2, nudged=["u1"])
        with patch("src.shell.handlers.run_sentinel", AsyncMock(return_value=report)):
            response = client.post("/trend-sentinel")
        assert response.status_code == 200
        assert response.json()["nudges_created"] == 1

    def test_secret_required_when_configured(self, client, monkeypatch):
        monkeypatch.setenv("SENTINEL_SECRET", "s3cret")
        with patch("src.shell.handlers.run_sentinel", AsyncMock(return_value=SentinelReport())) as run:
            assert client.post("/trend-sentinel").status_code == 401
            ok = client.post("/trend-sentinel", headers={"X-Sentinel-Secret": "s3cret"})
        assert ok.status_code == 200
        assert run.await_count == 1


class TestDump:
    """Tests for the JSON dump helper."""

    def test_models_and_raw_dicts(self, user_id):
        nudge = Nudge(
            user_id=user_id,
            headline="h",
            body_text="b",
            created_at=datetime(2025, 3, 1, 6, tzinfo=timezone.utc),
        )
        data = dump({"nudge": nudge, "logged": [datetime(2025, 3, 2, tzinfo=timezone.utc)], "none": None})

        assert data["nudge"]["headline"] == "h"
        assert data["nudge"]["created_at"] == "2025-03-01T06:00:00Z"
        assert data["logged"] == ["2025-03-02T00:00:00Z"]
        assert data["none"] is None


class TestServerError:
    """Tests for the app-level 500 handler."""

    def test_unhandled_error_renders_json(self, mock_db):
        mock_db.consume_oauth_state.side_effect = RuntimeError("state lookup failed")
        with patch("src.shell.integrations.get_firestore_client", return_value=mock_db):
            client = TestClient(create_app(), raise_server_exceptions=False)
            response = client.get("/integrations/google/callback?code=c&state=s")
        assert response.status_code == 500
        assert response.json() == {"error": "state lookup failed"}


class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_preflight_allowed_origin(self, client):
        response = client.options(
            "/analyze-log",
            headers={
                "Origin": "https://lightcorehealth.app",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "https://lightcorehealth.app"

    def test_cors_preflight_localhost(self, client):
        response = client.options(
            "/dashboard",
            headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"
