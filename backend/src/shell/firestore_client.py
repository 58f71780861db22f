"""Firestore Client - Persistence for journal logs and derived user data.

This module handles all database I/O for LightCore.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from google.cloud import firestore

from ..core.goals import plan_goal_activation
from ..core.models import (
    Event,
    Goal,
    Guidance,
    Integration,
    LogEntry,
    MemoryUpdate,
    Nudge,
    OAuthState,
    Profile,
    StreakUpdate,
    utcnow,
)


logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """A Firestore read or write failed."""


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class LightCoreFirestoreClient:
    """Client for persisting LightCore data to Firestore.

    Document structure per user:
        users/{user_id}: { email, api_key_hash, created_at }
            profile/state: { streak_count, last_log_date, preferred_ui }
            logs/{log_id}: LogEntry
            events/{event_id}: Event
            goals/{goal_type}: Goal
            nudges/{nudge_id}: Nudge
            context/brain: { user_summary, ai_persona_memo, updated_at }
            context/guidance: { guidance, updated_at }
            integrations/{provider}: Integration
        oauth_states/{state_value}: { user_id, created_at }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _profile_ref(self, user_id: str) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("profile").document("state")

    def _logs(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("logs")

    def _events(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("events")

    def _goals(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("goals")

    def _nudges(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("nudges")

    def _context_ref(self, user_id: str, name: str) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("context").document(name)

    def _integration_ref(self, user_id: str, provider: str) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("integrations").document(provider)

    def _state_ref(self, state_value: str) -> firestore.DocumentReference:
        return self.client.collection("oauth_states").document(state_value)

    # ==================== Profile Operations ====================

    def get_profile(self, user_id: str) -> Profile:
        """Fetch the user's profile, or a fresh one if none is stored yet."""
        logger.debug("Fetching profile for user: %s", user_id[:8])
        try:
            doc = self._profile_ref(user_id).get()
        except Exception as e:
            logger.error("Failed to fetch profile: %s", str(e))
            raise StoreError(f"Could not fetch user profile: {e}") from e
        if not doc.exists:
            return Profile(user_id=user_id)
        return Profile(user_id=user_id, **doc.to_dict())

    def save_streak(self, user_id: str, update: StreakUpdate) -> None:
        """Persist a new streak count and last log instant."""
        logger.info("Updating streak for %s to %d", user_id[:8], update.streak_count)
        try:
            self._profile_ref(user_id).set(update.model_dump(), merge=True)
        except Exception as e:
            logger.error("Failed to update streak: %s", str(e))
            raise StoreError(f"Profile update error: {e}") from e

    def set_preferred_ui(self, user_id: str, preferred_ui: str) -> None:
        try:
            self._profile_ref(user_id).set({"preferred_ui": preferred_ui}, merge=True)
        except Exception as e:
            logger.error("Failed to update settings: %s", str(e))
            raise StoreError(f"Profile update error: {e}") from e

    # ==================== Log Operations ====================

    def add_log(self, log: LogEntry) -> LogEntry:
        """Insert an analyzed log entry.

        Args:
            log: The log to store

        Returns:
            The stored log
        """
        logger.info("Saving log %s for %s", log.id[:8], log.user_id[:8])
        try:
            self._logs(log.user_id).document(log.id).set(log.model_dump())
            return log
        except Exception as e:
            logger.error("Failed to save log: %s", str(e))
            raise StoreError(f"Log insert error: {e}") from e

    def get_recent_logs(self, user_id: str, limit: int = 10) -> list[LogEntry]:
        """Most recent logs, newest first."""
        logger.debug("Fetching %d recent logs for %s", limit, user_id[:8])
        try:
            query = (
                self._logs(user_id)
                .order_by("created_at", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [LogEntry(**doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch recent logs: %s", str(e))
            raise StoreError(f"Log select error: {e}") from e

    def get_logs_range(
        self, user_id: str, start: datetime, end: datetime | None = None
    ) -> list[LogEntry]:
        """Fetch logs created in [start, end), oldest first.

        Args:
            user_id: The user's ID
            start: Inclusive lower bound
            end: Exclusive upper bound (None for open-ended)

        Returns:
            List of logs found (may be empty)
        """
        logger.debug("Fetching logs for %s from %s to %s", user_id[:8], start, end)
        try:
            query = self._logs(user_id).where("created_at", ">=", start)
            if end is not None:
                query = query.where("created_at", "<", end)
            query = query.order_by("created_at")
            logs = [LogEntry(**doc.to_dict()) for doc in query.stream()]
            logger.debug("Found %d logs in range", len(logs))
            return logs
        except Exception as e:
            logger.error("Failed to fetch logs range: %s", str(e))
            raise StoreError(f"Log select error: {e}") from e

    def get_insights(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Past AI notes, newest first, with the total count.

        Logs without notes are skipped. Filtering happens in memory since a
        single user's history is small.

        Returns:
            Tuple of (page of {created_at, insight_text}, total matching)
        """
        try:
            query = self._logs(user_id)
            if start is not None:
                query = query.where("created_at", ">=", start)
            if end is not None:
                query = query.where("created_at", "<=", end)
            query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
            noted = [
                {"created_at": data["created_at"], "insight_text": data["ai_notes"]}
                for data in (doc.to_dict() for doc in query.stream())
                if data.get("ai_notes")
            ]
        except Exception as e:
            logger.error("Failed to fetch insights: %s", str(e))
            raise StoreError(f"Insight fetch error: {e}") from e
        return noted[offset:offset + limit], len(noted)

    def get_log_timestamps(self, user_id: str, limit: int = 400) -> list[datetime]:
        """created_at of the most recent logs, for distinct-day counting."""
        try:
            query = (
                self._logs(user_id)
                .select(["created_at"])
                .order_by("created_at", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            return [doc.to_dict()["created_at"] for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch log timestamps: %s", str(e))
            raise StoreError(f"Log fetch error: {e}") from e

    # ==================== Event Operations ====================

    def add_events(self, events: list[Event]) -> int:
        """Insert extracted events in one batch.

        Returns:
            Number of events written
        """
        if not events:
            return 0
        logger.info("Saving %d events for %s", len(events), events[0].user_id[:8])
        try:
            batch = self.client.batch()
            for event in events:
                batch.set(self._events(event.user_id).document(event.id), event.model_dump())
            batch.commit()
            return len(events)
        except Exception as e:
            logger.error("Failed to save events: %s", str(e))
            raise StoreError(f"Error saving extracted events: {e}") from e

    def get_events(
        self, user_id: str, since: datetime | None = None, limit: int = 250, newest_first: bool = False
    ) -> list[Event]:
        try:
            query = self._events(user_id)
            if since is not None:
                query = query.where("event_time", ">=", since)
            direction = firestore.Query.DESCENDING if newest_first else firestore.Query.ASCENDING
            query = query.order_by("event_time", direction=direction).limit(limit)
            return [Event(**doc.to_dict()) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch events: %s", str(e))
            raise StoreError(f"Event fetch error: {e}") from e

    # ==================== Goal Operations ====================

    def get_active_goal(self, user_id: str) -> Goal | None:
        try:
            query = self._goals(user_id).where("is_active", "==", True).limit(1)
            docs = list(query.stream())
        except Exception as e:
            logger.error("Failed to fetch goal: %s", str(e))
            raise StoreError(f"Goal fetch error: {e}") from e
        return Goal(**docs[0].to_dict()) if docs else None

    def set_active_goal(self, user_id: str, goal_type: str, goal_value: int) -> Goal:
        """Make ``goal_type`` the user's only active goal.

        Reads every goal and writes the deactivations plus the new active goal
        in one transaction, so concurrent calls cannot leave zero or several
        active goals.

        Returns:
            The stored active goal
        """
        logger.info("Setting %s goal for %s to %s", goal_type, user_id[:8], goal_value)
        goals_ref = self._goals(user_id)

        @firestore.transactional
        def activate(transaction: firestore.Transaction) -> Goal:
            existing = [Goal(**snap.to_dict()) for snap in goals_ref.stream(transaction=transaction)]
            now = utcnow()
            to_deactivate, goal = plan_goal_activation(existing, user_id, goal_type, goal_value, now)
            for other in to_deactivate:
                transaction.update(goals_ref.document(other), {"is_active": False, "updated_at": now})
            transaction.set(goals_ref.document(goal_type), goal.model_dump())
            return goal

        try:
            return activate(self.client.transaction())
        except Exception as e:
            logger.error("Failed to set goal: %s", str(e))
            raise StoreError(f"Goal update error: {e}") from e

    # ==================== Nudge Operations ====================

    def has_recent_nudge(self, user_id: str, since: datetime) -> bool:
        try:
            query = self._nudges(user_id).where("created_at", ">=", since).limit(1)
            return any(True for _ in query.stream())
        except Exception as e:
            logger.error("Failed to check nudges: %s", str(e))
            raise StoreError(f"Nudge fetch error: {e}") from e

    def add_nudge(self, nudge: Nudge) -> Nudge:
        logger.info("Saving nudge for %s: %s", nudge.user_id[:8], nudge.headline)
        try:
            self._nudges(nudge.user_id).document(nudge.id).set(nudge.model_dump())
            return nudge
        except Exception as e:
            logger.error("Failed to save nudge: %s", str(e))
            raise StoreError(f"Nudge insert error: {e}") from e

    def get_latest_nudge(self, user_id: str) -> Nudge | None:
        """Newest nudge the user has not acknowledged yet."""
        try:
            query = (
                self._nudges(user_id)
                .where("is_acknowledged", "==", False)
                .order_by("created_at", direction=firestore.Query.DESCENDING)
                .limit(1)
            )
            docs = list(query.stream())
        except Exception as e:
            logger.error("Failed to fetch nudge: %s", str(e))
            raise StoreError(f"Nudge select error: {e}") from e
        return Nudge(**docs[0].to_dict()) if docs else None

    def acknowledge_nudge(self, user_id: str, nudge_id: str) -> bool:
        """Mark a nudge acknowledged. Only the owner's nudges are reachable.

        Returns:
            True if the nudge existed
        """
        ref = self._nudges(user_id).document(nudge_id)
        try:
            if not ref.get().exists:
                logger.warning("Nudge not found: %s", nudge_id)
                return False
            ref.update({"is_acknowledged": True})
            return True
        except Exception as e:
            logger.error("Failed to acknowledge nudge: %s", str(e))
            raise StoreError(f"Nudge update error: {e}") from e

    # ==================== Brain Context Operations ====================

    def get_brain_memory(self, user_id: str) -> dict[str, Any]:
        """Stored model memory for the user (empty dict if none)."""
        try:
            doc = self._context_ref(user_id, "brain").get()
        except Exception as e:
            logger.error("Failed to fetch brain context: %s", str(e))
            raise StoreError(f"Brain context fetch error: {e}") from e
        return doc.to_dict() if doc.exists else {}

    def save_brain_memory(self, user_id: str, update: MemoryUpdate) -> None:
        logger.info("Upserting memory for %s", user_id[:8])
        try:
            self._context_ref(user_id, "brain").set(
                {
                    "user_summary": update.new_user_summary,
                    "ai_persona_memo": update.new_ai_persona_memo,
                    "updated_at": utcnow(),
                },
                merge=True,
            )
        except Exception as e:
            logger.error("Failed to save brain context: %s", str(e))
            raise StoreError(f"Brain context upsert error: {e}") from e

    def touch_brain_context(self, user_id: str, last_log_id: str) -> None:
        """Record that new source data exists for the user's context."""
        try:
            self._context_ref(user_id, "brain").set(
                {"last_log_id": last_log_id, "updated_at": utcnow()}, merge=True
            )
        except Exception as e:
            logger.error("Failed to touch brain context: %s", str(e))
            raise StoreError(f"Brain context upsert error: {e}") from e

    def save_guidance(self, user_id: str, guidance: Guidance) -> None:
        try:
            self._context_ref(user_id, "guidance").set(
                {"guidance": guidance.model_dump(), "updated_at": utcnow()}
            )
        except Exception as e:
            logger.error("Failed to cache guidance: %s", str(e))
            raise StoreError(f"Guidance cache error: {e}") from e

    def get_cached_guidance(self, user_id: str) -> Guidance | None:
        try:
            doc = self._context_ref(user_id, "guidance").get()
        except Exception as e:
            logger.error("Failed to fetch cached guidance: %s", str(e))
            raise StoreError(f"Guidance cache error: {e}") from e
        if not doc.exists or not doc.to_dict().get("guidance"):
            return None
        return Guidance(**doc.to_dict()["guidance"])

    # ==================== Integration Operations ====================

    def get_integration(self, user_id: str, provider: str) -> Integration | None:
        try:
            doc = self._integration_ref(user_id, provider).get()
        except Exception as e:
            logger.error("Failed to fetch integration: %s", str(e))
            raise StoreError(f"Integration fetch error: {e}") from e
        return Integration(**doc.to_dict()) if doc.exists else None

    def save_integration(self, integration: Integration) -> None:
        logger.info("Saving %s tokens for %s", integration.provider, integration.user_id[:8])
        try:
            self._integration_ref(integration.user_id, integration.provider).set(integration.model_dump())
        except Exception as e:
            logger.error("Failed to save integration: %s", str(e))
            raise StoreError(f"Integration upsert error: {e}") from e

    def delete_integration(self, user_id: str, provider: str) -> None:
        logger.info("Deleting %s integration for %s", provider, user_id[:8])
        try:
            self._integration_ref(user_id, provider).delete()
        except Exception as e:
            logger.error("Failed to delete integration: %s", str(e))
            raise StoreError(f"Integration delete error: {e}") from e

    def save_oauth_state(self, state: OAuthState) -> None:
        try:
            self._state_ref(state.state_value).set(state.model_dump())
        except Exception as e:
            logger.error("Error saving OAuth state: %s", str(e))
            raise StoreError(f"OAuth state insert error: {e}") from e

    def consume_oauth_state(self, state_value: str) -> str | None:
        """Validate a state token and delete it so it cannot be replayed.

        Returns:
            The user_id the state was issued to, or None if unknown
        """
        ref = self._state_ref(state_value)
        try:
            doc = ref.get()
            if not doc.exists:
                return None
            ref.delete()
        except Exception as e:
            logger.error("Failed to consume OAuth state: %s", str(e))
            raise StoreError(f"OAuth state error: {e}") from e
        return doc.to_dict().get("user_id")

    # ==================== Account Operations ====================

    def list_user_ids(self) -> list[str]:
        try:
            return [doc.id for doc in self.client.collection("users").select([]).stream()]
        except Exception as e:
            logger.error("Error fetching users: %s", str(e))
            raise StoreError(f"Error fetching profiles: {e}") from e

    def export_user_data(self, user_id: str) -> dict[str, Any]:
        """Everything stored for a user, oldest first within each collection."""
        try:
            return {
                "daily_logs": [d.to_dict() for d in self._logs(user_id).order_by("created_at").stream()],
                "events": [d.to_dict() for d in self._events(user_id).order_by("event_time").stream()],
                "nudges": [d.to_dict() for d in self._nudges(user_id).order_by("created_at").stream()],
                "goals": [d.to_dict() for d in self._goals(user_id).stream()],
                "brain_context": self.get_brain_memory(user_id) or None,
            }
        except StoreError:
            raise
        except Exception as e:
            logger.error("Failed to export data: %s", str(e))
            raise StoreError(f"Export error: {e}") from e

    def delete_user_data(self, user_id: str) -> None:
        """Delete the user document together with every subcollection."""
        logger.info("Deleting all data for user: %s", user_id[:8])
        try:
            self.client.recursive_delete(self._user_ref(user_id))
        except Exception as e:
            logger.error("Failed to delete user data: %s", str(e))
            raise StoreError(f"Delete error: {e}") from e
