"""Core Data Models - Pydantic models for type safety.

All models are value objects with no behavior beyond validation.
Records mirror what is persisted in Firestore; reply models describe the
JSON the LLM is asked to return.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


def utcnow() -> datetime:
    """Timezone-aware current UTC instant."""
    return datetime.now(timezone.utc)


DEFAULT_SCORE = 0
DEFAULT_LABEL = "N/A"
DEFAULT_COLOR = "#6B7280"


class ScoreField(BaseModel):
    """One scored health dimension as returned by the model."""

    score: float = DEFAULT_SCORE
    label: str = DEFAULT_LABEL
    color_hex: str = DEFAULT_COLOR


class EventType(str, Enum):
    """Timed event kinds the extractor may emit."""

    WORKOUT = "Workout"
    MEAL = "Meal"
    SNACK = "Snack"
    CAFFEINE = "Caffeine"
    SLEEP = "Sleep"
    NAP = "Nap"
    MEDITATION = "Meditation"


# ==================== Persisted Records ====================


class LogEntry(BaseModel):
    """A single analyzed journal submission. Several may exist per day."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    log: str = Field(min_length=1, description="Free-text journal entry")
    sleep_hours: Optional[float] = Field(default=None, ge=0, le=24)
    sleep_quality: Optional[str] = None
    clarity_score: Optional[float] = None
    clarity_label: Optional[str] = None
    clarity_color: Optional[str] = None
    immune_score: Optional[float] = None
    immune_label: Optional[str] = None
    immune_color: Optional[str] = None
    physical_score: Optional[float] = None
    physical_label: Optional[str] = None
    physical_color: Optional[str] = None
    ai_notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class Event(BaseModel):
    """A timed event extracted from a log entry."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    log_id: str
    event_type: EventType
    event_time: datetime


class Goal(BaseModel):
    """A user goal. At most one goal per user is active."""

    user_id: str
    goal_type: str = Field(min_length=1)
    goal_value: int = Field(gt=0)
    is_active: bool = True
    time_period: str = "weekly"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Profile(BaseModel):
    """Per-user streak state and UI preference."""

    user_id: str
    streak_count: int = Field(default=0, ge=0)
    last_log_date: Optional[datetime] = Field(default=None, description="Full UTC instant of the last log")
    preferred_ui: str = "classic"


class BrainContext(BaseModel):
    """Context handed to the guidance model.

    Only ``user_summary`` and ``ai_persona_memo`` are stored; ``recent_logs``
    and ``recent_events`` are filled from the source collections on read.
    """

    user_id: str
    recent_logs: list[LogEntry] = Field(default_factory=list)
    recent_events: list[Event] = Field(default_factory=list)
    recent_insights: list[str] = Field(default_factory=list)
    user_summary: Optional[str] = None
    ai_persona_memo: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class Nudge(BaseModel):
    """Proactive notification created by the trend sentinel."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    headline: str
    body_text: str
    suggested_actions: list[str] = Field(default_factory=list)
    is_acknowledged: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Integration(BaseModel):
    """OAuth tokens for a third-party fitness provider."""

    user_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class OAuthState(BaseModel):
    """One-time CSRF state issued when an OAuth flow starts."""

    state_value: str
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)


class User(BaseModel):
    """User record stored in Firestore."""

    email: str
    api_key_hash: str = Field(description="SHA256 hash of API key - never store plaintext")
    created_at: datetime = Field(default_factory=utcnow)


# ==================== LLM Reply Schemas ====================


class LogAnalysis(BaseModel):
    """Scores and notes returned for a log entry."""

    clarity: Optional[dict[str, Any]] = None
    immune: Optional[dict[str, Any]] = None
    physical: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class ExtractedEvent(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    event_type: EventType
    event_time: datetime


class NudgeContent(BaseModel):
    headline: Optional[str] = None
    body_text: Optional[str] = None
    suggested_actions: list[str] = Field(default_factory=list)


class Guidance(BaseModel):
    """Guidance shown in the dashboard guide panel."""

    current_state: str = "Here's your current state."
    positives: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class MemoryUpdate(BaseModel):
    new_user_summary: Optional[str] = None
    new_ai_persona_memo: Optional[str] = None


class GuidanceReply(BaseModel):
    guidance_for_user: Guidance
    memory_update: Optional[MemoryUpdate] = None


class WeeklyReview(BaseModel):
    headline: str
    narrative: str
    key_takeaway: str


# ==================== Derived Values ====================


class StreakUpdate(BaseModel):
    """New streak state to persist after a log."""

    streak_count: int = Field(ge=0)
    last_log_date: datetime


class TrendResult(BaseModel):
    """Trend statistics for one metric."""

    metric: str
    slope: float
    volatility: float
    alerting: bool


class ChartPoint(BaseModel):
    """One plotted point: a day key (or raw timestamp) and three metrics."""

    created_at: str
    clarity_score: float
    immune_score: float
    physical_score: float


class ChartSeries(BaseModel):
    """Parallel arrays consumed by the dashboard chart."""

    labels: list[str]
    clarityData: list[float]
    immuneData: list[float]
    physicalData: list[float]


class WeeklySummary(BaseModel):
    """Aggregates of last week's logs fed to the weekly review prompt."""

    log_count: int
    avg_clarity: float
    avg_immune: float
    avg_physical: float
    top_tags: list[str]
    goal_value: Optional[int] = None
    goal_met: Optional[bool] = None
