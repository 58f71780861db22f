"""HTTP Handlers - Authenticated JSON endpoints for the LightCore dashboard.

Each handler resolves the caller from the bearer token, reads or writes that
user's Firestore data, and for AI-backed routes builds a prompt, calls the
model and shapes the reply. Business rules live in the core module.
"""

import asyncio
import functools
import logging
import os
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable

from pydantic import TypeAdapter
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..core.charts import build_chart_series, chart_window, start_of_local_day
from ..core.goals import is_valid_goal_type
from ..core.models import (
    BrainContext,
    Event,
    ExtractedEvent,
    Guidance,
    GuidanceReply,
    LogAnalysis,
    LogEntry,
    WeeklyReview,
    utcnow,
)
from ..core.parsing import Err, parse_reply, parse_reply_list
from ..core.prompts import (
    CONTEXT_EVENT_LIMIT,
    CONTEXT_LOG_LIMIT,
    HISTORY_LIMIT,
    INSIGHT_LIMIT,
    build_analysis_prompt,
    build_event_prompt,
    build_guidance_prompt,
    build_weekly_review_prompt,
    has_signal,
)
from ..core.reports import (
    DEFAULT_WEEKLY_GOAL,
    count_distinct_days,
    days_logged_between,
    last_week_range,
    start_of_week,
    weekly_summary,
)
from ..core.scores import ensure_score_field
from ..core.streaks import calculate_streak, local_date
from .auth import AuthClient, AuthError
from .firestore_client import FirestoreConfig, LightCoreFirestoreClient, StoreError
from .gemini_client import GeminiClient, GeminiConfig
from .sentinel import run_sentinel


logger = logging.getLogger(__name__)

RECENT_LOG_LIMIT = 10
MAX_PAGE_SIZE = 100
MAX_RANGE_DAYS = 365
UI_MODES = {"classic", "matrix"}

_JSON_ADAPTER = TypeAdapter(Any)

STARTER_GUIDANCE = Guidance(
    current_state="Log data for a few days to start generating personalized guidance.",
    positives=[],
    concerns=[],
    suggestions=[
        "Tap '+ LOG' to add a quick entry today",
        "Try a 'Meal' or 'Caffeine' event to seed the timeline",
    ],
)

# Lazy-initialized clients
_firestore_client: LightCoreFirestoreClient | None = None
_auth_client: AuthClient | None = None
_llm_client: GeminiClient | None = None


def get_firestore_client() -> LightCoreFirestoreClient:
    """Get or create Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        config = FirestoreConfig(
            project_id=os.environ.get("FIRESTORE_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE", "lightcore"),
        )
        _firestore_client = LightCoreFirestoreClient(config)
    return _firestore_client


def get_auth_client() -> AuthClient:
    """Get or create Auth client."""
    global _auth_client
    if _auth_client is None:
        _auth_client = AuthClient(get_firestore_client().client)
    return _auth_client


def get_llm_client() -> GeminiClient:
    """Get or create Gemini client."""
    global _llm_client
    if _llm_client is None:
        _llm_client = GeminiClient(GeminiConfig.from_env())
    return _llm_client


# ==================== Request Plumbing ====================


@dataclass
class UserScope:
    """Data handle bound to the authenticated caller for one request."""

    user_id: str
    db: LightCoreFirestoreClient

    @property
    def short_id(self) -> str:
        return self.user_id[:8]


Handler = Callable[[Request, UserScope], Awaitable[JSONResponse]]


def authenticated(handler: Handler) -> Callable[[Request], Awaitable[JSONResponse]]:
    """Resolve the bearer token and pass a UserScope to the handler.

    Missing or unknown tokens give 401. HTTPExceptions pass through to the
    app's handler; anything else is logged and returned as a 500 carrying
    the error message.
    """

    @functools.wraps(handler)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            user_id = get_auth_client().get_user_id(request.headers.get("Authorization"))
        except AuthError as e:
            logger.warning("%s rejected: %s", handler.__name__, str(e))
            return JSONResponse({"error": str(e)}, status_code=401)

        scope = UserScope(user_id=user_id, db=get_firestore_client())
        try:
            return await handler(request, scope)
        except HTTPException:
            raise
        except Exception as e:
            logger.error("%s failed for %s: %s", handler.__name__, scope.short_id, str(e))
            return JSONResponse({"error": str(e)}, status_code=500)

    return wrapper


async def read_json(request: Request) -> dict[str, Any]:
    """Parse a JSON object body or fail with 400."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON.")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object.")
    return body


def query_int(request: Request, name: str, default: int, minimum: int = 0, maximum: int | None = None) -> int:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"'{name}' must be an integer.")
    if value < minimum or (maximum is not None and value > maximum):
        raise HTTPException(status_code=400, detail=f"'{name}' is out of range.")
    return value


def query_date(request: Request, name: str, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime query parameter as a UTC instant."""
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"'{name}' must be an ISO date.")
    if end_of_day and len(raw) == 10:
        value = datetime.combine(value.date(), time.max)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def timezone_param(request: Request) -> str:
    return request.query_params.get("tz") or "UTC"


def optional_sleep_hours(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="sleep_hours must be a number.")
    if not 0 <= hours <= 24:
        raise HTTPException(status_code=400, detail="sleep_hours must be between 0 and 24.")
    return hours


def dump(value: Any) -> Any:
    """JSON-ready form of models, lists of models and raw Firestore dicts."""
    return _JSON_ADAPTER.dump_python(value, mode="json")


# ==================== Log Handlers ====================


@authenticated
async def analyze_log(request: Request, scope: UserScope) -> JSONResponse:
    """Score a new log entry, store it and advance the streak."""
    body = await read_json(request)
    log_text = body.get("log")
    if not isinstance(log_text, str) or not log_text.strip():
        raise HTTPException(status_code=400, detail="Log text is required.")
    sleep_hours = optional_sleep_hours(body.get("sleep_hours"))
    sleep_quality = body.get("sleep_quality") or None
    tz_name = body.get("userTimezone") or "UTC"

    db = scope.db
    recent = db.get_recent_logs(scope.user_id, HISTORY_LIMIT)
    goal = db.get_active_goal(scope.user_id)

    prompt = build_analysis_prompt(log_text, sleep_hours, sleep_quality, recent, goal)
    text = await get_llm_client().generate(prompt)
    result = parse_reply(text, LogAnalysis)
    if isinstance(result, Err):
        logger.error("Analysis reply unusable for %s: %s", scope.short_id, result.reason)
        raise HTTPException(status_code=500, detail="Could not generate analysis for this log.")

    analysis = result.value
    clarity = ensure_score_field(analysis.clarity)
    immune = ensure_score_field(analysis.immune)
    physical = ensure_score_field(analysis.physical)
    now = utcnow()

    entry = db.add_log(
        LogEntry(
            user_id=scope.user_id,
            created_at=now,
            log=log_text,
            sleep_hours=sleep_hours,
            sleep_quality=sleep_quality,
            clarity_score=clarity.score,
            clarity_label=clarity.label,
            clarity_color=clarity.color_hex,
            immune_score=immune.score,
            immune_label=immune.label,
            immune_color=immune.color_hex,
            physical_score=physical.score,
            physical_label=physical.label,
            physical_color=physical.color_hex,
            ai_notes=analysis.notes,
            tags=analysis.tags,
        )
    )
    db.touch_brain_context(scope.user_id, entry.id)

    profile = db.get_profile(scope.user_id)
    streak = calculate_streak(profile.last_log_date, profile.streak_count, now, tz_name)
    db.save_streak(scope.user_id, streak)

    logger.info("Analyzed log %s for %s (streak %d)", entry.id[:8], scope.short_id, streak.streak_count)
    return JSONResponse({**dump(entry), "streak_count": streak.streak_count})


@authenticated
async def parse_events(request: Request, scope: UserScope) -> JSONResponse:
    """Extract timed events from a stored log's text."""
    body = await read_json(request)
    log_id = body.get("log_id")
    log_text = body.get("log_text")
    tz_name = body.get("userTimezone")
    if not log_id or not log_text or not tz_name:
        raise HTTPException(status_code=400, detail="log_id, log_text and userTimezone are required.")

    user_today = local_date(utcnow(), tz_name)
    text = await get_llm_client().generate(build_event_prompt(log_text, tz_name, user_today))
    result = parse_reply_list(text, ExtractedEvent)
    if isinstance(result, Err):
        logger.warning("No events parsed for %s: %s", scope.short_id, result.reason)
        return JSONResponse({"events": []})

    events = [
        Event(user_id=scope.user_id, log_id=log_id, event_type=e.event_type, event_time=e.event_time)
        for e in result.value
    ]
    scope.db.add_events(events)
    return JSONResponse({"events": dump(events)})


@authenticated
async def recent_logs(request: Request, scope: UserScope) -> JSONResponse:
    return JSONResponse(dump(scope.db.get_recent_logs(scope.user_id, RECENT_LOG_LIMIT)))


@authenticated
async def chart_data(request: Request, scope: UserScope) -> JSONResponse:
    """Chart series for the last ``range`` local days."""
    range_days = query_int(request, "range", 7, minimum=1, maximum=MAX_RANGE_DAYS)
    start, end = chart_window(timezone_param(request), range_days, utcnow())
    logs = scope.db.get_logs_range(scope.user_id, start, end)
    return JSONResponse(build_chart_series(logs, range_days).model_dump())


@authenticated
async def list_events(request: Request, scope: UserScope) -> JSONResponse:
    days = query_int(request, "days", 7, minimum=1, maximum=MAX_RANGE_DAYS)
    events = scope.db.get_events(scope.user_id, since=utcnow() - timedelta(days=days))
    return JSONResponse(dump(events))


@authenticated
async def past_insights(request: Request, scope: UserScope) -> JSONResponse:
    """Paged history of AI notes, newest first."""
    limit = query_int(request, "limit", 20, minimum=1, maximum=MAX_PAGE_SIZE)
    offset = query_int(request, "offset", 0)
    start = query_date(request, "startDate")
    end = query_date(request, "endDate", end_of_day=True)

    insights, count = scope.db.get_insights(scope.user_id, limit, offset, start, end)
    return JSONResponse({"insights": dump(insights), "count": count})


# ==================== Dashboard ====================


@authenticated
async def dashboard(request: Request, scope: UserScope) -> JSONResponse:
    """Everything the dashboard shows, read concurrently.

    Each read is optional: a failure is logged and its panel shows the
    empty value instead of failing the whole response.
    """
    tz_name = timezone_param(request)
    now = utcnow()
    today = local_date(now, tz_name)
    week_start = start_of_local_day(tz_name, 6, now)
    db, uid = scope.db, scope.user_id

    async def optional(name: str, read: Callable[..., Any], *args: Any, default: Any = None) -> Any:
        try:
            return await run_in_threadpool(read, *args)
        except Exception as e:
            logger.warning("Dashboard %s read failed for %s: %s", name, scope.short_id, str(e))
            return default

    recent, timestamps, goal, events, nudge, cached, memory = await asyncio.gather(
        optional("recent logs", db.get_recent_logs, uid, RECENT_LOG_LIMIT, default=[]),
        optional("log timestamps", db.get_log_timestamps, uid, default=[]),
        optional("goal", db.get_active_goal, uid),
        optional("events", db.get_events, uid, week_start, default=[]),
        optional("nudge", db.get_latest_nudge, uid),
        optional("guidance", db.get_cached_guidance, uid),
        optional("memory", db.get_brain_memory, uid, default={}),
    )

    guidance = cached or Guidance(current_state=memory.get("user_summary") or "Unable to load guidance.")
    progress = days_logged_between(timestamps, tz_name, today - timedelta(days=6), today)

    return JSONResponse(
        {
            "weeklySummaryData": {
                "progress": progress,
                "goal": {"goal_value": goal.goal_value if goal else DEFAULT_WEEKLY_GOAL},
            },
            "chronoDeckData": dump(events),
            "nudgeData": dump(nudge),
            "recentEntriesData": dump(recent),
            "lightcoreGuideData": guidance.model_dump(),
            "logCount": count_distinct_days(timestamps, tz_name),
        }
    )


# ==================== Goal Handlers ====================


@authenticated
async def goals(request: Request, scope: UserScope) -> JSONResponse:
    if request.method == "GET":
        return JSONResponse({"goal": dump(scope.db.get_active_goal(scope.user_id))})

    body = await read_json(request)
    goal_type = body.get("goal_type")
    goal_value = body.get("goal_value")
    if not is_valid_goal_type(goal_type):
        raise HTTPException(status_code=400, detail="A valid goal_type is required.")
    if isinstance(goal_value, bool) or not isinstance(goal_value, int) or goal_value <= 0:
        raise HTTPException(status_code=400, detail="goal_value must be a positive integer.")

    goal = scope.db.set_active_goal(scope.user_id, goal_type, goal_value)
    return JSONResponse({"goal": dump(goal)})


@authenticated
async def goal_progress(request: Request, scope: UserScope) -> JSONResponse:
    """Active goal plus distinct days logged since Sunday."""
    tz_name = timezone_param(request)
    today = local_date(utcnow(), tz_name)
    goal = scope.db.get_active_goal(scope.user_id)
    timestamps = scope.db.get_log_timestamps(scope.user_id)
    progress = days_logged_between(timestamps, tz_name, start_of_week(today), today)
    return JSONResponse({"goal": dump(goal), "progress": progress})


# ==================== Nudge Handlers ====================


@authenticated
async def latest_nudge(request: Request, scope: UserScope) -> JSONResponse:
    return JSONResponse({"nudge": dump(scope.db.get_latest_nudge(scope.user_id))})


@authenticated
async def acknowledge_nudge(request: Request, scope: UserScope) -> JSONResponse:
    body = await read_json(request)
    nudge_id = body.get("nudgeId")
    if not nudge_id or not isinstance(nudge_id, str):
        raise HTTPException(status_code=400, detail="nudgeId is required.")
    if not scope.db.acknowledge_nudge(scope.user_id, nudge_id):
        raise HTTPException(status_code=400, detail="Nudge not found.")
    return JSONResponse({"success": True})


# ==================== Guidance Handlers ====================


def load_brain_context(db: LightCoreFirestoreClient, user_id: str) -> BrainContext:
    """Stored memory plus logs, events and insights read fresh from source."""
    memory = db.get_brain_memory(user_id)
    insights, _ = db.get_insights(user_id, limit=INSIGHT_LIMIT)
    return BrainContext(
        user_id=user_id,
        recent_logs=db.get_recent_logs(user_id, CONTEXT_LOG_LIMIT),
        recent_events=db.get_events(user_id, limit=CONTEXT_EVENT_LIMIT, newest_first=True),
        recent_insights=[i["insight_text"] for i in insights],
        user_summary=memory.get("user_summary"),
        ai_persona_memo=memory.get("ai_persona_memo"),
    )


@authenticated
async def generate_guidance(request: Request, scope: UserScope) -> JSONResponse:
    """Ask the model for guidance and let it rewrite its memory of the user."""
    ctx = load_brain_context(scope.db, scope.user_id)
    if not has_signal(ctx):
        logger.info("No logs or events for %s, returning starter guidance", scope.short_id)
        return JSONResponse({"guidance": STARTER_GUIDANCE.model_dump()})

    llm = get_llm_client()
    result = await llm.generate_model(
        build_guidance_prompt(ctx), GuidanceReply, model=llm.config.guidance_model
    )
    if isinstance(result, Err):
        logger.error("Guidance failed for %s: %s", scope.short_id, result.reason)
        raise HTTPException(status_code=500, detail="Sorry, I couldn't generate guidance right now.")

    reply = result.value
    if reply.memory_update is not None:
        scope.db.save_brain_memory(scope.user_id, reply.memory_update)
    scope.db.save_guidance(scope.user_id, reply.guidance_for_user)
    return JSONResponse({"guidance": reply.guidance_for_user.model_dump()})


@authenticated
async def weekly_review(request: Request, scope: UserScope) -> JSONResponse:
    """Review of the previous Sunday to Saturday week."""
    tz_name = timezone_param(request)
    now = utcnow()
    today = local_date(now, tz_name)
    first, last = last_week_range(today)
    start = start_of_local_day(tz_name, (today - first).days, now)
    end = start_of_local_day(tz_name, (today - last).days - 1, now)

    logs = scope.db.get_logs_range(scope.user_id, start, end)
    summary = weekly_summary(logs, scope.db.get_active_goal(scope.user_id))
    if summary is None:
        return JSONResponse(
            {"review": None, "message": "Not enough data from last week to generate a review."}
        )

    result = await get_llm_client().generate_model(build_weekly_review_prompt(summary), WeeklyReview)
    if isinstance(result, Err):
        logger.error("Weekly review failed for %s: %s", scope.short_id, result.reason)
        raise HTTPException(status_code=500, detail="Could not generate your weekly review.")
    return JSONResponse({"review": result.value.model_dump(), "summary": summary.model_dump()})


# ==================== Account Handlers ====================


@authenticated
async def user_settings(request: Request, scope: UserScope) -> JSONResponse:
    if request.method == "GET":
        profile = scope.db.get_profile(scope.user_id)
        return JSONResponse(
            {"preferred_ui": profile.preferred_ui, "streak_count": profile.streak_count}
        )

    body = await read_json(request)
    settings = body.get("settings")
    if not isinstance(settings, dict) or not settings.get("preferred_ui"):
        raise HTTPException(status_code=400, detail="Missing settings payload.")
    if settings["preferred_ui"] not in UI_MODES:
        raise HTTPException(status_code=400, detail="Unknown preferred_ui.")
    scope.db.set_preferred_ui(scope.user_id, settings["preferred_ui"])
    return JSONResponse({"message": "Settings updated successfully."})


@authenticated
async def export_data(request: Request, scope: UserScope) -> JSONResponse:
    """All of the caller's data as a downloadable JSON file."""
    try:
        data = scope.db.export_user_data(scope.user_id)
    except StoreError as e:
        logger.error("Export failed for %s: %s", scope.short_id, str(e))
        raise HTTPException(status_code=500, detail="Export failed.")
    filename = f"lightcore-export-{utcnow():%Y-%m-%d}.json"
    return JSONResponse(
        dump(data),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@authenticated
async def delete_my_data(request: Request, scope: UserScope) -> JSONResponse:
    """Remove the account and everything under it."""
    try:
        scope.db.delete_user_data(scope.user_id)
    except StoreError as e:
        logger.error("Delete failed for %s: %s", scope.short_id, str(e))
        raise HTTPException(status_code=500, detail="Delete request failed.")
    return JSONResponse({"success": True, "message": "All of your data has been deleted."})


# ==================== Sentinel Trigger ====================


async def trend_sentinel(request: Request) -> JSONResponse:
    """Run the trend sentinel over every user.

    Guarded by the X-Sentinel-Secret header when SENTINEL_SECRET is set.
    """
    secret = os.environ.get("SENTINEL_SECRET")
    if secret and request.headers.get("X-Sentinel-Secret") != secret:
        return JSONResponse({"error": "Not authorized."}, status_code=401)
    try:
        report = await run_sentinel(get_firestore_client(), get_llm_client())
    except StoreError as e:
        logger.error("Sentinel run failed: %s", str(e))
        return JSONResponse({"error": str(e)}, status_code=500)
    return JSONResponse({"message": "Sentinel run complete.", **report.to_dict()})
