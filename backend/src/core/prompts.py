"""Prompt Building - Pure functions serializing user context for the LLM.

Each builder takes already-fetched records and returns prompt text. Item
counts are capped so prompts stay bounded no matter how much history exists.

All functions are pure: same input always produces same output, no side effects.
"""

import json
from datetime import date, datetime
from typing import Optional, Sequence

from .models import BrainContext, EventType, Goal, LogEntry, WeeklySummary
from .scores import SCORE_BANDS


HISTORY_LIMIT = 3
CONTEXT_LOG_LIMIT = 7
CONTEXT_EVENT_LIMIT = 15
INSIGHT_LIMIT = 30
SNIPPET_LENGTH = 75

FUZZY_TIME_MAP: dict[str, str] = {
    "breakfast": "08:00", "lunch": "12:30", "dinner": "19:00",
    "midnight": "00:00", "dead of night": "00:00", "early hours": "01:00",
    "middle of the night": "02:00", "deep night": "02:00",
    "pre-dawn": "04:00", "crack of dawn": "05:00",
    "before sunrise": "05:00", "early morning": "06:00", "sunrise": "06:00",
    "just after sunrise": "07:00", "morning": "08:00",
    "beginning of the workday": "09:00", "mid-morning": "10:00",
    "late morning": "11:00", "almost noon": "11:30",
    "noon": "12:00", "midday": "12:00", "just after lunch": "13:00",
    "early afternoon": "14:00", "afternoon": "15:00",
    "late afternoon": "16:00", "early evening": "17:00",
    "dinnertime": "18:00", "evening": "19:00",
    "after dinner": "20:00", "late evening": "21:00",
    "before bed": "22:30", "late night": "23:00",
}


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    return f"{value:g}"


def _short_date(instant: datetime) -> str:
    return f"{instant:%b} {instant.day}"


def snippet(text: Optional[str], length: int = SNIPPET_LENGTH) -> str:
    """Truncate text for inclusion in a prompt."""
    text = text or ""
    return text if len(text) <= length else f"{text[:length]}..."


# ==================== Context Blocks ====================


def format_history_context(recent_logs: Sequence[LogEntry]) -> str:
    """Recent scores, newest first, for trend-aware analysis."""
    if not recent_logs:
        return "No recent history available."

    lines = ["User's Recent Scores (for trend context):"]
    for index, log in enumerate(recent_logs[:HISTORY_LIMIT]):
        day = "Yesterday" if index == 0 else f"{index + 1} days ago"
        lines.append(
            f"- {day}: Clarity={_fmt(log.clarity_score)}, "
            f"Immune={_fmt(log.immune_score)}, Physical={_fmt(log.physical_score)}"
        )
    return "\n".join(lines)


def format_goal_context(goal: Optional[Goal]) -> str:
    if goal is None:
        return "User has no active weekly goal."
    return f"User's active weekly goal is to log {goal.goal_value} days."


def format_brain_context(ctx: BrainContext) -> str:
    """Serialize the full guidance context into one text block."""
    out = ["Here is a summary of the user's recent health data:", ""]

    if ctx.user_summary:
        out += ["=== Your Previous Summary of the User ===", f'"{ctx.user_summary}"', ""]
    if ctx.ai_persona_memo:
        out += ["=== Your Internal Memos About This User ===", f'"{ctx.ai_persona_memo}"', ""]

    if ctx.recent_logs:
        out.append("=== User's Most Recent Logs & Scores ===")
        for log in ctx.recent_logs[:CONTEXT_LOG_LIMIT]:
            scores = (
                f"Clarity: {_fmt(log.clarity_score)}, Immune: {_fmt(log.immune_score)}, "
                f"Physical: {_fmt(log.physical_score)}"
            )
            out.append(f'[{_short_date(log.created_at)}] Scores: {scores} | Log: "{snippet(log.log)}"')
        out.append("")

    if ctx.recent_events:
        out.append("=== User's Recent Timed Events (ChronoDeck) ===")
        for event in ctx.recent_events[:CONTEXT_EVENT_LIMIT]:
            out.append(
                f"- {event.event_type} at {event.event_time:%H:%M} on {_short_date(event.event_time)}"
            )
        out.append("")

    if ctx.recent_insights:
        out.append("=== Past Insights You've Already Given ===")
        out.append("Avoid repeating these points.")
        for insight in ctx.recent_insights[:INSIGHT_LIMIT]:
            out.append(f'- "{insight}"')
        out.append("")

    return "\n".join(out)


def has_signal(ctx: BrainContext) -> bool:
    """Whether there is anything to base guidance on."""
    return bool(ctx.recent_logs or ctx.recent_events)


# ==================== Prompt Builders ====================


def _rubric() -> str:
    return "\n".join(
        f'{low}-{high}: "{label}" -> {color}' for low, high, label, color in SCORE_BANDS
    )


def build_analysis_prompt(
    log_text: str,
    sleep_hours: Optional[float],
    sleep_quality: Optional[str],
    recent_logs: Sequence[LogEntry],
    goal: Optional[Goal],
) -> str:
    """Prompt asking for clarity/immune/physical scores, notes and tags."""
    return f"""You are LightCore, an elite health-and-performance AI designed to process daily user logs.
Analyze the log entry and produce a complete, empathetic, trend-aware JSON response with this schema:

{{
  "clarity": {{ "score": <1-10>, "label": "<label>", "color_hex": "<#hex>" }},
  "immune": {{ "score": <1-10>, "label": "<label>", "color_hex": "<#hex>" }},
  "physical": {{ "score": <1-10>, "label": "<label>", "color_hex": "<#hex>" }},
  "notes": "<short supportive summary>",
  "tags": ["<tag1>", "<tag2>"]
}}

OUTPUT RULES:
Always return valid JSON with every field populated.
Every score must be between 1 and 10 with the matching label and color:
{_rubric()}
"notes" must be supportive and acknowledge mood, environment and trends.
"tags" must be 3-5 lowercase words taken from the log.

SCORING LOGIC:
Clarity: focus, energy, motivation, mood, absence of fog.
Immune: penalize stress, poor sleep and low recovery; reward rest and calm.
Physical: sleep under 6h lowers the score significantly; soreness or resting affects readiness;
hydration, activity and diet are minor boosts only; 9-10 is reserved for exceptional readiness.

CONTEXT:
This log: "{log_text}"
Sleep: {_fmt(sleep_hours)} hrs, Quality: {sleep_quality or "N/A"}
Recent Trends:
{format_history_context(recent_logs)}
Weekly Goal: {format_goal_context(goal)}

<reasoning>
(Think step-by-step about sleep, mood, movement, context, trends.)
</reasoning>
Then, output the final JSON analysis."""


def build_event_prompt(log_text: str, tz_name: str, user_today: date) -> str:
    """Prompt asking for a JSON array of timed events found in the log."""
    valid_types = ", ".join(f"'{t.value}'" for t in EventType)
    return f"""You are a precise data extractor. Extract timed events from the user's log entry.
First think step-by-step in a <reasoning> block, then output only a valid JSON array of objects.

CONTEXT:
- The user is in the timezone "{tz_name}". Interpret all times in this timezone.
- Today's date for creating timestamps is {user_today.isoformat()}.

TIME RULES (in order of priority):
1. Precise time: use a specific time such as "8am", "around 3 PM" or "14:30" when present.
2. Fuzzy time: otherwise use the mapped time of any phrase from {json.dumps(FUZZY_TIME_MAP)}.

EVENT RULES:
- Valid event types are ONLY: {valid_types}.
- Only extract events with a clear time reference; ignore activities without one.
- A time range ("workout from 9 to 10am") becomes TWO events of the same type, one at the start and one at the end.
- Each object has "event_type" and "event_time" (full ISO 8601 timestamp with offset).
- Do not create a 'Sleep' event for waking up or getting out of bed.

User Log: "{log_text}"
"""


def build_guidance_prompt(ctx: BrainContext) -> str:
    """Prompt asking for user guidance plus an update of the model's memory."""
    return (
        "You are LightCore - a unified, personalized health AI guide. "
        "Review the user's context and produce ONE valid JSON object.\n\n"
        "Top-level keys:\n"
        '- "guidance_for_user": { "current_state", "positives", "concerns", "suggestions" }\n'
        '- "memory_update": { "new_user_summary", "new_ai_persona_memo" }\n\n'
        "Guidelines: Be app-aware (use LightCore features), be specific (1-3 day experiments), "
        "no external apps, no medical advice.\n\n"
        "Output JSON only. No extra text.\n\n"
        f"DATA CONTEXT:\n{format_brain_context(ctx)}"
    )


def build_nudge_prompt(metric: str) -> str:
    return (
        f'A user\'s metric "{metric}" is showing a significant, stable downward trend over the last 7 days. '
        'Generate a JSON object for a proactive nudge with "headline" (string), '
        '"body_text" (string, 2-3 sentences), and "suggested_actions" (array of strings).'
    )


def build_weekly_review_prompt(summary: WeeklySummary) -> str:
    """Prompt asking for a short encouraging review of last week."""
    if summary.goal_value is None:
        goal_line = "No goal was set."
    else:
        goal_line = (
            f"Their goal was to log {summary.goal_value} times. "
            f"They met this goal: {str(summary.goal_met).lower()}."
        )
    tags = ", ".join(summary.top_tags) if summary.top_tags else "none recorded"

    return f"""You are Lightcore, a personal health guide. Write a short, encouraging "Weekly Review" based on last week's data.

Respond with a single valid JSON object with the keys "headline", "narrative" and "key_takeaway":
- "headline": a short, engaging title for the review.
- "narrative": 2-3 sentences connecting goal progress and top themes to the average scores.
- "key_takeaway": one specific, actionable piece of advice for the week ahead.

Summary of last week:
- Goal Progress: {goal_line}
- They logged data {summary.log_count} times.
- Average Scores: Mental Clarity {summary.avg_clarity:.1f}, Immune Risk {summary.avg_immune:.1f}, Physical Output {summary.avg_physical:.1f}.
- The most common themes in their logs were: {tags}."""
