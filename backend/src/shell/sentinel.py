"""Trend Sentinel - Scheduled scan that nudges users whose scores are sliding.

For every user: skip if a nudge was created in the last 24 hours, load the
last 7 days of logs, run the trend detector and, if a metric is alerting,
ask the model to phrase a nudge and store it. At most one nudge per user
per run.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..core.models import Nudge, NudgeContent, utcnow
from ..core.parsing import Err
from ..core.prompts import build_nudge_prompt
from ..core.trends import MIN_POINTS, find_alerting_metric
from .firestore_client import FirestoreConfig, LightCoreFirestoreClient, StoreError
from .gemini_client import GeminiClient, GeminiConfig


logger = logging.getLogger(__name__)

COOLDOWN = timedelta(hours=24)
LOOKBACK = timedelta(days=7)

DEFAULT_HEADLINE = "Trend Alert"
DEFAULT_BODY = "A trend was detected in your health data."


@dataclass
class SentinelReport:
    """Outcome counts for one sentinel run."""

    checked: int = 0
    skipped_cooldown: int = 0
    nudged: list[str] = field(default_factory=list)
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "skipped_cooldown": self.skipped_cooldown,
            "nudges_created": len(self.nudged),
            "failed": self.failed,
        }


async def check_user(
    db: LightCoreFirestoreClient, llm: GeminiClient, user_id: str, now: datetime
) -> Nudge | None:
    """Run the trend check for one user.

    Returns:
        The stored nudge, or None if the user was not nudged
    """
    logs = db.get_logs_range(user_id, now - LOOKBACK)
    if len(logs) < MIN_POINTS:
        return None

    trend = find_alerting_metric(logs)
    if trend is None:
        return None

    logger.info(
        "Alerting trend for %s: %s (slope=%.2f, volatility=%.2f)",
        user_id[:8], trend.metric, trend.slope, trend.volatility,
    )
    result = await llm.generate_model(build_nudge_prompt(trend.metric), NudgeContent)
    if isinstance(result, Err):
        logger.warning("Skipping nudge for %s: %s", user_id[:8], result.reason)
        return None

    content = result.value
    nudge = Nudge(
        user_id=user_id,
        headline=content.headline or DEFAULT_HEADLINE,
        body_text=content.body_text or DEFAULT_BODY,
        suggested_actions=content.suggested_actions,
        created_at=now,
    )
    return db.add_nudge(nudge)


async def run_sentinel(
    db: LightCoreFirestoreClient, llm: GeminiClient, now: datetime | None = None
) -> SentinelReport:
    """Scan every user once.

    A store failure for one user is logged and the scan moves on.
    """
    now = now or utcnow()
    report = SentinelReport()

    for user_id in db.list_user_ids():
        report.checked += 1
        try:
            if db.has_recent_nudge(user_id, now - COOLDOWN):
                report.skipped_cooldown += 1
                continue
            nudge = await check_user(db, llm, user_id, now)
        except StoreError as e:
            logger.error("Sentinel failed for %s: %s", user_id[:8], str(e))
            report.failed += 1
            continue
        if nudge is not None:
            report.nudged.append(user_id)

    logger.info("Sentinel run complete: %s", report.to_dict())
    return report


def main() -> None:
    """Console entry point for a scheduler (Cloud Scheduler, cron)."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    db = LightCoreFirestoreClient(
        FirestoreConfig(
            project_id=os.environ.get("FIRESTORE_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE", "lightcore"),
        )
    )
    asyncio.run(run_sentinel(db, GeminiClient(GeminiConfig.from_env())))


if __name__ == "__main__":
    main()
