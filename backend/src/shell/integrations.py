"""Integration Handlers - Google Fit connection and daily steps.

The start route issues a one-time state bound to the caller; the callback
consumes it, exchanges the code and stores the tokens. Step reads never
fail the dashboard: any problem yields ``{steps: 0, stale: true}``.
"""

import logging
import os

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse

from ..core.charts import chart_window
from ..core.models import OAuthState, utcnow
from .google_fit import (
    PROVIDER,
    FitUnavailable,
    GoogleFitClient,
    GoogleFitConfig,
    OAuthError,
    build_auth_url,
    generate_state,
    integration_from_tokens,
    needs_refresh,
)
from .handlers import UserScope, authenticated, get_firestore_client, read_json, timezone_param


logger = logging.getLogger(__name__)

STALE_STEPS = {"steps": 0, "stale": True}

_fit_client: GoogleFitClient | None = None


def get_fit_client() -> GoogleFitClient:
    """Get or create Google Fit client."""
    global _fit_client
    if _fit_client is None:
        _fit_client = GoogleFitClient(GoogleFitConfig.from_env())
    return _fit_client


def app_url() -> str:
    return os.environ.get("APP_URL", "https://lightcorehealth.app")


@authenticated
async def google_start(request: Request, scope: UserScope) -> JSONResponse:
    """Begin the OAuth flow and hand back the consent URL."""
    fit = get_fit_client()
    if not fit.config.client_id:
        raise HTTPException(status_code=500, detail="Google integration is not configured.")

    state = generate_state()
    scope.db.save_oauth_state(OAuthState(state_value=state, user_id=scope.user_id))
    logger.info("Started Google OAuth for %s", scope.short_id)
    return JSONResponse({"authUrl": build_auth_url(fit.config, state)})


async def google_callback(request: Request) -> RedirectResponse:
    """OAuth redirect target: validate state, store tokens, return to the app."""
    if request.query_params.get("error"):
        logger.warning("Google OAuth denied: %s", request.query_params["error"])
        return RedirectResponse(f"{app_url()}?integration=denied", status_code=302)

    code = request.query_params.get("code")
    state = request.query_params.get("state")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing authorization code or state.")

    db = get_firestore_client()
    user_id = db.consume_oauth_state(state)
    if user_id is None:
        raise HTTPException(status_code=400, detail="Invalid or expired state.")

    try:
        tokens = await get_fit_client().exchange_code(code)
    except OAuthError as e:
        raise HTTPException(status_code=500, detail=str(e))

    previous = db.get_integration(user_id, PROVIDER)
    db.save_integration(integration_from_tokens(user_id, tokens, utcnow(), previous=previous))
    logger.info("Connected Google Fit for %s", user_id[:8])
    return RedirectResponse(f"{app_url()}?integration=success", status_code=302)


@authenticated
async def steps(request: Request, scope: UserScope) -> JSONResponse:
    """Today's step count in the caller's timezone."""
    tz_name = timezone_param(request)
    now = utcnow()
    fit = get_fit_client()

    try:
        integration = scope.db.get_integration(scope.user_id, PROVIDER)
        if integration is None:
            return JSONResponse(STALE_STEPS)

        if needs_refresh(integration, now):
            integration = await fit.refresh_access_token(integration)
            scope.db.save_integration(integration)

        start, end = chart_window(tz_name, 1, now)
        count = await fit.aggregate_steps(integration.access_token, start, end)
    except (OAuthError, FitUnavailable) as e:
        logger.warning("Steps unavailable for %s: %s", scope.short_id, str(e))
        return JSONResponse(STALE_STEPS)
    except Exception as e:
        logger.error("Steps read failed for %s: %s", scope.short_id, str(e))
        return JSONResponse(STALE_STEPS)

    return JSONResponse(
        {
            "steps": count,
            "tz": tz_name,
            "range": {"start": int(start.timestamp() * 1000), "end": int(end.timestamp() * 1000)},
        }
    )


@authenticated
async def delete_integration(request: Request, scope: UserScope) -> JSONResponse:
    body = await read_json(request)
    provider = body.get("provider") or PROVIDER
    scope.db.delete_integration(scope.user_id, provider)
    return JSONResponse({"success": True})
