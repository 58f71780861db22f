"""LightCore API - Entry point.

Runs the Starlette app with uvicorn for Cloud Run deployment.
"""

import logging
import os

import uvicorn
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .shell import handlers, integrations
from .shell.handlers import get_auth_client, read_json


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "https://lightcorehealth.app,http://localhost:5173"


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "lightcore-api"})


async def register_user(request: Request) -> JSONResponse:
    """Register a new user and return their API key."""
    body = await read_json(request)
    email = body.get("email")
    if not isinstance(email, str) or "@" not in email:
        return JSONResponse({"error": "Valid email is required"}, status_code=400)

    try:
        api_key, _ = get_auth_client().register_user(email)
    except Exception as e:
        logger.error("Registration failed: %s", str(e))
        return JSONResponse({"error": "Registration failed."}, status_code=500)

    return JSONResponse({
        "api_key": api_key,
        "message": "Registration successful! Save your API key - it won't be shown again.",
    })


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await request.json()
        api_key = body.get("api_key")

        if not api_key:
            return JSONResponse({"valid": False, "error": "API key required"})

        user_id = get_auth_client().validate_api_key(api_key)
        return JSONResponse({"valid": user_id is not None})

    except Exception as e:
        logger.error("Validation failed: %s", str(e))
        return JSONResponse({"valid": False, "error": "Validation failed"})


async def http_error(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": detail}``."""
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def server_error(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 for routes outside the authenticated wrapper."""
    logger.error("Unhandled error on %s: %s", request.url.path, str(exc), exc_info=exc)
    return JSONResponse({"error": str(exc)}, status_code=500)


# ==================== Create ASGI App ====================


def create_app() -> Starlette:
    """Create the Starlette application with all LightCore routes."""
    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/register", register_user, methods=["POST"]),
        Route("/auth/validate", validate_key, methods=["POST"]),
        # Logs
        Route("/analyze-log", handlers.analyze_log, methods=["POST"]),
        Route("/parse-events", handlers.parse_events, methods=["POST"]),
        Route("/recent-logs", handlers.recent_logs, methods=["GET"]),
        Route("/chart-data", handlers.chart_data, methods=["GET"]),
        Route("/events", handlers.list_events, methods=["GET"]),
        Route("/past-insights", handlers.past_insights, methods=["GET"]),
        Route("/dashboard", handlers.dashboard, methods=["GET"]),
        # Goals and nudges
        Route("/goals", handlers.goals, methods=["GET", "POST"]),
        Route("/goal-progress", handlers.goal_progress, methods=["GET"]),
        Route("/nudges", handlers.latest_nudge, methods=["GET"]),
        Route("/nudges/acknowledge", handlers.acknowledge_nudge, methods=["POST"]),
        # Guidance
        Route("/generate-guidance", handlers.generate_guidance, methods=["POST"]),
        Route("/weekly-review", handlers.weekly_review, methods=["GET"]),
        # Account
        Route("/settings", handlers.user_settings, methods=["GET", "POST"]),
        Route("/export", handlers.export_data, methods=["GET"]),
        Route("/delete-my-data", handlers.delete_my_data, methods=["POST"]),
        # Integrations
        Route("/integrations/google/start", integrations.google_start, methods=["GET"]),
        Route("/integrations/google/callback", integrations.google_callback, methods=["GET"]),
        Route("/integrations/steps", integrations.steps, methods=["GET"]),
        Route("/integrations/delete", integrations.delete_integration, methods=["POST"]),
        # Scheduler trigger
        Route("/trend-sentinel", handlers.trend_sentinel, methods=["POST"]),
    ]

    origins = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            ),
        ],
        exception_handlers={HTTPException: http_error, Exception: server_error},
    )


# Create app at module level for Cloud Run
app = create_app()


def main() -> None:
    """Run the server."""
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("HOST", "0.0.0.0")

    logger.info("Starting LightCore API on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
