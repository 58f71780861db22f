"""Google Fit - OAuth token exchange and daily step aggregation.

The OAuth dance (auth URL, code exchange, refresh) and the one Fit read the
dashboard needs. Token storage lives in the Firestore client; this module
only talks to Google.
"""

import asyncio
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from ..core.models import Integration, utcnow


logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
FIT_AGGREGATE_URL = "https://fitness.googleapis.com/fitness/v1/users/me/dataset:aggregate"
FIT_SCOPES = ["https://www.googleapis.com/auth/fitness.activity.read"]
STEP_DATA_TYPE = "com.google.step_count.delta"

PROVIDER = "google-health"

# Only the steps read retries
RETRY_STATUSES = {502, 503, 504}
MAX_ATTEMPTS = 3
RETRY_DELAY = 2.0

REFRESH_GRACE = timedelta(seconds=60)


class OAuthError(RuntimeError):
    """Token exchange or refresh was rejected."""


class FitUnavailable(RuntimeError):
    """The Fit API could not be read (after retries, where they apply)."""


@dataclass
class GoogleFitConfig:
    """OAuth client settings.

    Attributes:
        client_id: Google OAuth client id
        client_secret: Google OAuth client secret
        redirect_uri: Callback registered with Google
        timeout: Request timeout in seconds
    """

    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str = "http://localhost:8080/integrations/google/callback"
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "GoogleFitConfig":
        base_url = os.environ.get("BASE_URL", "http://localhost:8080")
        return cls(
            client_id=os.environ.get("GOOGLE_CLIENT_ID"),
            client_secret=os.environ.get("GOOGLE_CLIENT_SECRET"),
            redirect_uri=os.environ.get(
                "GOOGLE_REDIRECT_URI", f"{base_url}/integrations/google/callback"
            ),
        )


# ==================== Pure Helpers ====================


def generate_state() -> str:
    """Random single-use value binding a callback to the user who started it."""
    return secrets.token_hex(16)


def build_auth_url(config: GoogleFitConfig, state: str) -> str:
    """Consent URL asking for offline access so a refresh token is issued."""
    params = {
        "client_id": config.client_id or "",
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(FIT_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def token_expiry(expires_in: Any, now: datetime) -> datetime | None:
    try:
        return now + timedelta(seconds=int(expires_in))
    except (TypeError, ValueError):
        return None


def needs_refresh(integration: Integration, now: datetime) -> bool:
    """True when the access token expires within the grace window."""
    if integration.expires_at is None:
        return False
    return integration.expires_at <= now + REFRESH_GRACE


def sum_steps(payload: Any) -> int:
    """Total every step value in an aggregate response.

    Values may be reported as intVal or fpVal depending on the data source.
    Anything malformed counts as zero.
    """
    total = 0
    if not isinstance(payload, dict):
        return 0
    for bucket in payload.get("bucket") or []:
        for dataset in bucket.get("dataset") or []:
            for point in dataset.get("point") or []:
                for value in point.get("value") or []:
                    if isinstance(value.get("intVal"), (int, float)):
                        total += int(value["intVal"])
                    elif isinstance(value.get("fpVal"), (int, float)):
                        total += round(value["fpVal"])
    return total


def integration_from_tokens(
    user_id: str, tokens: dict[str, Any], now: datetime, previous: Integration | None = None
) -> Integration:
    """Build the stored token record.

    Google omits refresh_token on re-consent and on refresh, so the previous
    one is kept when none is returned.
    """
    refresh_token = tokens.get("refresh_token")
    if not refresh_token and previous is not None:
        refresh_token = previous.refresh_token
    return Integration(
        user_id=user_id,
        provider=PROVIDER,
        access_token=tokens["access_token"],
        refresh_token=refresh_token,
        expires_at=token_expiry(tokens.get("expires_in"), now),
    )


# ==================== Client ====================


class GoogleFitClient:
    """Async client for Google OAuth and the Fit aggregate endpoint."""

    def __init__(
        self,
        config: GoogleFitConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        """Initialize Google Fit client.

        Args:
            config: OAuth configuration
            transport: Optional httpx transport (tests pass a MockTransport)
            retry_delay: Fixed pause between step-read attempts
        """
        self.config = config or GoogleFitConfig()
        self._transport = transport
        self.retry_delay = retry_delay

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout)

    async def _token_request(self, data: dict[str, str]) -> dict[str, Any]:
        form = {
            "client_id": self.config.client_id or "",
            "client_secret": self.config.client_secret or "",
            **data,
        }
        try:
            async with self._http() as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            logger.error("Token request failed: %s", str(e))
            raise OAuthError(f"Token request failed: {e}") from e

        if response.status_code >= 400:
            logger.error("Token endpoint error %d: %s", response.status_code, response.text[:300])
            raise OAuthError(f"Token endpoint error: {response.status_code}")
        tokens = response.json()
        if not tokens.get("access_token"):
            raise OAuthError("Token response missing access_token")
        return tokens

    async def exchange_code(self, code: str) -> dict[str, Any]:
        """Trade an authorization code for tokens.

        Raises:
            OAuthError: If Google rejects the code
        """
        return await self._token_request(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.config.redirect_uri,
            }
        )

    async def refresh_access_token(self, integration: Integration) -> Integration:
        """Exchange the stored refresh token for a new access token.

        Raises:
            OAuthError: If there is no refresh token or Google rejects it
        """
        if not integration.refresh_token:
            raise OAuthError("No refresh token stored")
        logger.info("Refreshing Google token for %s", integration.user_id[:8])
        tokens = await self._token_request(
            {"refresh_token": integration.refresh_token, "grant_type": "refresh_token"}
        )
        return integration_from_tokens(integration.user_id, tokens, utcnow(), previous=integration)

    async def aggregate_steps(self, access_token: str, start: datetime, end: datetime) -> int:
        """Total steps in [start, end).

        502/503/504 responses and network errors are retried up to
        MAX_ATTEMPTS times with a fixed delay; nothing else is.

        Raises:
            FitUnavailable: If the read did not succeed
        """
        start_ms = int(start.timestamp() * 1000)
        end_ms = int(end.timestamp() * 1000)
        body = {
            "aggregateBy": [{"dataTypeName": STEP_DATA_TYPE}],
            "bucketByTime": {"durationMillis": end_ms - start_ms},
            "startTimeMillis": start_ms,
            "endTimeMillis": end_ms,
        }
        headers = {"Authorization": f"Bearer {access_token}"}

        last_error = "no attempt made"
        async with self._http() as client:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    response = await client.post(FIT_AGGREGATE_URL, json=body, headers=headers)
                except httpx.HTTPError as e:
                    last_error = f"network error: {e}"
                else:
                    if response.status_code < 400:
                        return sum_steps(response.json())
                    last_error = f"status {response.status_code}"
                    if response.status_code not in RETRY_STATUSES:
                        break

                logger.warning("Fit read attempt %d/%d failed: %s", attempt, MAX_ATTEMPTS, last_error)
                if attempt < MAX_ATTEMPTS:
                    await asyncio.sleep(self.retry_delay)

        raise FitUnavailable(f"Google Fit read failed: {last_error}")
