"""Authentication - Bearer API keys for the LightCore API.

A key is shown to the user once at registration. Only its SHA256 digest is
kept, and that digest is the user_id under which every Firestore path for
the account lives.
"""

import hashlib
import logging
import secrets

from google.cloud import firestore

from ..core.models import Profile, User, utcnow


logger = logging.getLogger(__name__)

API_KEY_PREFIX = "lc_"
MIN_KEY_LENGTH = 40
USER_ID_LENGTH = 32

BEARER_PREFIX = "Bearer "


class AuthError(RuntimeError):
    """Missing, malformed or unknown bearer token."""


def generate_api_key() -> str:
    """New random key of the form ``lc_<urlsafe token>``."""
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


def hash_api_key(api_key: str) -> str:
    """Derive the user_id (truncated SHA256 hex digest) from a key."""
    digest = hashlib.sha256(api_key.encode()).hexdigest()
    return digest[:USER_ID_LENGTH]


def validate_api_key_format(api_key: str | None) -> bool:
    """Cheap shape check done before any Firestore lookup."""
    return bool(api_key) and api_key.startswith(API_KEY_PREFIX) and len(api_key) >= MIN_KEY_LENGTH


def parse_bearer_token(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


class AuthClient:
    """Registers accounts and resolves bearer tokens to user ids."""

    def __init__(self, db: firestore.Client) -> None:
        self._db = db

    def _user_doc(self, user_id: str) -> firestore.DocumentReference:
        return self._db.collection("users").document(user_id)

    def register_user(self, email: str) -> tuple[str, str]:
        """Create an account with an empty profile (streak 0).

        Args:
            email: Address the user signed up with

        Returns:
            Tuple of (api_key, user_id). The plaintext key is not stored
            and cannot be recovered later.
        """
        api_key = generate_api_key()
        user_id = hash_api_key(api_key)

        account = User(email=email, api_key_hash=user_id, created_at=utcnow())
        doc = self._user_doc(user_id)
        doc.set(account.model_dump())
        doc.collection("profile").document("state").set(
            Profile(user_id=user_id).model_dump(exclude={"user_id"})
        )

        logger.info("Registered user %s", user_id[:8])
        return api_key, user_id

    def validate_api_key(self, api_key: str) -> str | None:
        """Return the user_id for a known key, or None.

        Lookup failures are logged and treated as an unknown key.
        """
        if not validate_api_key_format(api_key):
            logger.warning("Rejected API key with bad format")
            return None

        user_id = hash_api_key(api_key)
        try:
            exists = self._user_doc(user_id).get().exists
        except Exception as e:
            logger.error("User lookup failed for %s: %s", user_id[:8], str(e))
            return None

        if not exists:
            logger.warning("No account for key %s", user_id[:8])
            return None
        return user_id

    def get_user_id(self, authorization: str | None) -> str:
        """Resolve an Authorization header to a user_id.

        Raises:
            AuthError: If the header is missing or the key is unknown
        """
        token = parse_bearer_token(authorization)
        if token is None:
            raise AuthError("Not authorized.")
        user_id = self.validate_api_key(token)
        if user_id is None:
            raise AuthError("User not found or token invalid.")
        return user_id
