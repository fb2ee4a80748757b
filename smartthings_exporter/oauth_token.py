"""Persisted OAuth2 token handling."""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from dateutil.parser import isoparse
from pydantic import BaseModel, ValidationError, field_validator
import logging
import os

from smartthings_exporter.errors import TokenError

logger = logging.getLogger(__name__)

# Tokens are treated as expired slightly early so a request never races the expiry.
EXPIRY_DELTA = timedelta(seconds=10)


class OAuthToken(BaseModel):
    """OAuth2 token as stored in the token file.

    The JSON shape is ``{"access_token", "token_type", "refresh_token", "expiry"}``.
    A missing expiry, or the zero time ``0001-01-01T00:00:00Z``, means the
    token never expires.
    """
    access_token: str
    token_type: str = "Bearer"
    refresh_token: str = ""
    expiry: Optional[datetime] = None

    @field_validator('expiry', mode='before')
    @classmethod
    def parse_expiry(cls, v):
        if isinstance(v, str):
            v = isoparse(v)
        if isinstance(v, datetime):
            if v.year == 1:
                return None
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_response(cls, payload: Dict[str, Any], now: Optional[datetime] = None) -> 'OAuthToken':
        """Build a token from an OAuth2 token endpoint response."""
        now = now or datetime.now(timezone.utc)
        expiry = None
        if payload.get("expires_in"):
            expiry = now + timedelta(seconds=int(payload["expires_in"]))
        return cls(
            access_token=payload.get("access_token", ""),
            token_type=payload.get("token_type") or "Bearer",
            refresh_token=payload.get("refresh_token") or "",
            expiry=expiry,
        )

    def expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiry - EXPIRY_DELTA < now

    def valid(self, now: Optional[datetime] = None) -> bool:
        """Return True when the token carries an access token and has not expired."""
        return bool(self.access_token) and not self.expired(now)

    def authorization_header(self) -> str:
        token_type = "Bearer" if self.token_type.lower() == "bearer" else self.token_type
        return f"{token_type} {self.access_token}"

    def to_json(self) -> str:
        return self.model_dump_json()


def load_token(token_path: str) -> OAuthToken:
    """Load and validate an OAuth token from a JSON file."""
    if not os.path.exists(token_path):
        raise TokenError(f"Token file not found: {token_path}")

    try:
        with open(token_path, 'r') as f:
            token = OAuthToken.model_validate_json(f.read())
    except (OSError, ValidationError, ValueError) as e:
        raise TokenError(f"Failed to load OAuth token from {token_path}: {e}")

    logger.debug(f"Loaded OAuth token from {token_path} (expiry: {token.expiry or 'never'})")
    return token
