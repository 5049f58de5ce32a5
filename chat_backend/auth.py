# =============================================================================
# Session Resolution
# -----------------------------------------------------------------------------
# Every protected endpoint asks a SessionResolver for the current session.
# The resolver is stored on app.state so a real identity provider can replace
# the stub without touching any endpoint.
# =============================================================================

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from fastapi import Request
from loguru import logger
from supabase import Client

from chat_backend.errors import AuthenticationRequired


@dataclass(frozen=True)
class User:
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """Identity and expiry resolved for a single request. Never persisted."""

    user: User
    expires: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires <= now


class SessionResolver(Protocol):
    def resolve(self, request: Request) -> Optional[Session]: ...


class StubSessionResolver:
    """Resolves every request to the same fixed user for 24 hours."""

    def __init__(self, user: Optional[User] = None, lifetime: timedelta = timedelta(hours=24)):
        self.user = user or User(id="user_0", name="John Doe", email="john@example.com")
        self.lifetime = lifetime

    def resolve(self, request: Request) -> Optional[Session]:
        return Session(user=self.user, expires=datetime.now(timezone.utc) + self.lifetime)


class SupabaseSessionResolver:
    """Validates a Supabase JWT passed as `Authorization: Bearer <token>`."""

    def __init__(self, supabase: Client, lifetime: timedelta = timedelta(hours=1)):
        self.supabase = supabase
        self.lifetime = lifetime

    def resolve(self, request: Request) -> Optional[Session]:
        authorization = request.headers.get("authorization")
        if not authorization:
            return None

        parts = authorization.split(" ")
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None

        try:
            res = self.supabase.auth.get_user(parts[1])
        except Exception as e:
            logger.warning(f"Supabase token validation failed: {e}")
            return None

        user = getattr(res, "user", None)
        if user is None:
            return None

        metadata = getattr(user, "user_metadata", None) or {}
        return Session(
            user=User(id=str(user.id), name=metadata.get("name"), email=getattr(user, "email", None)),
            expires=datetime.now(timezone.utc) + self.lifetime,
        )


def require_session(request: Request) -> Session:
    """FastAPI dependency: resolve the session or reject with 401."""
    resolver: SessionResolver = request.app.state.session_resolver
    session = resolver.resolve(request)
    if session is None or session.is_expired():
        raise AuthenticationRequired()
    return session
