from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from chat_backend.auth import Session, StubSessionResolver, SupabaseSessionResolver, User, require_session
from chat_backend.errors import AuthenticationRequired


def _request(headers=None, resolver=None):
    app = SimpleNamespace(state=SimpleNamespace(session_resolver=resolver))
    return SimpleNamespace(headers=headers or {}, app=app)


class FakeAuth:
    def __init__(self, user=None, error=None):
        self.user = user
        self.error = error
        self.tokens = []

    def get_user(self, token):
        self.tokens.append(token)
        if self.error:
            raise self.error
        return SimpleNamespace(user=self.user)


def test_stub_resolves_fixed_user_for_a_day():
    session = StubSessionResolver().resolve(_request())

    assert session.user.id == "user_0"
    assert session.user.email == "john@example.com"
    remaining = session.expires - datetime.now(timezone.utc)
    assert timedelta(hours=23) < remaining <= timedelta(hours=24)
    assert not session.is_expired()


def test_supabase_resolver_validates_bearer_token():
    user = SimpleNamespace(id="u-1", email="a@b.c", user_metadata={"name": "Ada"})
    auth = FakeAuth(user=user)
    resolver = SupabaseSessionResolver(SimpleNamespace(auth=auth))

    session = resolver.resolve(_request({"authorization": "Bearer tok123"}))

    assert auth.tokens == ["tok123"]
    assert session.user == User(id="u-1", name="Ada", email="a@b.c")


@pytest.mark.parametrize("header", [None, "tok123", "Basic tok123", "Bearer a b"])
def test_supabase_resolver_rejects_malformed_headers(header):
    auth = FakeAuth(user=SimpleNamespace(id="u-1"))
    resolver = SupabaseSessionResolver(SimpleNamespace(auth=auth))
    headers = {"authorization": header} if header else {}

    assert resolver.resolve(_request(headers)) is None
    assert auth.tokens == []


def test_supabase_resolver_treats_auth_errors_as_no_session():
    resolver = SupabaseSessionResolver(SimpleNamespace(auth=FakeAuth(error=RuntimeError("invalid JWT"))))

    assert resolver.resolve(_request({"authorization": "Bearer bad"})) is None


def test_require_session_rejects_absent_and_expired_sessions():
    class Fixed:
        def __init__(self, session):
            self.session = session

        def resolve(self, request):
            return self.session

    with pytest.raises(AuthenticationRequired):
        require_session(_request(resolver=Fixed(None)))

    expired = Session(user=User(id="user_0"), expires=datetime.now(timezone.utc) - timedelta(seconds=1))
    with pytest.raises(AuthenticationRequired):
        require_session(_request(resolver=Fixed(expired)))

    valid = Session(user=User(id="user_0"), expires=datetime.now(timezone.utc) + timedelta(minutes=5))
    assert require_session(_request(resolver=Fixed(valid))) is valid
