import pytest
from fastapi.testclient import TestClient

from chat_backend.app import create_app
from chat_backend.config import Settings
from fakes import FakeModels, FakeStore, FixedSessionResolver


@pytest.fixture
def settings(tmp_path):
    return Settings(public_dir=str(tmp_path / "public"), stream_chunking="none", max_duration=10)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def models():
    return FakeModels()


@pytest.fixture
def tools_requested():
    """User ids for which the app asked for a tool set."""
    return []


@pytest.fixture
def make_client(settings, store, models, tools_requested):
    clients = []

    def factory(session_resolver=None, tools=None, app_settings=None):
        def tools_factory(session, chat_store, model_provider, current_settings):
            tools_requested.append(session.user.id)
            return dict(tools or {})

        app = create_app(
            settings=app_settings or settings,
            store=store,
            session_resolver=session_resolver or FixedSessionResolver(),
            models=models,
            tools_factory=tools_factory,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
