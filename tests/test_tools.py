import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage

from chat_backend import tools
from chat_backend.auth import Session, User
from chat_backend.config import Settings
from chat_backend.store import Document
from fakes import FakeModels, FakeStore


SESSION = Session(user=User(id="user_0"), expires=datetime.now(timezone.utc) + timedelta(hours=1))


def _tools(store, artifact_replies, settings=None):
    artifact = GenericFakeChatModel(messages=iter([AIMessage(content=r) for r in artifact_replies]))
    return tools.build_tools(SESSION, store, FakeModels(artifact=artifact), settings or Settings())


def test_tool_mapping_is_keyed_by_name():
    built = _tools(FakeStore(), [])

    assert sorted(built) == ["createDocument", "getWeather", "requestSuggestions", "updateDocument"]


def test_parse_suggestions_tolerates_surrounding_text():
    raw = 'Here you go:\n```json\n[{"originalSentence": "a", "suggestedSentence": "b", "description": "c"}]\n```'

    [draft] = tools.parse_suggestions(raw)

    assert (draft.original_sentence, draft.suggested_sentence, draft.description) == ("a", "b", "c")
    assert tools.parse_suggestions("no json here") == []
    assert tools.parse_suggestions('[{"unexpected": 1}]') == []


def test_fetch_weather_requires_api_key():
    with pytest.raises(RuntimeError):
        tools.fetch_weather("Paris", None)


def test_fetch_weather_reads_openweathermap(monkeypatch):
    captured = {}

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"main": {"temp": 18.5}, "weather": [{"description": "light rain"}]}

    def fake_get(url, params, timeout):
        captured.update(params)
        return FakeResponse()

    monkeypatch.setattr(tools.requests, "get", fake_get)

    result = tools.fetch_weather("Paris", "key")

    assert result == {"city": "Paris", "temperature": 18.5, "description": "light rain"}
    assert captured["q"] == "Paris"
    assert captured["units"] == "metric"


def test_create_document_saves_owned_document():
    store = FakeStore()
    built = _tools(store, ["# Plan\n\nDay one."])

    result = asyncio.run(built["createDocument"].ainvoke({"title": "Trip plan", "kind": "text"}))

    [doc] = store.documents
    assert doc.user_id == "user_0"
    assert doc.content == "# Plan\n\nDay one."
    assert result["id"] == doc.id


def test_update_document_refuses_documents_of_other_users():
    store = FakeStore()
    store.documents.append(Document(id="d1", title="Theirs", content="x", user_id="someone_else"))
    built = _tools(store, ["rewritten"])

    result = asyncio.run(built["updateDocument"].ainvoke({"id": "d1", "description": "shorter"}))

    assert result == {"error": "Document not found"}
    assert len(store.documents) == 1


def test_update_document_saves_new_version():
    store = FakeStore()
    store.documents.append(Document(id="d1", title="Mine", content="old", user_id="user_0"))
    built = _tools(store, ["new"])

    asyncio.run(built["updateDocument"].ainvoke({"id": "d1", "description": "refresh"}))

    assert [d.content for d in store.get_documents_by_id("d1")] == ["old", "new"]


def test_request_suggestions_are_saved_for_session_user():
    store = FakeStore()
    store.documents.append(Document(id="d1", title="Mine", content="Draft text.", user_id="user_0"))
    reply = '[{"originalSentence": "Draft text.", "suggestedSentence": "Final text.", "description": "tone"}]'
    built = _tools(store, [reply])

    result = asyncio.run(built["requestSuggestions"].ainvoke({"documentId": "d1"}))

    [suggestion] = store.suggestions
    assert suggestion.user_id == "user_0"
    assert suggestion.suggested_text == "Final text."
    assert result["message"].startswith("1 suggestions")
