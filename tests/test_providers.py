import pytest
from langchain_groq import ChatGroq

from chat_backend.config import Settings
from chat_backend.prompts import REASONING_MODEL
from chat_backend.providers import DEFAULT_CHAT_MODEL, ModelProvider


@pytest.fixture
def provider(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    return ModelProvider(Settings())


def test_reasoning_variant_returns_parsed_reasoning(provider):
    model = provider.language_model(REASONING_MODEL)

    assert isinstance(model, ChatGroq)
    assert model.reasoning_format == "parsed"
    assert model.model_name == Settings().chat_model_reasoning
    assert provider.language_model("chat-model-small").reasoning_format is None


def test_unknown_variant_falls_back_to_default_and_models_are_reused(provider):
    model = provider.language_model("no-such-model")

    assert model is provider.language_model(DEFAULT_CHAT_MODEL)
    assert model.streaming is True
