# ============================================================================
# Tooling
# ----------------------------------------------------------------------------
# Tools are built per request because the document tools act on behalf of
# the session's user. The orchestrator only sees a mapping of tool name to
# LangChain tool, so new tools can be added here without touching it.
# ============================================================================

import json
from typing import Callable, Dict, List, Optional
from uuid import uuid4

import requests # External synchronous HTTP calls
from langchain.tools import tool # Decorator that converts Python functions into LLM-callable tools
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.tools import BaseTool
from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from chat_backend.auth import Session
from chat_backend.config import Settings
from chat_backend.prompts import ARTIFACT_PROMPT, SUGGESTIONS_PROMPT, update_document_prompt
from chat_backend.providers import ARTIFACT_MODEL, ModelProvider
from chat_backend.store import ChatStore, Document, Suggestion, utcnow


ToolsFactory = Callable[[Session, ChatStore, ModelProvider, Settings], Dict[str, BaseTool]]

WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"


class SuggestionDraft(BaseModel):
    original_sentence: str = Field(alias="originalSentence")
    suggested_sentence: str = Field(alias="suggestedSentence")
    description: str = ""


_suggestion_drafts = TypeAdapter(List[SuggestionDraft])


def parse_suggestions(raw: str) -> List[SuggestionDraft]:
    """Parse the model's JSON array, tolerating prose or code fences around it."""
    start, end = raw.find("["), raw.rfind("]")
    if start == -1 or end < start:
        return []
    try:
        return _suggestion_drafts.validate_json(raw[start:end + 1])
    except ValidationError as e:
        logger.warning(f"Discarding malformed suggestions: {e}")
        return []


def _text(response) -> str:
    content = getattr(response, "content", response)
    return (content if isinstance(content, str) else str(content)).strip()


def fetch_weather(city: str, api_key: Optional[str]) -> dict:
    if not api_key:
        raise RuntimeError("Missing WEATHER_API_KEY environment variable")

    resp = requests.get(
        WEATHER_URL,
        params={"q": city, "appid": api_key, "units": "metric"},
        timeout=10,
    )
    resp.raise_for_status()
    data = resp.json()

    return {
        "city": city,
        "temperature": data["main"]["temp"],
        "description": data["weather"][0]["description"],
    }


def build_tools(session: Session, store: ChatStore, models: ModelProvider, settings: Settings) -> Dict[str, BaseTool]:
    user_id = session.user.id
    artifact_llm = models.language_model(ARTIFACT_MODEL)

    def owned_document(document_id: str) -> Optional[Document]:
        documents = store.get_documents_by_id(document_id)
        if not documents or documents[-1].user_id != user_id:
            return None
        return documents[-1]

    @tool("getWeather")
    def get_weather(city: str):
        """Get the current weather for a given city."""
        return fetch_weather(city, settings.weather_api_key)

    @tool("createDocument")
    async def create_document(title: str, kind: str = "text"):
        """Create a document for writing or content creation activities."""
        response = await artifact_llm.ainvoke([SystemMessage(content=ARTIFACT_PROMPT), HumanMessage(content=title)])
        document = Document(id=str(uuid4()), title=title, kind=kind, content=_text(response), user_id=user_id)
        await run_in_threadpool(store.save_document, document)

        return {
            "id": document.id,
            "title": title,
            "kind": kind,
            "content": "A document was created and is now visible to the user.",
        }

    @tool("updateDocument")
    async def update_document(id: str, description: str):
        """Update a document with the given description of the changes."""
        document = await run_in_threadpool(owned_document, id)
        if document is None:
            return {"error": "Document not found"}

        response = await artifact_llm.ainvoke([
            SystemMessage(content=update_document_prompt(document.content or "")),
            HumanMessage(content=description),
        ])
        updated = document.model_copy(update={"content": _text(response), "created_at": utcnow()})
        await run_in_threadpool(store.save_document, updated)

        return {
            "id": id,
            "title": document.title,
            "kind": document.kind,
            "content": "The document has been updated successfully.",
        }

    @tool("requestSuggestions")
    async def request_suggestions(documentId: str):
        """Request writing suggestions for an existing document."""
        document = await run_in_threadpool(owned_document, documentId)
        if document is None:
            return {"error": "Document not found"}

        response = await artifact_llm.ainvoke([
            SystemMessage(content=SUGGESTIONS_PROMPT),
            HumanMessage(content=document.content or ""),
        ])
        suggestions = [
            Suggestion(
                id=str(uuid4()),
                document_id=document.id,
                document_created_at=document.created_at,
                original_text=draft.original_sentence,
                suggested_text=draft.suggested_sentence,
                description=draft.description,
                user_id=user_id,
            )
            for draft in parse_suggestions(_text(response))
        ]
        await run_in_threadpool(store.save_suggestions, suggestions)

        return {
            "id": document.id,
            "title": document.title,
            "kind": document.kind,
            "message": f"{len(suggestions)} suggestions have been added to the document",
        }

    tools = [get_weather, create_document, update_document, request_suggestions]
    return {t.name: t for t in tools}


def serialize_tool_result(result) -> str:
    return result if isinstance(result, str) else json.dumps(result, default=str)
