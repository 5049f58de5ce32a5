# =============================================================================
# Persistence Layer (Supabase)
# -----------------------------------------------------------------------------
# Chats, messages, documents and suggestions live in Supabase tables. The
# store only translates between pydantic records and table rows; ordering,
# consistency and indexing are left to the database.
# =============================================================================

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field
from supabase import Client

from chat_backend.errors import PersistenceFailed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Records
# ============================================================================

class Chat(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    """One immutable conversation turn. `content` is plain text or a list of parts."""
    id: str
    chat_id: str
    role: str # "user", "assistant" or "tool"
    content: Union[str, List[dict]]
    created_at: datetime = Field(default_factory=utcnow)


class Document(BaseModel):
    id: str
    title: str
    content: Optional[str] = None
    kind: str = "text"
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Suggestion(BaseModel):
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: Optional[str] = None
    is_resolved: bool = False
    user_id: str
    created_at: datetime = Field(default_factory=utcnow)


def _row(record: BaseModel) -> dict:
    return record.model_dump(mode="json")


# ============================================================================
# Store
# ============================================================================

class ChatStore:
    """Thin query layer over the Supabase tables used by the chat backend."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _execute(self, action: str, query: Callable[[], Any]) -> List[dict]:
        try:
            return query().data or []
        except Exception as e:
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceFailed(f"Failed to {action}") from e

    # ---- chats -------------------------------------------------------------

    def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        rows = self._execute(
            "get chat by id",
            lambda: self.supabase.table("chats").select("*").eq("id", chat_id).limit(1).execute(),
        )
        return Chat(**rows[0]) if rows else None

    def save_chat(self, chat: Chat) -> None:
        self._execute(
            "save chat",
            lambda: self.supabase.table("chats").insert(_row(chat)).execute(),
        )

    def delete_chat_by_id(self, chat_id: str) -> None:
        # Messages reference the chat, so they go first
        self._execute(
            "delete messages by chat id",
            lambda: self.supabase.table("messages").delete().eq("chat_id", chat_id).execute(),
        )
        self._execute(
            "delete chat by id",
            lambda: self.supabase.table("chats").delete().eq("id", chat_id).execute(),
        )

    # ---- messages ----------------------------------------------------------

    def save_messages(self, messages: List[Message]) -> None:
        if not messages:
            return
        self._execute(
            "save messages",
            lambda: self.supabase.table("messages").insert([_row(m) for m in messages]).execute(),
        )

    # ---- documents ---------------------------------------------------------

    def get_documents_by_id(self, document_id: str) -> List[Document]:
        """All stored versions of a document, oldest first."""
        rows = self._execute(
            "get documents by id",
            lambda: (
                self.supabase.table("documents")
                .select("*")
                .eq("id", document_id)
                .order("created_at", desc=False)
                .execute()
            ),
        )
        return [Document(**row) for row in rows]

    def save_document(self, document: Document) -> None:
        self._execute(
            "save document",
            lambda: self.supabase.table("documents").insert(_row(document)).execute(),
        )

    # ---- suggestions -------------------------------------------------------

    def get_suggestions_by_document_id(self, document_id: str) -> List[Suggestion]:
        rows = self._execute(
            "get suggestions by document id",
            lambda: self.supabase.table("suggestions").select("*").eq("document_id", document_id).execute(),
        )
        return [Suggestion(**row) for row in rows]

    def save_suggestions(self, suggestions: List[Suggestion]) -> None:
        if not suggestions:
            return
        self._execute(
            "save suggestions",
            lambda: self.supabase.table("suggestions").insert([_row(s) for s in suggestions]).execute(),
        )
