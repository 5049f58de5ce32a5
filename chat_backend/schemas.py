from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_backend.providers import DEFAULT_CHAT_MODEL


class ChatMessage(BaseModel):
    """A message as submitted by the chat client."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    role: str
    content: str = ""
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    # {"state", "toolCallId", "toolName", "args", "result"} per call of an assistant turn
    tool_invocations: List[dict] = Field(default_factory=list, alias="toolInvocations")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    messages: List[ChatMessage]
    selected_chat_model: str = Field(default=DEFAULT_CHAT_MODEL, alias="selectedChatModel")


def most_recent_user_message_index(messages: List[ChatMessage]) -> Optional[int]:
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].role == "user":
            return index
    return None
