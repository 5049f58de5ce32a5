# =============================================================================
# Chat Request Orchestrator
# -----------------------------------------------------------------------------
# Lifecycle of one POST /api/chat request:
#   1. authenticate (done by the endpoint)
#   2. validate that a user message is present
#   3. ingest an attachment referenced by the most recent user message
#   4. ensure the chat exists, titling it from the first message
#   5. persist the inbound user message
#   6. run the agent graph with the selected model and tool set
#   7. stream fragments to the client in generation order
#   8. persist the sanitized assistant/tool messages
#   9. close the stream, or emit one generic error part on failure
# =============================================================================

import asyncio
import weakref
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional
from uuid import uuid4

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from loguru import logger
from starlette.concurrency import run_in_threadpool

from chat_backend import stream as parts
from chat_backend.attachments import AttachmentIngestor, IngestionResult
from chat_backend.auth import Session
from chat_backend.config import Settings
from chat_backend.errors import GENERIC_STREAM_ERROR, AuthorizationDenied, ValidationFailed
from chat_backend.graph import LLM_NODE, TOOL_NODE, build_chat_graph
from chat_backend.prompts import REASONING_MODEL, TITLE_PROMPT, system_prompt
from chat_backend.providers import TITLE_MODEL, ModelProvider
from chat_backend.schemas import ChatMessage, ChatRequest, most_recent_user_message_index
from chat_backend.store import Chat, ChatStore, Message, utcnow
from chat_backend.tools import ToolsFactory, build_tools, serialize_tool_result


MAX_TITLE_LENGTH = 80


@dataclass
class PreparedChat:
    """State carried from the request phase (steps 2-5) into the stream phase."""
    session: Session
    chat_id: str
    selected_chat_model: str
    history: List[ChatMessage]
    user_message: ChatMessage
    ingestion: IngestionResult
    created_chat: bool = False


@dataclass
class _StepRecord:
    message_id: str
    message: BaseMessage


@dataclass
class _Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    def add(self, message: BaseMessage) -> dict:
        usage = getattr(message, "usage_metadata", None) or {}
        step = {"promptTokens": usage.get("input_tokens", 0), "completionTokens": usage.get("output_tokens", 0)}
        self.prompt_tokens += step["promptTokens"]
        self.completion_tokens += step["completionTokens"]
        return step

    def as_dict(self) -> dict:
        return {"promptTokens": self.prompt_tokens, "completionTokens": self.completion_tokens}


class ChatLocks:
    """Per-chat asyncio locks, released from memory once no request holds one."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock


# ============================================================================
# Helpers
# ============================================================================

def to_langchain_messages(messages: List[ChatMessage]) -> List[BaseMessage]:
    """
    Client history to model input. Assistant tool invocations become an
    AIMessage with tool_calls followed by one ToolMessage per result; calls
    the client never saw a result for are left out.
    """
    converted = []
    for m in messages:
        if m.role == "user":
            converted.append(HumanMessage(content=m.content, id=m.id))
        elif m.role == "assistant":
            answered = [
                inv for inv in m.tool_invocations
                if inv.get("state") == "result" and inv.get("toolCallId") and inv.get("toolName")
            ]
            if not m.content and not answered:
                continue

            converted.append(AIMessage(
                content=m.content,
                id=m.id,
                tool_calls=[
                    {"id": inv["toolCallId"], "name": inv["toolName"], "args": inv.get("args") or {}}
                    for inv in answered
                ],
            ))
            for inv in answered:
                converted.append(ToolMessage(
                    content=serialize_tool_result(inv.get("result")),
                    name=inv["toolName"],
                    tool_call_id=inv["toolCallId"],
                ))
    return converted


async def generate_title_from_user_message(models: ModelProvider, message: ChatMessage) -> str:
    """Short chat title for the first message; falls back to the message text."""
    fallback = message.content.strip()[:MAX_TITLE_LENGTH] or "New Chat"
    try:
        response = await models.language_model(TITLE_MODEL).ainvoke([
            SystemMessage(content=TITLE_PROMPT),
            HumanMessage(content=message.content),
        ])
    except Exception as e:
        logger.warning(f"Failed to generate chat title: {e}")
        return fallback

    content = response.content if isinstance(response.content, str) else ""
    title = content.strip().replace('"', "")[:MAX_TITLE_LENGTH]
    return title or fallback


def _reasoning_of(message: BaseMessage) -> str:
    return (message.additional_kwargs or {}).get("reasoning_content") or ""


def sanitize_response_messages(chat_id: str, steps: List[_StepRecord]) -> List[Message]:
    """
    Turns the raw graph output into persistable records. Empty assistant turns
    and tool calls that never received a result are dropped.
    """
    answered = {s.message.tool_call_id for s in steps if isinstance(s.message, ToolMessage)}
    called: Dict[str, str] = {}
    records = []

    for step in steps:
        msg = step.message
        if isinstance(msg, AIMessage):
            content_parts = []
            reasoning = _reasoning_of(msg)
            if reasoning:
                content_parts.append({"type": "reasoning", "reasoning": reasoning})
            if isinstance(msg.content, str) and msg.content:
                content_parts.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                if call["id"] in answered:
                    called[call["id"]] = call["name"]
                    content_parts.append({
                        "type": "tool-call",
                        "toolCallId": call["id"],
                        "toolName": call["name"],
                        "args": call["args"],
                    })
            if not content_parts:
                continue

            only_text = len(content_parts) == 1 and content_parts[0]["type"] == "text"
            content = content_parts[0]["text"] if only_text else content_parts
            records.append(Message(id=step.message_id, chat_id=chat_id, role="assistant", content=content))

        elif isinstance(msg, ToolMessage) and msg.tool_call_id in called:
            records.append(Message(
                id=step.message_id,
                chat_id=chat_id,
                role="tool",
                content=[{
                    "type": "tool-result",
                    "toolCallId": msg.tool_call_id,
                    "toolName": called[msg.tool_call_id],
                    "result": _tool_result(msg),
                }],
            ))

    return records


def _tool_result(message: ToolMessage):
    return message.artifact if message.artifact is not None else message.content


# ============================================================================
# Orchestrator
# ============================================================================

class ChatOrchestrator:
    def __init__(
        self,
        store: ChatStore,
        models: ModelProvider,
        settings: Settings,
        ingestor: Optional[AttachmentIngestor] = None,
        tools_factory: ToolsFactory = build_tools,
    ):
        self.store = store
        self.models = models
        self.settings = settings
        self.ingestor = ingestor or AttachmentIngestor(settings.public_dir)
        self.tools_factory = tools_factory
        self.locks = ChatLocks()

    async def prepare(self, session: Session, request: ChatRequest) -> PreparedChat:
        index = most_recent_user_message_index(request.messages)
        if index is None:
            raise ValidationFailed("No user message found")

        user_message = request.messages[index]
        ingestion = await run_in_threadpool(self.ingestor.ingest, user_message)

        history = list(request.messages)
        history[index] = ingestion.message

        created_chat = False
        async with self.locks.get(request.id):
            chat = await run_in_threadpool(self.store.get_chat_by_id, request.id)
            if chat is None:
                title = await generate_title_from_user_message(self.models, user_message)
                await run_in_threadpool(
                    self.store.save_chat,
                    Chat(id=request.id, user_id=session.user.id, title=title),
                )
                created_chat = True
            elif chat.user_id != session.user.id:
                raise AuthorizationDenied()

            # The user's own text is persisted; the extraction prompt only goes to the model
            await run_in_threadpool(self.store.save_messages, [Message(
                id=user_message.id,
                chat_id=request.id,
                role="user",
                content=user_message.content,
                created_at=utcnow(),
            )])

        return PreparedChat(
            session=session,
            chat_id=request.id,
            selected_chat_model=request.selected_chat_model,
            history=history,
            user_message=user_message,
            ingestion=ingestion,
            created_chat=created_chat,
        )

    def _graph_for(self, prepared: PreparedChat):
        variant = prepared.selected_chat_model
        if variant == REASONING_MODEL:
            tools = {}
        else:
            tools = self.tools_factory(prepared.session, self.store, self.models, self.settings)

        return build_chat_graph(
            model=self.models.language_model(variant),
            tools=tools,
            system_prompt=system_prompt(variant),
            max_steps=self.settings.max_steps,
        )

    async def stream(self, prepared: PreparedChat, send_reasoning: bool = True) -> AsyncIterator[str]:
        """Yields data-stream lines for the reply, then persists the finished messages."""
        steps: List[_StepRecord] = []
        usage = _Usage()
        chunker = parts.make_chunker(self.settings.stream_chunking)
        message_id: Optional[str] = None
        finish_reason = "stop"
        model_steps = 0

        try:
            graph = self._graph_for(prepared)
            inputs = {"messages": to_langchain_messages(prepared.history), "steps": 0}
            # The deadline only bounds generation, never the time spent waiting on the client
            deadline = asyncio.get_running_loop().time() + self.settings.max_duration
            events = graph.astream_events(inputs, version="v2")

            try:
                while True:
                    async with asyncio.timeout_at(deadline):
                        try:
                            event = await events.__anext__()
                        except StopAsyncIteration:
                            break

                    kind = event["event"]
                    node = event.get("metadata", {}).get("langgraph_node")
                    name = event.get("name")

                    if kind == "on_chain_start" and name == LLM_NODE and node == LLM_NODE:
                        message_id = str(uuid4())
                        yield parts.start_step_part(message_id)

                    elif kind == "on_chat_model_stream" and node == LLM_NODE:
                        chunk = event["data"]["chunk"]
                        reasoning = _reasoning_of(chunk)
                        if reasoning and send_reasoning:
                            yield parts.reasoning_part(reasoning)
                        if isinstance(chunk.content, str):
                            for piece in chunker.push(chunk.content):
                                yield parts.text_part(piece)

                    elif kind == "on_chain_end" and name == LLM_NODE and node == LLM_NODE:
                        rest = chunker.flush()
                        if rest:
                            yield parts.text_part(rest)

                        response = event["data"]["output"]["messages"][-1]
                        steps.append(_StepRecord(message_id or str(uuid4()), response))
                        model_steps += 1
                        # Calls from the step that hits the cap never run
                        if model_steps < self.settings.max_steps:
                            for call in response.tool_calls:
                                yield parts.tool_call_part(call["id"], call["name"], call["args"])

                        finish_reason = "tool-calls" if response.tool_calls else "stop"
                        yield parts.finish_step_part(finish_reason, usage.add(response))

                    elif kind == "on_chain_end" and name == TOOL_NODE and node == TOOL_NODE:
                        for tool_message in event["data"]["output"]["messages"]:
                            steps.append(_StepRecord(str(uuid4()), tool_message))
                            yield parts.tool_result_part(tool_message.tool_call_id, _tool_result(tool_message))
            finally:
                await events.aclose()

            yield parts.finish_message_part(finish_reason, usage.as_dict())
        except Exception:
            logger.exception(f"Chat stream failed for chat {prepared.chat_id}")
            yield parts.error_part(GENERIC_STREAM_ERROR)
            return

        await self._finalize(prepared, steps)

    async def _finalize(self, prepared: PreparedChat, steps: List[_StepRecord]) -> None:
        try:
            records = sanitize_response_messages(prepared.chat_id, steps)
            await run_in_threadpool(self.store.save_messages, records)
        except Exception:
            # The reply has already been delivered; losing the record is logged only
            logger.exception(f"Failed to save chat {prepared.chat_id}")
