# ============================================================================
# LangGraph Agent
# ----------------------------------------------------------------------------
# llm_node -> (tool_node -> llm_node)* -> END, with at most `max_steps`
# model calls per request.
# ============================================================================

from typing import Dict, List, Literal

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AnyMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, START, StateGraph # Core LangGraph primitives for defining conversational flow
from langgraph.graph.message import add_messages # Reducer that appends messages to state in a controlled manner
from loguru import logger
from typing_extensions import Annotated, TypedDict

from chat_backend.errors import UpstreamModelFailed
from chat_backend.tools import serialize_tool_result


LLM_NODE = "llm_node"
TOOL_NODE = "tool_node"


class ChatState(TypedDict):
    """Represents the evolving state of one chat request."""
    messages: Annotated[List[AnyMessage], add_messages]
    steps: int


def build_chat_graph(model: BaseChatModel, tools: Dict[str, BaseTool], system_prompt: str, max_steps: int = 5):
    model_with_tools = model.bind_tools(list(tools.values())) if tools else model

    async def llm_node(state: ChatState):
        """Injects the system prompt and invokes the model once."""
        messages_for_model = [SystemMessage(content=system_prompt)] + state["messages"]
        try:
            response = await model_with_tools.ainvoke(messages_for_model)
        except Exception as e:
            raise UpstreamModelFailed(f"Model invocation failed: {e}") from e
        return {"messages": [response], "steps": state.get("steps", 0) + 1}

    async def tool_node(state: ChatState):
        """
        Executes tool calls emitted by the LLM and returns their
        observations back into the graph.
        """
        last_msg = state["messages"][-1]
        results = []

        for call in getattr(last_msg, "tool_calls", []) or []:
            name = call["name"]
            tool_fn = tools.get(name)

            if tool_fn is None:
                results.append(ToolMessage(content="Tool not found", name=name, tool_call_id=call["id"], status="error"))
                continue

            try:
                observation = await tool_fn.ainvoke(call["args"])
            except Exception as e:
                logger.exception(f"Tool {name} failed")
                results.append(ToolMessage(
                    content=f"Error: {type(e).__name__}",
                    name=name,
                    tool_call_id=call["id"],
                    status="error",
                ))
                continue

            results.append(ToolMessage(
                content=serialize_tool_result(observation),
                artifact=observation,
                name=name,
                tool_call_id=call["id"],
            ))

        return {"messages": results}

    def router(state: ChatState) -> Literal["tool_node", "__end__"]:
        last = state["messages"][-1]
        if getattr(last, "tool_calls", None) and state.get("steps", 0) < max_steps:
            return TOOL_NODE
        return END

    builder = StateGraph(ChatState)
    builder.add_node(LLM_NODE, llm_node)
    builder.add_node(TOOL_NODE, tool_node)

    builder.add_edge(START, LLM_NODE)
    builder.add_conditional_edges(LLM_NODE, router, [TOOL_NODE, END])
    builder.add_edge(TOOL_NODE, LLM_NODE)

    return builder.compile()
