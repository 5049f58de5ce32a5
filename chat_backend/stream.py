# =============================================================================
# Data Stream Parts
# -----------------------------------------------------------------------------
# Streamed replies use the AI SDK data-stream line format understood by the
# chat front end: one `<code>:<json>\n` line per fragment.
# =============================================================================

import json
import re
from typing import Any, List, Optional


TEXT = "0"
ERROR = "3"
TOOL_CALL = "9"
TOOL_RESULT = "a"
FINISH_MESSAGE = "d"
FINISH_STEP = "e"
START_STEP = "f"
REASONING = "g"

STREAM_HEADERS = {"x-vercel-ai-data-stream": "v1"}


def format_part(code: str, value: Any) -> str:
    return f"{code}:{json.dumps(value, default=str)}\n"


def text_part(delta: str) -> str:
    return format_part(TEXT, delta)


def reasoning_part(delta: str) -> str:
    return format_part(REASONING, delta)


def error_part(message: str) -> str:
    return format_part(ERROR, message)


def tool_call_part(tool_call_id: str, tool_name: str, args: dict) -> str:
    return format_part(TOOL_CALL, {"toolCallId": tool_call_id, "toolName": tool_name, "args": args})


def tool_result_part(tool_call_id: str, result: Any) -> str:
    return format_part(TOOL_RESULT, {"toolCallId": tool_call_id, "result": result})


def start_step_part(message_id: str) -> str:
    return format_part(START_STEP, {"messageId": message_id})


def finish_step_part(finish_reason: str, usage: dict, is_continued: bool = False) -> str:
    return format_part(FINISH_STEP, {"finishReason": finish_reason, "usage": usage, "isContinued": is_continued})


def finish_message_part(finish_reason: str, usage: dict) -> str:
    return format_part(FINISH_MESSAGE, {"finishReason": finish_reason, "usage": usage})


def parse_part(line: str) -> tuple:
    """Split one stream line back into (code, value)."""
    code, _, payload = line.rstrip("\n").partition(":")
    return code, json.loads(payload)


# ============================================================================
# Word smoothing
# ============================================================================

_WORD = re.compile(r"\s*\S+\s+")


class WordChunker:
    """
    Re-chunks text deltas so the client receives whole words. Text is held
    back only until the next whitespace; `flush` releases the remainder.
    """

    def __init__(self):
        self._buffer = ""

    def push(self, delta: str) -> List[str]:
        self._buffer += delta
        words = []
        while True:
            match = _WORD.match(self._buffer)
            if match is None:
                break
            words.append(match.group(0))
            self._buffer = self._buffer[match.end():]
        return words

    def flush(self) -> Optional[str]:
        rest, self._buffer = self._buffer, ""
        return rest or None


class PassThroughChunker:
    """Forwards each model fragment unchanged."""

    def push(self, delta: str) -> List[str]:
        return [delta] if delta else []

    def flush(self) -> Optional[str]:
        return None


def make_chunker(mode: str):
    return WordChunker() if mode == "word" else PassThroughChunker()
