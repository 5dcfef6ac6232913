# backend/croppredict/services/generation.py
"""
Tool-augmented model invocation and structured-output validation.

One attempt per request. The model may call the declared tools any number of
times (bounded by LLM_MAX_TOOL_ROUNDS); its final text must parse as the output
schema. Every failure is classified from the finish reason and raw text, logged
with full diagnostics, and raised as a sanitized GenerationError subclass.
"""
import json
import time
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.tools import BaseTool
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from croppredict.config import settings
from croppredict.errors import (
    GenerationError,
    GenerationFormatError,
    GenerationLengthError,
    GenerationSafetyError,
    GenerationUnknownError,
)
from croppredict.services.prompts import PromptPayload

log = logging.getLogger("croppredict.generation")

def t(): return time.perf_counter()

T = TypeVar("T", bound=BaseModel)


class GenerationStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    SCHEMA_INVALID = "SCHEMA_INVALID"
    BLOCKED = "BLOCKED"
    TRUNCATED = "TRUNCATED"
    MALFORMED = "MALFORMED"
    UNKNOWN_FAILURE = "UNKNOWN_FAILURE"


# Finish reasons across providers, lower-cased
_STOP = {"stop", "end_turn", "stop_sequence"}
_LENGTH = {"length", "max_tokens"}
_SAFETY = {"content_filter", "safety", "blocklist", "prohibited_content", "spii", "recitation", "refusal"}
# tool_calls: round budget ran out before a final answer
_UNKNOWN = {"other", "unknown", "unspecified", "finish_reason_unspecified", "tool_calls"}

MALFORMED_MESSAGE = (
    "The AI model was unable to generate a response in the required format. "
    "It may have stopped prematurely or returned non-JSON text. Please check server logs."
)
SCHEMA_INVALID_MESSAGE = (
    "The AI model did not return a valid estimation. Please try again or check server logs."
)


class ModelReply(BaseModel):
    text: str = ""
    finish_reason: Optional[str] = None
    safety_ratings: List[Any] = Field(default_factory=list)
    tool_history: List[Dict[str, Any]] = Field(default_factory=list)


def build_chat_model() -> ChatOpenAI:
    return ChatOpenAI(
        model=settings.OPENAI_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        timeout=settings.LLM_TIMEOUT_SEC,
        max_tokens=settings.LLM_MAX_TOKENS,
        max_retries=0,
    )


def _content_text(msg: AIMessage) -> str:
    content = msg.content
    if isinstance(content, str):
        return content
    # list-of-blocks content (multimodal providers)
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text") or "")
    return "".join(parts)


def _finish_reason(msg: AIMessage) -> Optional[str]:
    md = msg.response_metadata or {}
    return md.get("finish_reason") or md.get("stop_reason")


def _safety_ratings(msg: AIMessage) -> List[Any]:
    md = msg.response_metadata or {}
    ratings = md.get("safety_ratings") or md.get("content_filter_results") or []
    return ratings if isinstance(ratings, list) else [ratings]


async def run_tool_loop(
    llm: BaseChatModel,
    messages: List[BaseMessage],
    tools: Sequence[BaseTool] = (),
    max_rounds: Optional[int] = None,
) -> ModelReply:
    """
    Drive the model until it stops asking for tools (or the round budget runs out).
    Tool failures are fed back to the model as error payloads, not raised.
    """
    max_rounds = settings.LLM_MAX_TOOL_ROUNDS if max_rounds is None else max_rounds
    by_name = {tool.name: tool for tool in tools}
    runnable = llm.bind_tools(list(tools)) if tools else llm
    history: List[Dict[str, Any]] = []
    convo = list(messages)

    rounds = 0
    while True:
        msg = await runnable.ainvoke(convo)
        if not msg.tool_calls or rounds >= max_rounds:
            break
        rounds += 1
        convo.append(msg)
        for tc in msg.tool_calls:
            tool = by_name.get(tc["name"])
            if tool is None:
                output: Any = {"error": f"unknown tool '{tc['name']}'"}
            else:
                try:
                    output = await tool.ainvoke(tc["args"])
                except Exception as e:
                    log.warning("Tool %s failed: %s", tc["name"], e)
                    output = {"error": str(e)}
            history.append({"name": tc["name"], "args": tc["args"], "output": output})
            convo.append(ToolMessage(
                content=output if isinstance(output, str) else json.dumps(output),
                tool_call_id=tc.get("id") or tc["name"],
            ))

    reason = _finish_reason(msg)
    if msg.tool_calls:
        # round budget exhausted while the model still wanted tools
        reason = reason or "tool_calls"
    return ModelReply(
        text=_content_text(msg),
        finish_reason=reason,
        safety_ratings=_safety_ratings(msg),
        tool_history=history,
    )


def extract_json_text(text: str) -> str:
    """Strip surrounding whitespace and a single markdown code fence, if any."""
    body = (text or "").strip()
    if body.startswith("```"):
        body = body[3:]
        if body[:4].lower() == "json":
            body = body[4:]
        if body.rstrip().endswith("```"):
            body = body.rstrip()[:-3]
        body = body.strip()
    return body


def classify(reply: ModelReply, schema: Type[T]) -> Tuple[GenerationStatus, Optional[T]]:
    """Move a PENDING generation to its terminal status."""
    body = extract_json_text(reply.text)
    if body:
        try:
            return GenerationStatus.SUCCESS, schema.model_validate_json(body)
        except SchemaError:
            pass

    reason = (reply.finish_reason or "").lower()
    if reason in _SAFETY:
        return GenerationStatus.BLOCKED, None
    if reason in _LENGTH:
        return GenerationStatus.TRUNCATED, None
    if reason in _UNKNOWN or (not body and reason not in _STOP):
        return GenerationStatus.UNKNOWN_FAILURE, None
    if not (body.startswith("{") and body.endswith("}")):
        return GenerationStatus.MALFORMED, None
    return GenerationStatus.SCHEMA_INVALID, None


def error_for(status: GenerationStatus) -> GenerationError:
    if status == GenerationStatus.BLOCKED:
        return GenerationSafetyError()
    if status == GenerationStatus.TRUNCATED:
        return GenerationLengthError()
    if status == GenerationStatus.MALFORMED:
        return GenerationFormatError(MALFORMED_MESSAGE)
    if status == GenerationStatus.SCHEMA_INVALID:
        return GenerationFormatError(SCHEMA_INVALID_MESSAGE)
    return GenerationUnknownError()


def _log_failure(status: GenerationStatus, payload: PromptPayload, reply: ModelReply) -> None:
    log.error(
        "LLM did not return valid structured output (%s).\n"
        "  Raw text response from LLM: %s\n"
        "  Finish reason: %s\n"
        "  Safety ratings: %s\n"
        "  Input provided to LLM: %s\n"
        "  Tool calls made by LLM (history): %s",
        status.value,
        reply.text or "No raw text available from LLM.",
        reply.finish_reason or "Unknown",
        json.dumps(reply.safety_ratings, indent=2, default=str),
        json.dumps(payload.for_log(), indent=2),
        json.dumps(reply.tool_history, indent=2, default=str),
    )


async def invoke(
    payload: PromptPayload,
    schema: Type[T],
    llm: BaseChatModel,
    tools: Sequence[BaseTool] = (),
) -> T:
    """Issue the generation request and return the validated structured output."""
    start = t()
    try:
        reply = await run_tool_loop(llm, payload.to_messages(), tools)
    except Exception:
        log.exception("LLM request failed for prompt %s", payload.name)
        raise GenerationUnknownError()

    status, parsed = classify(reply, schema)
    log.info("⏱️  LLM %s: %dms, status=%s, finish=%s, tool_calls=%d",
             payload.name, round((t() - start) * 1000), status.value,
             reply.finish_reason, len(reply.tool_history))
    if status != GenerationStatus.SUCCESS:
        _log_failure(status, payload, reply)
        raise error_for(status)
    return parsed
