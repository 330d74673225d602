"""
Chat relay: decide, act, answer.

1. Ask the model once (non-streaming) with the tool definitions.
2. Without tool calls, wrap the finished answer in a single SSE frame.
3. With tool calls, run them in order for the caller, then stream the
   model's follow-up answer, prefixed by a frame naming the executed tools.
"""
import json
import logging
from typing import Any, AsyncIterator, NamedTuple, Optional

import httpx
from starlette.concurrency import run_in_threadpool

import gateway
from models import ChatRequest
from prompts import build_system_prompt
from tools import TOOLS, execute_tool_call

logger = logging.getLogger(__name__)

DONE_FRAME = b"data: [DONE]\n\n"


class ChatReply(NamedTuple):
    body: AsyncIterator[bytes]
    # Open upstream stream the response must close once sent, if any
    upstream: Optional[httpx.Response] = None


def sse_frame(payload: dict) -> bytes:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n".encode("utf-8")


def build_messages(chat_request: ChatRequest) -> list[dict[str, Any]]:
    system_prompt = build_system_prompt(chat_request.taskContext)
    return [{"role": "system", "content": system_prompt}] + [
        {"role": m.role, "content": m.content} for m in chat_request.messages
    ]


def execute_tool_calls(tool_calls: list[dict], user_id: str) -> tuple[list[dict], list[str]]:
    """
    Run tool calls sequentially in the order the model returned them.
    Returns the tool result messages and the names of the executed tools.
    """
    tool_results = []
    executed = []
    for tool_call in tool_calls:
        function = tool_call.get("function") or {}
        name = function.get("name", "")
        result = execute_tool_call(name, function.get("arguments"), user_id)
        tool_results.append({
            "role": "tool",
            "tool_call_id": tool_call.get("id"),
            "content": result,
        })
        executed.append(name)
    return tool_results, executed


async def direct_answer(content: str) -> AsyncIterator[bytes]:
    yield sse_frame({"choices": [{"delta": {"content": content}, "finish_reason": "stop"}]})
    yield DONE_FRAME


async def relay_stream(tool_actions: list[str], upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Emit the tool_actions marker, then copy the upstream body unchanged."""
    try:
        yield sse_frame({"tool_actions": tool_actions})
        async for chunk in upstream.aiter_bytes():
            yield chunk
    finally:
        await upstream.aclose()


async def run_chat_turn(
    client: httpx.AsyncClient,
    chat_request: ChatRequest,
    user_id: str,
) -> ChatReply:
    """
    Resolve one chat turn and return the SSE body to send back.
    Raises gateway.GatewayError before any byte is produced if either upstream call fails.
    """
    messages = build_messages(chat_request)

    decision = await gateway.complete(client, messages, TOOLS)
    choices = decision.get("choices") or [{}]
    assistant_message = choices[0].get("message") or {}
    tool_calls = assistant_message.get("tool_calls") or []

    if not tool_calls:
        return ChatReply(direct_answer(assistant_message.get("content") or ""))

    logger.info("Model requested %d tool call(s) for user %s", len(tool_calls), user_id)
    # sqlite calls stay off the event loop
    tool_results, executed = await run_in_threadpool(execute_tool_calls, tool_calls, user_id)

    final_messages = messages + [assistant_message] + tool_results
    upstream = await gateway.open_stream(client, final_messages)
    return ChatReply(relay_stream(executed, upstream), upstream)
