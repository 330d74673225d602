"""Client for the OpenAI-compatible chat completions gateway."""
import logging
from typing import Any

import httpx

import config

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Non-success response from the gateway. Carries the upstream status and body."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"AI gateway returned {status_code}")
        self.status_code = status_code
        self.body = body


def create_client() -> httpx.AsyncClient:
    # Streams may stay open as long as the model keeps producing tokens
    return httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0))


def _headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {config.AI_GATEWAY_API_KEY}",
        "Content-Type": "application/json",
    }


async def complete(
    client: httpx.AsyncClient,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
) -> dict[str, Any]:
    """Non-streaming completion with tool definitions. Returns the decoded response body."""
    response = await client.post(
        config.AI_GATEWAY_URL,
        headers=_headers(),
        json={
            "model": config.AI_MODEL,
            "messages": messages,
            "tools": tools,
            "stream": False,
        },
    )
    if response.is_error:
        raise GatewayError(response.status_code, response.text)
    return response.json()


async def open_stream(client: httpx.AsyncClient, messages: list[dict[str, Any]]) -> httpx.Response:
    """
    Start a streaming completion and return the open response once the status is known.
    The caller owns the response and must close it.
    """
    request = client.build_request(
        "POST",
        config.AI_GATEWAY_URL,
        headers=_headers(),
        json={
            "model": config.AI_MODEL,
            "messages": messages,
            "stream": True,
        },
    )
    response = await client.send(request, stream=True)
    if response.is_error:
        body = await response.aread()
        await response.aclose()
        raise GatewayError(response.status_code, body.decode("utf-8", errors="replace"))
    return response
