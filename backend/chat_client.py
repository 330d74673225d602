"""
Client side of the assistant chat.

ChatSession posts the conversation to the relay, turns the SSE body into a
single live-updating assistant message, and invalidates the task cache when
the relay reports that the board was changed.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

import httpx

from models import ChatRequest, Message, Task
from sse import ContentDelta, SSEDecoder, ToolActions

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."
QUOTA_MESSAGE = "Usage limit reached. Please add credits to continue."
APOLOGY_MESSAGE = "Sorry, something went wrong. Please try again."
BOARD_UPDATED_NOTICE = "Board updated by AI"


class ChatStreamError(Exception):
    """The relay answered with a status that cannot be streamed."""


@dataclass
class AuthSession:
    user_id: str
    access_token: str


class TaskCache:
    """Caches the signed-in user's task list until something invalidates it."""

    def __init__(self, loader: Callable[[], Awaitable[list[Task]]]) -> None:
        self._loader = loader
        self._tasks: Optional[list[Task]] = None

    @property
    def is_stale(self) -> bool:
        return self._tasks is None

    async def get(self) -> list[Task]:
        if self._tasks is None:
            self._tasks = await self._loader()
        return self._tasks

    def invalidate(self) -> None:
        self._tasks = None


def build_task_context(tasks: Iterable[Task]) -> str:
    """Plain-text summary of the board that the relay appends to its system prompt."""
    lines = []
    for task in tasks:
        details = f"id: {task.id}, priority: {task.priority}"
        if task.due_date:
            details += f", due: {task.due_date.isoformat()}"
        if task.tags:
            details += f", tags: {', '.join(task.tags)}"
        lines.append(f'- [{task.status}] "{task.title}" ({details})')
    if not lines:
        return ""
    return "\n\nUser's current tasks:\n" + "\n".join(lines)


class ChatSession:
    """One chat transcript. Only one send may be in flight at a time."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        chat_url: str,
        auth: AuthSession,
        task_cache: Optional[TaskCache] = None,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.client = client
        self.chat_url = chat_url
        self.auth = auth
        self.task_cache = task_cache
        self.notify = notify
        self.messages: list[Message] = []
        self.is_sending = False
        self._reply = ""

    def _show_reply(self, content: str) -> None:
        self._reply = content
        if self.messages and self.messages[-1].role == "assistant":
            self.messages[-1] = Message(role="assistant", content=content)
        else:
            self.messages.append(Message(role="assistant", content=content))

    async def send(self, text: str, tasks: Iterable[Task] = ()) -> bool:
        """
        Send a user message and stream the reply into the transcript.
        Returns False without doing anything when the text is empty or a send is in flight.
        """
        text = text.strip()
        if not text or self.is_sending:
            return False

        self.messages.append(Message(role="user", content=text))
        self.is_sending = True
        self._reply = ""
        try:
            board_updated = await self._stream_reply(build_task_context(tasks))
            if board_updated:
                if self.task_cache is not None:
                    self.task_cache.invalidate()
                if self.notify is not None:
                    self.notify(BOARD_UPDATED_NOTICE)
        except Exception:
            logger.exception("Chat request failed")
            self._show_reply(APOLOGY_MESSAGE)
        finally:
            self.is_sending = False
        return True

    async def _stream_reply(self, task_context: str) -> bool:
        """Stream one reply. Returns True when the relay reported tool actions."""
        payload = ChatRequest(messages=list(self.messages), taskContext=task_context)
        headers = {"Authorization": f"Bearer {self.auth.access_token}"}
        decoder = SSEDecoder()
        board_updated = False

        async with self.client.stream(
            "POST", self.chat_url, json=payload.model_dump(), headers=headers
        ) as response:
            if response.status_code == 429:
                self._show_reply(RATE_LIMIT_MESSAGE)
                return False
            if response.status_code == 402:
                self._show_reply(QUOTA_MESSAGE)
                return False
            if response.is_error:
                raise ChatStreamError(f"Failed to start stream: {response.status_code}")

            async for chunk in response.aiter_bytes():
                board_updated |= self._apply(decoder.feed(chunk))
            board_updated |= self._apply(decoder.flush())

        return board_updated

    def _apply(self, events) -> bool:
        saw_tool_actions = False
        for event in events:
            if isinstance(event, ToolActions):
                saw_tool_actions = True
            elif isinstance(event, ContentDelta):
                self._show_reply(self._reply + event.content)
        return saw_tool_actions
