"""
Tests for the system prompt and the task context the client sends with each chat turn.
"""
import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chat_client import build_task_context
from database import create_task_db, get_all_tasks
from prompts import SYSTEM_PROMPT, build_system_prompt
from tools import TOOLS


class TestTaskContext:
    """Tests for the board summary spliced into the system prompt."""

    def test_task_list_formatting(self, test_db):
        create_task_db("user-a", "id-1", "Buy groceries")
        create_task_db(
            "user-a", "id-2", "Team meeting",
            status="in_progress", priority="high", due_date=date(2026, 2, 7), tags=["work", "sync"],
        )

        context = build_task_context(get_all_tasks("user-a"))

        assert context.startswith("\n\nUser's current tasks:\n")
        lines = context.strip().split("\n")[1:]
        assert lines == [
            '- [todo] "Buy groceries" (id: id-1, priority: medium)',
            '- [in_progress] "Team meeting" (id: id-2, priority: high, due: 2026-02-07, tags: work, sync)',
        ]

    def test_empty_task_list(self, test_db):
        assert build_task_context(get_all_tasks("user-a")) == ""


class TestSystemPrompt:
    def test_has_task_context_placeholder(self):
        assert "{task_context}" in SYSTEM_PROMPT

    def test_context_appended_last(self):
        prompt = build_system_prompt("\n\nUser's current tasks:\n- [todo] \"A {braced} title\" (id: 1, priority: low)")
        assert prompt.endswith("- [todo] \"A {braced} title\" (id: 1, priority: low)")
        assert prompt.startswith("You are FlowBoard AI")

    def test_empty_context(self):
        assert build_system_prompt("") == SYSTEM_PROMPT.format(task_context="")


class TestToolSchemas:
    @pytest.mark.parametrize("tool", TOOLS, ids=lambda t: t["function"]["name"])
    def test_schemas_are_strict(self, tool):
        assert tool["function"]["parameters"]["additionalProperties"] is False

    def test_required_fields(self):
        required = {t["function"]["name"]: t["function"]["parameters"]["required"] for t in TOOLS}
        assert required == {
            "create_task": ["title"],
            "update_task": ["task_id"],
            "delete_task": ["task_id"],
        }
