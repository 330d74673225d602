"""
Board-mutating tools the model may call, and their executors.

Every executor receives the authenticated caller's id and goes through the
owner-scoped functions in database.py. Results are JSON strings that are fed
back to the model as the tool's output; failures are reported the same way
and never raised to the relay.
"""
import json
import logging
import sqlite3
import uuid
from typing import Callable

from pydantic import BaseModel, ValidationError

from models import CreateTaskArgs, UpdateTaskArgs, DeleteTaskArgs
from database import create_task_db, update_task_db, delete_task_db

logger = logging.getLogger(__name__)

STATUS_ENUM = ["todo", "in_progress", "done"]
PRIORITY_ENUM = ["low", "medium", "high"]

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "create_task",
            "description": "Create a new task on the user's Kanban board",
            "parameters": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "Task title"},
                    "description": {"type": "string", "description": "Task description"},
                    "status": {"type": "string", "enum": STATUS_ENUM, "description": "Task status column"},
                    "priority": {"type": "string", "enum": PRIORITY_ENUM, "description": "Task priority"},
                    "due_date": {"type": "string", "description": "Due date in YYYY-MM-DD format"},
                    "tags": {"type": "array", "items": {"type": "string"}, "description": "Tags for the task"},
                },
                "required": ["title"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "update_task",
            "description": "Update an existing task. Use the task title or context to find the right task ID from the user's tasks list.",
            "parameters": {
                "type": "object",
                "properties": {
                    "task_id": {"type": "string", "description": "The UUID of the task to update"},
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "status": {"type": "string", "enum": STATUS_ENUM},
                    "priority": {"type": "string", "enum": PRIORITY_ENUM},
                    "due_date": {"type": "string"},
                    "tags": {"type": "array", "items": {"type": "string"}},
                },
                "required": ["task_id"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "delete_task",
            "description": "Delete a task from the user's board",
            "parameters": {
                "type": "object",
                "properties": {
                    "task_id": {"type": "string", "description": "The UUID of the task to delete"},
                },
                "required": ["task_id"],
                "additionalProperties": False,
            },
        },
    },
]


def _error(message: str) -> dict:
    return {"error": message}


def create_task_tool(args: CreateTaskArgs, user_id: str) -> dict:
    task = create_task_db(
        user_id,
        str(uuid.uuid4()),
        args.title,
        description=args.description or None,
        status=args.status or "todo",
        priority=args.priority or "medium",
        due_date=args.due_date,
        tags=args.tags or None,
    )
    return {"success": True, "task": task.model_dump(mode="json")}


def update_task_tool(args: UpdateTaskArgs, user_id: str) -> dict:
    updates = args.model_dump(exclude={"task_id"}, exclude_none=True)
    task = update_task_db(user_id, args.task_id, **updates)
    if task is None:
        return _error("Task not found")
    return {"success": True, "task": task.model_dump(mode="json")}


def delete_task_tool(args: DeleteTaskArgs, user_id: str) -> dict:
    if not delete_task_db(user_id, args.task_id):
        return _error("Task not found")
    return {"success": True}


# name -> (argument model, executor)
TOOL_HANDLERS: dict[str, tuple[type[BaseModel], Callable[[BaseModel, str], dict]]] = {
    "create_task": (CreateTaskArgs, create_task_tool),
    "update_task": (UpdateTaskArgs, update_task_tool),
    "delete_task": (DeleteTaskArgs, delete_task_tool),
}


def execute_tool_call(name: str, arguments: str, user_id: str) -> str:
    """Validate and run one tool call for user_id. Always returns a JSON string."""
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        return json.dumps(_error("Unknown function"))

    args_model, executor = handler
    try:
        args = args_model.model_validate_json(arguments or "{}")
    except ValidationError as e:
        logger.info("Invalid arguments for %s: %s", name, e)
        return json.dumps(_error(f"Invalid arguments: {e.errors(include_url=False)}"))

    try:
        result = executor(args, user_id)
    except sqlite3.Error as e:
        logger.error("Tool %s failed for user %s: %s", name, user_id, e)
        return json.dumps(_error(str(e)))

    logger.info("Executed %s for user %s", name, user_id)
    return json.dumps(result)
