from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TaskStatus = Literal["todo", "in_progress", "done"]
TaskPriority = Literal["low", "medium", "high"]


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    time_estimate: Optional[int] = None  # minutes
    position: int = 0  # ordering within a status column
    user_id: str
    created_at: str  # ISO format datetime string
    updated_at: str

class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    time_estimate: Optional[int] = Field(default=None, ge=0)

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    time_estimate: Optional[int] = Field(default=None, ge=0)
    position: Optional[int] = None

    @field_validator("title", "status", "priority", "position")
    @classmethod
    def not_null(cls, value):
        # NOT NULL columns; null only clears the optional ones
        if value is None:
            raise ValueError("may not be null")
        return value

class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str

class ChatRequest(BaseModel):
    messages: list[Message]
    taskContext: str = ""


# Tool arguments produced by the model. Unknown properties are rejected.
class CreateTaskArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        return value or None

class UpdateTaskArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_id: str
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def blank_date_is_none(cls, value):
        return value or None

class DeleteTaskArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_id: str


class BoardStats(BaseModel):
    status_counts: dict[str, int]
    priority_counts: dict[str, int]
    high_priority: int
    completion_rate: int  # percent
    total_estimate: int  # minutes
    estimate_by_status: dict[str, int]
    top_tags: list[tuple[str, int]]
