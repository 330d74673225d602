import sqlite3
import json
from datetime import date, datetime
from typing import Optional
from contextlib import contextmanager

from models import Task

DATABASE_PATH = "flowboard.db"

# Columns a caller may change through update_task_db
UPDATABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "due_date",
    "tags",
    "time_estimate",
    "position",
)

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def _owner_clause(user_id: str, task_id: str) -> tuple[str, tuple[str, str]]:
    """
    WHERE clause shared by every statement that touches an existing row.
    Task rows are only ever addressed together with their owner, so a task_id
    belonging to another user matches nothing.
    """
    if not user_id:
        raise ValueError("user_id is required to address a task")
    return "id = ? AND user_id = ?", (task_id, user_id)

def _to_storage(field: str, value):
    if value is None:
        return None
    if field == "tags":
        return json.dumps(list(value))
    if field == "due_date" and isinstance(value, date):
        return value.isoformat()
    return value

def _row_to_task(row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        status=row["status"],
        priority=row["priority"],
        due_date=row["due_date"],
        tags=json.loads(row["tags"]) if row["tags"] else None,
        time_estimate=row["time_estimate"],
        position=row["position"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )

def get_next_position(user_id: str, status: str) -> int:
    """New tasks go to the end of their status column."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT MAX(position) AS max_position FROM tasks WHERE user_id = ? AND status = ?",
            (user_id, status)
        ).fetchone()
        if row["max_position"] is None:
            return 0
        return row["max_position"] + 1

def get_all_tasks(user_id: str) -> list[Task]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY position, created_at",
            (user_id,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]

def get_task_db(user_id: str, task_id: str) -> Optional[Task]:
    where, params = _owner_clause(user_id, task_id)
    with get_db() as conn:
        row = conn.execute(f"SELECT * FROM tasks WHERE {where}", params).fetchone()
        if row:
            return _row_to_task(row)
    return None

def create_task_db(
    user_id: str,
    task_id: str,
    title: str,
    description: Optional[str] = None,
    status: str = "todo",
    priority: str = "medium",
    due_date: Optional[date | str] = None,
    tags: Optional[list[str]] = None,
    time_estimate: Optional[int] = None
) -> Task:
    """Create a task owned by user_id at the end of its status column."""
    if not user_id:
        raise ValueError("user_id is required to create a task")
    now = datetime.now().isoformat()
    position = get_next_position(user_id, status)

    with get_db() as conn:
        conn.execute(
            """INSERT INTO tasks
               (id, title, description, status, priority, due_date, tags, time_estimate, position, user_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                task_id,
                title,
                description,
                status,
                priority,
                _to_storage("due_date", due_date),
                _to_storage("tags", tags),
                time_estimate,
                position,
                user_id,
                now,
                now,
            )
        )
        conn.commit()

    return Task(
        id=task_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=due_date,
        tags=tags,
        time_estimate=time_estimate,
        position=position,
        user_id=user_id,
        created_at=now,
        updated_at=now,
    )

def update_task_db(user_id: str, task_id: str, **updates) -> Optional[Task]:
    """
    Update a task owned by user_id with any fields provided.
    Only updates fields that differ from current values.
    Returns None when no row matches both the id and the owner.

    Args:
        user_id: Owner the row must belong to
        task_id: Task ID to update
        **updates: Field names and values to update (see UPDATABLE_FIELDS)
    """
    where, params = _owner_clause(user_id, task_id)
    with get_db() as conn:
        row = conn.execute(f"SELECT * FROM tasks WHERE {where}", params).fetchone()
        if not row:
            return None

        changes = {}
        for field, new_value in updates.items():
            if field not in UPDATABLE_FIELDS:
                continue
            stored = _to_storage(field, new_value)
            if stored != row[field]:
                changes[field] = stored

        if changes:
            changes["updated_at"] = datetime.now().isoformat()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + list(params)
            conn.execute(f"UPDATE tasks SET {set_clause} WHERE {where}", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute(f"SELECT * FROM tasks WHERE {where}", params).fetchone()
        return _row_to_task(updated_row)

def delete_task_db(user_id: str, task_id: str) -> bool:
    where, params = _owner_clause(user_id, task_id)
    with get_db() as conn:
        cursor = conn.execute(f"DELETE FROM tasks WHERE {where}", params)
        conn.commit()
        return cursor.rowcount > 0
