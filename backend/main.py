from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
import logging
import uuid

import config
import gateway
from auth import AuthError, authenticate, get_current_user
from analytics import compute_board_stats
from models import BoardStats, ChatRequest, Task, TaskCreate, TaskUpdate
from relay import run_chat_turn
from database import (
    init_db,
    get_all_tasks,
    create_task_db,
    update_task_db,
    delete_task_db,
)

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "x-supabase-client-platform",
    "x-supabase-client-platform-version",
    "x-supabase-client-runtime",
    "x-supabase-client-runtime-version",
]

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    init_db()
    app.state.gateway_client = gateway.create_client()
    yield
    # Shutdown
    await app.state.gateway_client.aclose()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=CORS_ALLOW_HEADERS,
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@app.get("/tasks")
def get_tasks(user_id: str = Depends(get_current_user)) -> list[Task]:
    return get_all_tasks(user_id)


@app.get("/tasks/stats")
def get_task_stats(user_id: str = Depends(get_current_user)) -> BoardStats:
    return compute_board_stats(get_all_tasks(user_id))


@app.post("/tasks")
def create_task(task_data: TaskCreate, user_id: str = Depends(get_current_user)) -> Task:
    return create_task_db(
        user_id,
        str(uuid.uuid4()),
        task_data.title,
        description=task_data.description,
        status=task_data.status,
        priority=task_data.priority,
        due_date=task_data.due_date,
        tags=task_data.tags,
        time_estimate=task_data.time_estimate,
    )


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate, user_id: str = Depends(get_current_user)) -> Task:
    result = update_task_db(user_id, task_id, **task_data.model_dump(exclude_unset=True))
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, user_id: str = Depends(get_current_user)) -> dict:
    if not delete_task_db(user_id, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


@app.post("/chat")
async def chat(request: Request):
    """Run one assistant turn and stream the answer back as Server-Sent Events."""
    try:
        chat_request = ChatRequest.model_validate(await request.json())

        if not config.gateway_configured():
            raise RuntimeError("AI_GATEWAY_API_KEY is not configured")

        try:
            user_id = authenticate(request.headers.get("authorization"))
        except AuthError:
            return _error_response(401, "Unauthorized")

        reply = await run_chat_turn(request.app.state.gateway_client, chat_request, user_id)
    except gateway.GatewayError as e:
        if e.status_code == 429:
            return _error_response(429, "Rate limit exceeded")
        if e.status_code == 402:
            return _error_response(402, "Payment required")
        logger.error("AI gateway error: %s %s", e.status_code, e.body)
        return _error_response(500, "AI gateway error")
    except Exception as e:
        logger.exception("chat error")
        return _error_response(500, str(e) or "Unknown error")

    # Upstream closes after the response even if the body is never iterated
    background = BackgroundTask(reply.upstream.aclose) if reply.upstream is not None else None
    return StreamingResponse(reply.body, media_type="text/event-stream", background=background)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
