import logging
import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()
from typing import Annotated, Any, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StrictBool, StrictStr
from starlette.exceptions import HTTPException as StarletteHTTPException

from store import JsonFileStore, StorageError
from tasks import NotFoundError, TaskService, ValidationError, now_iso

DATA_FILE = os.getenv("DATA_FILE", str(Path(__file__).parent / "todos.json"))

logger = logging.getLogger(__name__)

store = JsonFileStore(DATA_FILE)

app = FastAPI()


@app.on_event("startup")
def startup():
    store.open()


@app.on_event("shutdown")
def shutdown():
    store.close()


def get_service() -> TaskService:
    return TaskService(store)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(StorageError)
def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{loc}: {first.get('msg')}" if loc else first.get("msg", "Invalid request")
    return error_response(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


class TaskCreateRequest(BaseModel):
    text: StrictStr


class TaskUpdateRequest(BaseModel):
    done: Optional[StrictBool] = None
    text: Optional[StrictStr] = None


class ReorderRequest(BaseModel):
    tasks: List[Any]


Service = Annotated[TaskService, Depends(get_service)]


@app.get("/api/health")
def health():
    return {"success": True, "status": "ok", "timestamp": now_iso()}


@app.get("/api/tasks/{user_id}")
def list_tasks(user_id: str, service: Service):
    return {"success": True, "tasks": service.list_tasks(user_id)}


@app.post("/api/tasks/{user_id}")
def add_task(user_id: str, req: TaskCreateRequest, service: Service):
    return {"success": True, "task": service.add(user_id, req.text)}


# Must stay above the {task_id} route or "reorder" is taken as a task id.
@app.put("/api/tasks/{user_id}/reorder")
def reorder_tasks(user_id: str, req: ReorderRequest, service: Service):
    return {"success": True, "tasks": service.reorder(user_id, req.tasks)}


@app.put("/api/tasks/{user_id}/{task_id}")
def update_task(user_id: str, task_id: str, req: TaskUpdateRequest, service: Service):
    changes = req.model_dump(exclude_unset=True)
    return {"success": True, "task": service.update(user_id, task_id, changes)}


@app.delete("/api/tasks/{user_id}/{task_id}")
def delete_task(user_id: str, task_id: str, service: Service):
    service.delete(user_id, task_id)
    return {"success": True}
