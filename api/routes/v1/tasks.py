"""
api/routes/v1/tasks.py -- Task routes for the task manager REST API.

Routes:
  POST   /tasks        -- create a task owned by the caller      (201)
  GET    /tasks        -- list tasks visible to the caller       (200)
  GET    /tasks/{id}   -- one task, owner or ADMIN               (200)
  PUT    /tasks/{id}   -- replace title/description, patch rest  (200, ADMIN)
  DELETE /tasks/{id}   -- permanent delete                       (204, ADMIN)

These handlers only translate HTTP to controller calls. Role and ownership
rules live in tasks/policy.py; NotFound/Forbidden/InvalidInput raised by the
controller are mapped to 404/403/400 by the handler in api/main.py.

Handlers are plain def: the store is synchronous, so FastAPI runs them in
its thread pool.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.models import TaskRequest, TaskResponse
from auth.dependencies import get_principal
from auth.models import Principal
from tasks.access import TaskAccessController

# Auth policy:
# - every route requires a resolved principal (get_principal -> 401)
# - update/delete are ADMIN-only, enforced by the controller after the
#   existence check so a missing ID is 404 for every caller
router = APIRouter()


def _controller(request: Request) -> TaskAccessController:
    return request.app.state.tasks


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    body: TaskRequest,
    principal: Principal = Depends(get_principal),
    controller: TaskAccessController = Depends(_controller),
) -> TaskResponse:
    """Create a task. The owner is always the caller."""
    return TaskResponse.from_view(controller.create_task(principal, body.to_draft()))


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(
    principal: Principal = Depends(get_principal),
    controller: TaskAccessController = Depends(_controller),
) -> list[TaskResponse]:
    """USER sees only their own tasks; ADMIN sees every task. Ordered by ID."""
    return [TaskResponse.from_view(v) for v in controller.list_tasks(principal)]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    principal: Principal = Depends(get_principal),
    controller: TaskAccessController = Depends(_controller),
) -> TaskResponse:
    return TaskResponse.from_view(controller.get_task(principal, task_id))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    body: TaskRequest,
    principal: Principal = Depends(get_principal),
    controller: TaskAccessController = Depends(_controller),
) -> TaskResponse:
    """Update a task. ADMIN only, regardless of ownership."""
    return TaskResponse.from_view(controller.update_task(principal, task_id, body.to_patch()))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: int,
    principal: Principal = Depends(get_principal),
    controller: TaskAccessController = Depends(_controller),
) -> Response:
    """Delete a task permanently. ADMIN only."""
    controller.delete_task(principal, task_id)
    return Response(status_code=204)
