"""
Todo Backend — Todo Route Handlers
===================================

What:  CRUD endpoints for the caller's todos under /api/todos.
How:   Thin handlers: resolve the user (CurrentUser), delegate to
       TodoService, return the validated records.
Who:   Called by the frontend todo list.

Every handler only ever touches rows owned by the resolved user; ids of
other users' todos answer 404 exactly like missing ids.
"""

import logging
from typing import List

from fastapi import APIRouter, Path, status

from todo_backend.auth.dependencies import CurrentUser, Store
from todo_backend.schemas.common import ErrorResponse
from todo_backend.schemas.todo import DeleteResponse, TodoCreate, TodoRecord, TodoUpdate
from todo_backend.services.todo_service import todo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/todos", tags=["Todos"])

_error_responses = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    401: {"description": "Invalid or expired token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=List[TodoRecord],
    responses=_error_responses,
    summary="List the caller's todos, newest first",
)
async def list_todos(user: CurrentUser, store: Store) -> List[TodoRecord]:
    return await todo_service.list_todos(store, user.user_id)


@router.post(
    "",
    response_model=TodoRecord,
    status_code=status.HTTP_201_CREATED,
    responses=_error_responses,
    summary="Create a todo",
)
async def create_todo(data: TodoCreate, user: CurrentUser, store: Store) -> TodoRecord:
    return await todo_service.create_todo(store, user.user_id, data)


@router.patch(
    "/{todo_id}",
    response_model=TodoRecord,
    responses={**_error_responses, 404: {"description": "Todo not found", "model": ErrorResponse}},
    summary="Mark a todo completed or not completed",
)
async def update_todo(
    data: TodoUpdate,
    user: CurrentUser,
    store: Store,
    todo_id: int = Path(gt=0, description="Todo ID"),
) -> TodoRecord:
    return await todo_service.set_completed(store, user.user_id, todo_id, data.completed)


@router.delete(
    "/{todo_id}",
    response_model=DeleteResponse,
    responses={**_error_responses, 404: {"description": "Todo not found", "model": ErrorResponse}},
    summary="Delete a todo",
)
async def delete_todo(
    user: CurrentUser,
    store: Store,
    todo_id: int = Path(gt=0, description="Todo ID"),
) -> DeleteResponse:
    await todo_service.delete_todo(store, user.user_id, todo_id)
    return DeleteResponse(success=True)
