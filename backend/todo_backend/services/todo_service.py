"""
Todo Backend — Todo Service
============================

What:  Per-user todo operations (list, create, toggle, delete).
How:   Parameterized SQL through ValidatedStore. Every statement filters on
       the caller's user_id, so a todo owned by someone else behaves exactly
       like a missing one.
Who:   Called by the /api/todos route handlers with the resolved user.

Query plan:
    list:   WHERE user_id = :user_id ORDER BY created_at DESC, id DESC
            → idx_todos_user_created_at
    update: WHERE id = :id AND user_id = :user_id  → primary key + filter
    delete: WHERE id = :id AND user_id = :user_id  → primary key + filter
"""

import logging
from typing import List

from todo_backend.exceptions import DatabaseError, NotFoundError
from todo_backend.schemas.todo import TodoCreate, TodoId, TodoRecord
from todo_backend.store import ValidatedStore

logger = logging.getLogger(__name__)

TODO_COLUMNS = "id, user_id, title, completed, created_at"


class TodoService:
    """
    Business logic for todo items.

    Stateless: each call receives the request's ValidatedStore.
    Missing or foreign ids raise NotFoundError (404); the row is untouched.
    """

    async def list_todos(self, store: ValidatedStore, user_id: str) -> List[TodoRecord]:
        """Return all of the user's todos, newest first."""
        return await store.query_many(
            f"SELECT {TODO_COLUMNS} FROM todos "
            "WHERE user_id = :user_id "
            "ORDER BY created_at DESC, id DESC",
            {"user_id": user_id},
            TodoRecord,
        )

    async def create_todo(
        self,
        store: ValidatedStore,
        user_id: str,
        data: TodoCreate,
    ) -> TodoRecord:
        todo = await store.query_one(
            "INSERT INTO todos (user_id, title, completed) "
            "VALUES (:user_id, :title, :completed) "
            f"RETURNING {TODO_COLUMNS}",
            {"user_id": user_id, "title": data.title, "completed": data.completed},
            TodoRecord,
        )
        if todo is None:
            raise DatabaseError(
                message="Could not create the todo.",
                context={"user_id": user_id, "cause": "insert returned no row"},
            )
        logger.info("Todo %d created for user %s", todo.id, user_id)
        return todo

    async def set_completed(
        self,
        store: ValidatedStore,
        user_id: str,
        todo_id: int,
        completed: bool,
    ) -> TodoRecord:
        """
        Set the completion flag of one of the user's todos.

        Raises:
            NotFoundError: no todo with this id belongs to the user
        """
        todo = await store.query_one(
            "UPDATE todos SET completed = :completed "
            "WHERE id = :id AND user_id = :user_id "
            f"RETURNING {TODO_COLUMNS}",
            {"completed": completed, "id": todo_id, "user_id": user_id},
            TodoRecord,
        )
        if todo is None:
            raise NotFoundError(resource="Todo", resource_id=str(todo_id))
        return todo

    async def delete_todo(self, store: ValidatedStore, user_id: str, todo_id: int) -> None:
        deleted = await store.query_one(
            "DELETE FROM todos WHERE id = :id AND user_id = :user_id RETURNING id",
            {"id": todo_id, "user_id": user_id},
            TodoId,
        )
        if deleted is None:
            raise NotFoundError(resource="Todo", resource_id=str(todo_id))
        logger.info("Todo %d deleted for user %s", todo_id, user_id)


todo_service = TodoService()
