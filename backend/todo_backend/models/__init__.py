"""ORM models. Importing this package registers every table on Base.metadata."""

from todo_backend.models.todo import Todo
from todo_backend.models.user import User

__all__ = ["Todo", "User"]
