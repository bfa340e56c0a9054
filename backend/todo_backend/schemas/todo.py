"""
Todo Backend — Todo Schemas
============================

What:  Pydantic models for todo rows, request bodies and responses.
How:   `TodoRecord` is both the row schema handed to ValidatedStore and the
       response model; the request models validate JSON bodies (FastAPI
       turns failures into 400 responses through the handler in main.py).

Field names stay snake_case on the wire (`user_id`, `created_at`), matching
the frontend's todo schema.
"""

from datetime import datetime

from pydantic import BaseModel, Field

TITLE_MAX_LENGTH = 200


# ══════════════════════════════════════════════════════════════════════════
# Row / Response Models
# ══════════════════════════════════════════════════════════════════════════


class TodoRecord(BaseModel):
    """
    One row of the `todos` table.

    Returned by GET/POST/PATCH /api/todos. Every row read from the database
    is validated against this model before it reaches a route.
    """

    id: int = Field(gt=0, description="Store-generated identifier")
    user_id: str = Field(description="Owning user's identifier")
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    completed: bool = Field(description="Completion flag")
    created_at: datetime = Field(description="Creation timestamp (UTC)")

    model_config = {"from_attributes": True}


class TodoId(BaseModel):
    """Row shape of `DELETE ... RETURNING id`."""

    id: int = Field(gt=0)


class DeleteResponse(BaseModel):
    success: bool = Field(description="True when the todo was deleted")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class TodoCreate(BaseModel):
    """Body of POST /api/todos."""

    title: str = Field(
        min_length=1,
        max_length=TITLE_MAX_LENGTH,
        description="Todo text (1-200 characters)",
    )
    completed: bool = Field(default=False)


class TodoUpdate(BaseModel):
    """Body of PATCH /api/todos/{id}."""

    completed: bool
