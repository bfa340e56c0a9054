"""
Todo Backend — Application Package
===================================

What: REST backend for a per-user todo list.
Who:  Imported by uvicorn (`todo_backend.main:app`), Alembic and pytest.

Layers:

    ┌─────────────────────────────────────┐
    │   Routes (API) + Auth dependency    │  ← HTTP concerns, identity
    ├─────────────────────────────────────┤
    │         Services (TodoService)      │  ← per-user todo rules
    ├─────────────────────────────────────┤
    │   ValidatedStore + Schemas (rows)   │  ← SQL + boundary validation
    ├─────────────────────────────────────┤
    │   Database (async engine, session)  │  ← connection lifecycle
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
