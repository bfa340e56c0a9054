"""
Todo Backend — API Routes Package
==================================

Route Inventory:
    - todos.py:   GET/POST /api/todos, PATCH/DELETE /api/todos/{id}
    - users.py:   GET /api/me, GET /api/config
    - health.py:  GET /api/health, GET /health

Routes stay thin: extract input, call the service, return the model.
"""
