"""
Todo Backend — Middleware Package
==================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Access Log] → [CORS] → Route Handler

    The request ID is assigned first so the access line (and every log
    record emitted while handling the request) can carry it.
"""
