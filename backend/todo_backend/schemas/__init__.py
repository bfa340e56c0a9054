"""Pydantic schemas: database row shapes, request bodies and API responses."""
