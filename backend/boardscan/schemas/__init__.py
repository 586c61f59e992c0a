"""Pydantic request/response schemas forming the public API contract."""
