"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ToolCallRequest(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict)


class ApiTool(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any]


class ApiToolResult(BaseModel):
    text: str
    is_error: bool = False
    error_kind: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
