"""Pydantic request bodies for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CreateWorkflowRequest(BaseModel):
    name: str
    description: str | None = None
    triggers: list[dict[str, Any]] = Field(default_factory=list)
    steps: list[dict[str, Any]] = Field(default_factory=list)


class CreateFromTextRequest(BaseModel):
    request: str = Field(min_length=1)


class UpdateWorkflowRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    triggers: list[dict[str, Any]] | None = None
    steps: list[dict[str, Any]] | None = None


class ExecuteRequest(BaseModel):
    context: dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    workflow_id: str | None = None
