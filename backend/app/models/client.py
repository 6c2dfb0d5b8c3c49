"""Client (customer site) records referenced by name from employees."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Client(BaseModel):
    id: str
    name: str


class ClientCreateRequest(BaseModel):
    name: str = Field(..., max_length=200)
