"""Pydantic request/response models for triage API endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


# -- Requests ---------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    session_id: str | None = Field(None, min_length=1, max_length=128)


class SendMessageRequest(BaseModel):
    content: str


# -- Responses ---------------------------------------------------------------

class MessageResponse(BaseModel):
    role: str
    text: str


class RiskResponse(BaseModel):
    tier: str
    label: str
    advice: str
    color: str
    rationale: str


class SessionResponse(BaseModel):
    id: str
    state: str
    is_complete: bool
    messages: list[MessageResponse]
    red_flags: list[str] = Field(default_factory=list)
    risk: RiskResponse | None = None
    summary: str | None = None


class TurnResponse(BaseModel):
    session_id: str
    text: str
    is_complete: bool
    state: str
    summary: str | None = None


class SBARResponse(BaseModel):
    session_id: str
    summary: str
