"""Pydantic schemas for triage entity extraction, session context and risk levels."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from services.careflow.src.careflow.schemas.enums import MessageRole, RiskTier


class EntityCandidate(BaseModel):
    """Entities extracted from a single turn of patient text.

    Produced fresh on every turn by whichever extractor answered first and
    discarded after the values are merged into the session context.
    """

    model_config = ConfigDict(populate_by_name=True)

    symptom: str | None = Field(None, description="Main symptom mentioned in this turn")
    associated_symptoms: str | None = Field(
        None,
        validation_alias=AliasChoices("associated_symptoms", "associatedSymptoms"),
        description="Any other symptoms mentioned alongside the main one",
    )
    severity: int | None = Field(None, ge=1, le=10, description="Severity 1-10")
    duration: str | None = Field(None, description="How long, e.g. '2 days'")
    age: int | None = Field(None, ge=0, le=130)
    red_flags: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("red_flags", "redFlags"),
        description="Critical keywords found verbatim in the text",
    )

    raw_input: str = Field("", description="Original turn text")
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    source: Literal["local", "remote", "none"] = "local"

    @field_validator("symptom", "associated_symptoms", "duration", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("red_flags", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value


class RiskLevel(BaseModel):
    """One of the four fixed urgency tiers."""

    model_config = ConfigDict(frozen=True)

    tier: RiskTier
    label: str
    advice: str
    color: str


RISK_LEVELS: dict[RiskTier, RiskLevel] = {
    RiskTier.EMERGENCY: RiskLevel(
        tier=RiskTier.EMERGENCY,
        label="CRITICAL ALERT",
        advice="Call Emergency Services (911) or go to ER immediately.",
        color="red",
    ),
    RiskTier.URGENT: RiskLevel(
        tier=RiskTier.URGENT,
        label="URGENT CARE",
        advice="Seek medical attention (Clinic/Urgent Care) within 24 hours.",
        color="orange",
    ),
    RiskTier.TELECONSULT: RiskLevel(
        tier=RiskTier.TELECONSULT,
        label="TELECONSULT",
        advice="Schedule a video/audio consultation with a doctor.",
        color="blue",
    ),
    RiskTier.ROUTINE: RiskLevel(
        tier=RiskTier.ROUTINE,
        label="SELF CARE / ROUTINE",
        advice="Manage at home. Monitor symptoms.",
        color="green",
    ),
}


class SessionContext(BaseModel):
    """Everything learned about the patient so far in one session.

    Values are merged in and never rolled back. ``risk`` stays None until the
    session is finalized and is never overwritten afterwards.
    """

    main_symptom: str | None = None
    associated_symptoms: str | None = None
    severity: int | None = Field(None, ge=1, le=10)
    duration: str | None = None
    age: int | None = Field(None, ge=0, le=130)
    red_flags: list[str] = Field(default_factory=list)
    risk: RiskLevel | None = None
    rationale: str = ""

    @property
    def has_details(self) -> bool:
        return self.severity is not None and bool(self.duration)

    @property
    def is_fully_specified(self) -> bool:
        return self.has_details and self.age is not None

    def add_red_flags(self, flags: list[str]) -> None:
        for flag in flags:
            if flag not in self.red_flags:
                self.red_flags.append(flag)


class ChatMessage(BaseModel):
    role: MessageRole
    text: str


class TurnResult(BaseModel):
    """Response to a single processed turn."""

    text: str
    is_complete: bool = False
