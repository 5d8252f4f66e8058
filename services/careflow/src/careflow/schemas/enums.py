"""Enums for the triage engine."""

from enum import Enum


class SessionState(str, Enum):
    """Dialogue states of a triage session."""
    GREETING = "GREETING"
    MAIN_SYMPTOM = "MAIN_SYMPTOM"
    ASSOCIATED_SYMPTOMS = "ASSOCIATED_SYMPTOMS"
    DETAILS = "DETAILS"
    AGE = "AGE"
    COMPLETE = "COMPLETE"      # Terminal


class MessageRole(str, Enum):
    """Author of a transcript message."""
    USER = "user"
    ASSISTANT = "assistant"


class RiskTier(str, Enum):
    """Urgency tier assigned at the end of a session."""
    EMERGENCY = "EMERGENCY"      # Red flag or severity 9-10
    URGENT = "URGENT"            # Severity 7-8, or older patient with moderate symptoms
    TELECONSULT = "TELECONSULT"  # Moderate severity or systemic symptoms
    ROUTINE = "ROUTINE"          # Mild, self care
