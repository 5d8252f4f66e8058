"""Deterministic risk classification: session context → urgency tier.

How it works:
  1. The dialogue collects severity, age and symptom text over a few turns
  2. THIS FILE maps those values to one of four fixed tiers, no model involved
  3. Rules are evaluated top to bottom and the first match wins

Red flags never reach this file: the dialogue short-circuits to EMERGENCY as
soon as one is detected. These rules only decide sessions that ran their
course.

Tiers:
  EMERGENCY   : severity 9-10
  URGENT      : severity 7-8, or age over 65 with severity 5+
  TELECONSULT : severity 4-6, or systemic symptoms (fever, vomiting)
  ROUTINE     : everything else
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from services.careflow.src.careflow.schemas.enums import RiskTier
from services.careflow.src.careflow.triage.schemas import (
    RISK_LEVELS,
    RiskLevel,
    SessionContext,
)

# Placeholders used when the dialogue never obtained a value
DEFAULT_SEVERITY = 1
DEFAULT_AGE = 30

SYSTEMIC_KEYWORDS = ("fever", "vomit")


@dataclass(frozen=True)
class ClassifierInput:
    severity: int
    age: int
    symptom_text: str


@dataclass(frozen=True)
class RiskRule:
    name: str
    tier: RiskTier
    applies: Callable[[ClassifierInput], bool]
    rationale: Callable[[ClassifierInput], str]


# ---------------------------------------------------------------------------
# Ordered rule table, first match wins
# ---------------------------------------------------------------------------

RISK_RULES: list[RiskRule] = [
    RiskRule(
        name="extreme_severity",
        tier=RiskTier.EMERGENCY,
        applies=lambda c: c.severity >= 9,
        rationale=lambda c: f"Severity is extremely high ({c.severity}/10).",
    ),
    RiskRule(
        name="high_severity",
        tier=RiskTier.URGENT,
        applies=lambda c: c.severity >= 7,
        rationale=lambda c: (
            f"High severity symptoms ({c.severity}/10) require physical assessment."
        ),
    ),
    RiskRule(
        name="age_risk",
        tier=RiskTier.URGENT,
        applies=lambda c: c.age > 65 and c.severity >= 5,
        rationale=lambda c: (
            f"Moderate symptoms ({c.severity}/10) at age {c.age} carry higher risk."
        ),
    ),
    RiskRule(
        name="moderate_severity",
        tier=RiskTier.TELECONSULT,
        applies=lambda c: c.severity >= 4,
        rationale=lambda c: (
            f"Moderate severity ({c.severity}/10) suitable for remote assessment."
        ),
    ),
    RiskRule(
        name="systemic_symptoms",
        tier=RiskTier.TELECONSULT,
        applies=lambda c: any(k in c.symptom_text for k in SYSTEMIC_KEYWORDS),
        rationale=lambda c: (
            f"Systemic symptoms detected (fever/vomiting) with severity {c.severity}/10."
        ),
    ),
    RiskRule(
        name="mild",
        tier=RiskTier.ROUTINE,
        applies=lambda c: True,
        rationale=lambda c: f"Symptoms appear mild (severity {c.severity}/10).",
    ),
]


def classifier_input(context: SessionContext) -> ClassifierInput:
    """Substitute defaults and build the combined symptom text."""
    symptom_text = " ".join(
        part for part in (context.main_symptom, context.associated_symptoms) if part
    ).lower()
    return ClassifierInput(
        severity=context.severity if context.severity is not None else DEFAULT_SEVERITY,
        age=context.age if context.age is not None else DEFAULT_AGE,
        symptom_text=symptom_text,
    )


def finalize_risk(context: SessionContext) -> tuple[RiskLevel, str]:
    """Classify a finished session. Pure: never mutates the context."""
    values = classifier_input(context)
    for rule in RISK_RULES:
        if rule.applies(values):
            return RISK_LEVELS[rule.tier], rule.rationale(values)

    # The last rule always applies
    raise AssertionError("risk rule table has no catch-all rule")
