"""Final report, emergency alert and SBAR handoff rendering.

All renderers read a finalized SessionContext and never mutate it.
"""

from services.careflow.src.careflow.triage.schemas import SessionContext

COMPLETION_MARKER = "[TRIAGE_COMPLETE]"


class ReportNotReadyError(ValueError):
    """Raised when a report is requested before the session was classified."""

    pass


def _require_risk(context: SessionContext) -> None:
    if context.risk is None:
        raise ReportNotReadyError("Session has not been classified yet")


def strip_completion_marker(text: str) -> str:
    return text.replace(COMPLETION_MARKER, "").strip()


def generate_report(context: SessionContext) -> str:
    """Render the end-of-session assessment, ending with the completion marker."""
    _require_risk(context)
    return (
        "**Assessment Complete**\n\n"
        f"**Main Symptom:** {context.main_symptom or 'Not specified'}\n"
        f"**Associated:** {context.associated_symptoms or 'None'}\n"
        f"**Severity:** {context.severity if context.severity is not None else '?'}/10\n"
        f"**Duration:** {context.duration or 'Not specified'}\n"
        f"**Age:** {context.age if context.age is not None else 'Not specified'}\n\n"
        f"**Result:** {context.risk.label}\n"
        f"**Analysis:** {context.rationale}\n"
        f"**Advice:** {context.risk.advice}\n\n"
        f"{COMPLETION_MARKER}"
    )


def generate_emergency_alert(context: SessionContext) -> str:
    """Render the red-flag short-circuit response."""
    _require_risk(context)
    flags = ", ".join(context.red_flags)
    return (
        f"**{context.risk.label}**\n\n"
        f'I have detected signs of a medical emergency ("{flags}").\n\n'
        f"**Recommendation:** {context.risk.advice}\n\n"
        f"{COMPLETION_MARKER}"
    )


def generate_sbar(context: SessionContext) -> str:
    """Situation / Background / Assessment / Recommendation handoff line."""
    _require_risk(context)
    severity = context.severity if context.severity is not None else "?"
    age = context.age if context.age is not None else "unknown"
    situation = context.main_symptom or "Unspecified complaint"
    if context.associated_symptoms:
        situation += f" with {context.associated_symptoms}"
    # The red-flag rationale has no closing period, the rule rationales do
    assessment = context.rationale.rstrip().rstrip(".")
    return (
        f"S: {situation} (Sev {severity}). "
        f"B: Age {age}, Duration {context.duration or 'unknown'}. "
        f"A: {context.risk.label} - {assessment}. "
        f"R: {context.risk.advice}"
    )
