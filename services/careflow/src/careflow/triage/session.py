"""Triage session: the turn-by-turn dialogue state machine.

Per turn:
  1. Extract entities (remote extractor, falling back to local rules)
  2. Merge severity / duration / age into the context (never overwrite)
  3. Filter negated red flags and union the rest into the context
  4. Any red flag → EMERGENCY, session complete (every state, every turn)
  5. Record symptoms for the current state
  6. Severity + duration + age all known → classify and finish (smart skip)
  7. Otherwise ask for the next missing piece

States:
  GREETING → MAIN_SYMPTOM → ASSOCIATED_SYMPTOMS → DETAILS → AGE → COMPLETE

A session is owned by a single caller and is not safe for concurrent turns.
Once COMPLETE, it answers every turn with a fixed message and never changes.
"""

from __future__ import annotations

import logging
import re
import uuid

from services.careflow.src.careflow.core.pipeline import build_default_extractor
from services.careflow.src.careflow.schemas.enums import MessageRole, RiskTier, SessionState
from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.red_flags import filter_red_flags
from services.careflow.src.careflow.triage.report import (
    generate_emergency_alert,
    generate_report,
    generate_sbar,
    strip_completion_marker,
)
from services.careflow.src.careflow.triage.rules import DEFAULT_AGE, finalize_risk
from services.careflow.src.careflow.triage.schemas import (
    RISK_LEVELS,
    ChatMessage,
    EntityCandidate,
    SessionContext,
    TurnResult,
)

logger = logging.getLogger(__name__)

START_SESSION = "START_SESSION"

# Filled in at DETAILS when the patient never gave a usable severity
DEFAULT_DETAILS_SEVERITY = 5

_MAX_AGE = 130

GREETING_PROMPT = (
    "Hi, I'm your health triage assistant. "
    "What symptoms are you experiencing today?"
)
ASSOCIATED_PROMPT = (
    "Do you have any symptoms accompanying this? (e.g., fever, nausea, dizziness)"
)
AGE_PROMPT = "Okay. Finally, just to be safe, what is your **age**?"
SESSION_ENDED = "Session ended. Refresh to restart."
UNKNOWN_STATE_PLACEHOLDER = "..."


class TriageSession:
    """One patient conversation: dialogue state, accumulated context, transcript."""

    def __init__(
        self,
        extractor: EntityExtractor | None = None,
        session_id: str | None = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.extractor = extractor or build_default_extractor()
        self.reset()

    def reset(self) -> None:
        """Drop everything learned so far and go back to GREETING."""
        self.state = SessionState.GREETING
        self.context = SessionContext()
        self.messages: list[ChatMessage] = []

    @property
    def is_complete(self) -> bool:
        return self.state == SessionState.COMPLETE

    @property
    def summary(self) -> str | None:
        """SBAR handoff once complete, else None."""
        return self.generate_sbar() if self.is_complete else None

    def generate_sbar(self) -> str:
        """Raises ReportNotReadyError before the session is complete."""
        return generate_sbar(self.context)

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    async def process_message(self, text: str = "") -> TurnResult:
        """Process one turn of patient input and return the assistant reply.

        The sentinel START_SESSION runs the greeting without extraction.
        """
        text = text or ""

        if self.is_complete:
            return TurnResult(text=SESSION_ENDED, is_complete=True)

        if text == START_SESSION:
            result = self._start()
        else:
            self.messages.append(ChatMessage(role=MessageRole.USER, text=text))
            result = await self._handle_turn(text)

        self.messages.append(
            ChatMessage(role=MessageRole.ASSISTANT, text=strip_completion_marker(result.text))
        )

        logger.info("turn_processed", extra={
            "session_id": self.session_id,
            "state": str(getattr(self.state, "value", self.state)),
            "is_complete": result.is_complete,
            "text_length": len(text),
        })
        return result

    def _start(self) -> TurnResult:
        self.state = SessionState.MAIN_SYMPTOM
        return TurnResult(text=GREETING_PROMPT)

    async def _handle_turn(self, text: str) -> TurnResult:
        candidate = await self.extractor.parse(text)

        self._merge_details(candidate)

        self.context.add_red_flags(filter_red_flags(candidate.red_flags, text))
        if self.context.red_flags:
            return self._escalate(candidate, text)

        handlers = {
            SessionState.GREETING: self._on_greeting,
            SessionState.MAIN_SYMPTOM: self._on_main_symptom,
            SessionState.ASSOCIATED_SYMPTOMS: self._on_associated_symptoms,
            SessionState.DETAILS: self._on_details,
            SessionState.AGE: self._on_age,
        }
        handler = handlers.get(self.state)
        if handler is None:
            logger.warning("unknown_state", extra={
                "session_id": self.session_id, "state": str(self.state),
            })
            return TurnResult(text=UNKNOWN_STATE_PLACEHOLDER)

        self._capture_symptoms(candidate, text)
        if self.context.is_fully_specified:
            if self.state == SessionState.GREETING:
                self._capture_main_symptom(candidate, text)
            return self._finalize()

        return handler(candidate, text)

    def _merge_details(self, candidate: EntityCandidate) -> None:
        ctx = self.context
        if ctx.severity is None and candidate.severity is not None:
            ctx.severity = candidate.severity
        if not ctx.duration and candidate.duration:
            ctx.duration = candidate.duration
        if ctx.age is None and candidate.age is not None:
            ctx.age = candidate.age

    def _capture_symptoms(self, candidate: EntityCandidate, text: str) -> None:
        """Symptoms are state-specific: the same words mean main or associated."""
        if self.state == SessionState.MAIN_SYMPTOM:
            self._capture_main_symptom(candidate, text)
        elif self.state == SessionState.ASSOCIATED_SYMPTOMS:
            self.context.associated_symptoms = candidate.symptom or text.strip() or None

    def _capture_main_symptom(self, candidate: EntityCandidate, text: str) -> None:
        ctx = self.context
        if candidate.symptom:
            ctx.main_symptom = candidate.symptom
        elif not ctx.main_symptom and text.strip():
            ctx.main_symptom = text.strip()
        if candidate.associated_symptoms:
            ctx.associated_symptoms = candidate.associated_symptoms

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _on_greeting(self, candidate: EntityCandidate, text: str) -> TurnResult:
        return self._start()

    def _on_main_symptom(self, candidate: EntityCandidate, text: str) -> TurnResult:
        ctx = self.context
        if ctx.associated_symptoms:
            if ctx.has_details:
                self.state = SessionState.AGE
                return TurnResult(text=(
                    f"Got it ({ctx.main_symptom} + {ctx.associated_symptoms}).\n\n"
                    "I just need your **age** to finish."
                ))
            self.state = SessionState.DETAILS
            return self._ask_details()

        self.state = SessionState.ASSOCIATED_SYMPTOMS
        ack = f'Noted: "{ctx.main_symptom}".'
        if ctx.severity is not None or ctx.duration:
            ack += " I've noted the details."
        return TurnResult(text=f"{ack}\n\n{ASSOCIATED_PROMPT}")

    def _on_associated_symptoms(self, candidate: EntityCandidate, text: str) -> TurnResult:
        ctx = self.context
        if ctx.has_details:
            self.state = SessionState.AGE
            return TurnResult(text=(
                "Got it.\n\nSince you already mentioned the details "
                f"(severity {ctx.severity}, {ctx.duration}), "
                "I just need your **age** to finish."
            ))
        self.state = SessionState.DETAILS
        return self._ask_details()

    def _on_details(self, candidate: EntityCandidate, text: str) -> TurnResult:
        ctx = self.context
        if ctx.severity is None:
            ctx.severity = DEFAULT_DETAILS_SEVERITY
        if not ctx.duration:
            ctx.duration = text.strip() or None

        if ctx.age is not None:
            return self._finalize()

        self.state = SessionState.AGE
        return TurnResult(text=AGE_PROMPT)

    def _on_age(self, candidate: EntityCandidate, text: str) -> TurnResult:
        if self.context.age is None:
            self.context.age = _age_from_text(text)
        return self._finalize()

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _ask_details(self) -> TurnResult:
        missing = []
        if self.context.severity is None:
            missing.append("1. Severity (1-10)")
        if not self.context.duration:
            missing.append("2. Duration (how long?)")
        return TurnResult(text="Got it.\n\nPlease tell me:\n" + "\n".join(missing))

    def _escalate(self, candidate: EntityCandidate, text: str) -> TurnResult:
        ctx = self.context
        if ctx.risk is None:
            ctx.risk = RISK_LEVELS[RiskTier.EMERGENCY]
            ctx.rationale = f"Detected Critical Red Flags: {', '.join(ctx.red_flags)}"
        if not ctx.main_symptom:
            ctx.main_symptom = candidate.symptom or text.strip() or None
        self.state = SessionState.COMPLETE

        logger.warning("red_flag_escalation", extra={
            "session_id": self.session_id, "red_flags": list(ctx.red_flags),
        })
        return TurnResult(text=generate_emergency_alert(ctx), is_complete=True)

    def _finalize(self) -> TurnResult:
        ctx = self.context
        if ctx.risk is None:
            ctx.risk, ctx.rationale = finalize_risk(ctx)
        self.state = SessionState.COMPLETE

        logger.info("session_classified", extra={
            "session_id": self.session_id, "risk": ctx.risk.tier.value,
        })
        return TurnResult(text=generate_report(ctx), is_complete=True)


def _age_from_text(text: str) -> int:
    """First run of digits in the reply, else the default age."""
    match = re.search(r"\d+", text)
    if match is None:
        return DEFAULT_AGE
    age = int(match.group(0))
    return age if age <= _MAX_AGE else DEFAULT_AGE
