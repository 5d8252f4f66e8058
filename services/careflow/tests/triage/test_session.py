"""Tests for the triage dialogue state machine."""

import pytest

from services.careflow.src.careflow.core.pipeline import ExtractionChain
from services.careflow.src.careflow.schemas.enums import MessageRole, RiskTier, SessionState
from services.careflow.src.careflow.triage.extract import RuleBasedExtractor
from services.careflow.src.careflow.triage.report import COMPLETION_MARKER, ReportNotReadyError
from services.careflow.src.careflow.triage.schemas import EntityCandidate
from services.careflow.src.careflow.triage.session import (
    GREETING_PROMPT,
    SESSION_ENDED,
    START_SESSION,
    UNKNOWN_STATE_PLACEHOLDER,
    TriageSession,
)


def _session_with_remote(remote) -> TriageSession:
    return TriageSession(extractor=ExtractionChain([remote, RuleBasedExtractor()]))


# ---------------------------------------------------------------------------
# Greeting
# ---------------------------------------------------------------------------

class TestGreeting:
    @pytest.mark.asyncio
    async def test_start_session_greets(self, session):
        result = await session.process_message(START_SESSION)
        assert result.text == GREETING_PROMPT
        assert result.is_complete is False
        assert session.state == SessionState.MAIN_SYMPTOM

    @pytest.mark.asyncio
    async def test_start_session_skips_extractors(self, static_extractor):
        spy = static_extractor(result=EntityCandidate(red_flags=["chest pain"]))
        s = TriageSession(extractor=spy)
        await s.process_message(START_SESSION)
        assert spy.calls == []
        assert s.state == SessionState.MAIN_SYMPTOM

    @pytest.mark.asyncio
    async def test_first_text_without_sentinel_greets(self, session):
        result = await session.process_message("headache")
        assert result.text == GREETING_PROMPT
        assert session.state == SessionState.MAIN_SYMPTOM
        assert session.context.main_symptom is None

    @pytest.mark.asyncio
    async def test_red_flag_during_greeting_escalates(self, session):
        result = await session.process_message("my dad passed out")
        assert result.is_complete is True
        assert session.context.risk.tier == RiskTier.EMERGENCY


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    @pytest.mark.asyncio
    async def test_single_turn_completion(self, started_session):
        result = await started_session.process_message(
            "I have a headache, severity 8, for 2 days, I'm 40"
        )
        ctx = started_session.context
        assert result.is_complete is True
        assert started_session.state == SessionState.COMPLETE
        assert ctx.risk.tier == RiskTier.URGENT
        assert "URGENT CARE" in result.text
        assert ctx.main_symptom == "headache"
        assert ctx.severity == 8
        assert ctx.duration == "2 days"
        assert ctx.age == 40

    @pytest.mark.asyncio
    async def test_chest_pain_is_immediate_emergency(self, started_session):
        result = await started_session.process_message("chest pain")
        ctx = started_session.context
        assert result.is_complete is True
        assert ctx.risk.tier == RiskTier.EMERGENCY
        assert ctx.red_flags == ["chest pain"]
        assert ctx.rationale == "Detected Critical Red Flags: chest pain"
        assert ctx.main_symptom == "chest pain"
        assert "CRITICAL ALERT" in result.text

    @pytest.mark.asyncio
    async def test_mild_headache_asks_for_associated(self, started_session):
        result = await started_session.process_message("mild headache")
        assert result.is_complete is False
        assert started_session.state == SessionState.ASSOCIATED_SYMPTOMS
        assert started_session.context.severity == 2
        assert started_session.context.main_symptom == "headache"

    @pytest.mark.asyncio
    async def test_negated_chest_pain_is_not_emergency(self, started_session):
        result = await started_session.process_message(
            "no chest pain but I have a mild cough for 3 days, I'm 25"
        )
        ctx = started_session.context
        assert result.is_complete is True
        assert "chest pain" not in ctx.red_flags
        assert ctx.risk.tier in (RiskTier.ROUTINE, RiskTier.TELECONSULT)
        assert ctx.main_symptom == "cough"
        assert started_session.generate_sbar().startswith("S: cough ")


# ---------------------------------------------------------------------------
# Pain scores and durations are not ages
# ---------------------------------------------------------------------------

class TestNumberReading:
    @pytest.mark.asyncio
    async def test_i_am_score_is_not_age(self, started_session):
        s = started_session
        r = await s.process_message("headache, i am 8 out of 10, for 2 days")
        assert r.is_complete is False
        assert s.context.severity == 8
        assert s.context.age is None
        assert s.context.duration == "2 days"
        assert s.context.risk is None

    @pytest.mark.asyncio
    async def test_im_slash_score_is_not_age(self, started_session):
        s = started_session
        r = await s.process_message("migraine, im 7/10")
        assert r.is_complete is False
        assert s.context.severity == 7
        assert s.context.age is None
        assert s.context.main_symptom == "migraine"

    @pytest.mark.asyncio
    async def test_years_duration_still_asks_age(self, started_session):
        s = started_session
        await s.process_message("back pain for the last 2 years")
        assert s.state == SessionState.ASSOCIATED_SYMPTOMS
        assert s.context.duration == "2 years"
        assert s.context.age is None

        await s.process_message("none")
        r = await s.process_message("6")
        assert s.state == SessionState.AGE
        assert "age" in r.text


# ---------------------------------------------------------------------------
# Full dialogue walk
# ---------------------------------------------------------------------------

class TestDialogue:
    @pytest.mark.asyncio
    async def test_walk_through_every_state(self, started_session):
        s = started_session

        r = await s.process_message("headache")
        assert s.state == SessionState.ASSOCIATED_SYMPTOMS
        assert 'Noted: "headache"' in r.text

        r = await s.process_message("nausea")
        assert s.state == SessionState.DETAILS
        assert "Severity (1-10)" in r.text
        assert "Duration" in r.text
        assert s.context.associated_symptoms == "nausea"

        r = await s.process_message("6, for 3 days")
        assert s.state == SessionState.AGE
        assert "age" in r.text

        r = await s.process_message("70")
        assert r.is_complete is True
        assert s.context.age == 70
        assert s.context.risk.tier == RiskTier.URGENT
        assert "age 70" in s.context.rationale

    @pytest.mark.asyncio
    async def test_details_prompt_asks_only_missing(self, started_session):
        s = started_session
        await s.process_message("headache for 2 days")
        r = await s.process_message("fever")
        assert s.state == SessionState.DETAILS
        assert "Severity" in r.text
        assert "Duration" not in r.text

    @pytest.mark.asyncio
    async def test_known_details_skip_to_age(self, started_session):
        s = started_session
        r = await s.process_message("back pain 7 for 2 weeks")
        assert s.state == SessionState.ASSOCIATED_SYMPTOMS
        assert "I've noted the details" in r.text

        r = await s.process_message("dizziness")
        assert s.state == SessionState.AGE
        assert "severity 7, 2 weeks" in r.text

        r = await s.process_message("52")
        assert r.is_complete is True
        assert s.context.risk.tier == RiskTier.URGENT

    @pytest.mark.asyncio
    async def test_smart_skip_across_turns(self, started_session):
        s = started_session
        await s.process_message("headache for 2 days")
        assert s.state == SessionState.ASSOCIATED_SYMPTOMS

        r = await s.process_message("I'm 33 and it's a 4")
        assert r.is_complete is True
        assert s.context.age == 33
        assert s.context.severity == 4
        assert s.context.risk.tier == RiskTier.TELECONSULT

    @pytest.mark.asyncio
    async def test_silent_defaults(self, started_session):
        s = started_session
        await s.process_message("headache")
        await s.process_message("none")
        assert s.state == SessionState.DETAILS

        await s.process_message("not sure")
        assert s.context.severity == 5
        assert s.context.duration == "not sure"
        assert s.state == SessionState.AGE

        r = await s.process_message("no idea")
        assert r.is_complete is True
        assert s.context.age == 30
        assert s.context.risk.tier == RiskTier.TELECONSULT

    @pytest.mark.asyncio
    async def test_age_reply_with_extra_words(self, started_session):
        s = started_session
        await s.process_message("headache")
        await s.process_message("none")
        await s.process_message("3 for 1 day")
        await s.process_message("around 45 I think")
        assert s.context.age == 45
        assert s.is_complete

    @pytest.mark.asyncio
    async def test_values_are_not_overwritten(self, started_session):
        s = started_session
        await s.process_message("headache, severity 3")
        await s.process_message("now it's a 9")
        assert s.context.severity == 3


# ---------------------------------------------------------------------------
# Red-flag override in later states
# ---------------------------------------------------------------------------

class TestRedFlagOverride:
    @pytest.mark.asyncio
    async def test_red_flag_in_associated_state(self, started_session):
        s = started_session
        await s.process_message("headache")
        r = await s.process_message("and some slurred speech")
        assert r.is_complete is True
        assert s.context.risk.tier == RiskTier.EMERGENCY
        assert s.context.main_symptom == "headache"
        assert s.context.red_flags == ["slurred speech"]

    @pytest.mark.asyncio
    async def test_red_flag_in_age_state(self, started_session):
        s = started_session
        await s.process_message("headache")
        await s.process_message("none")
        await s.process_message("5 for 2 days")
        assert s.state == SessionState.AGE
        r = await s.process_message("I just fainted")
        assert r.is_complete is True
        assert s.context.risk.tier == RiskTier.EMERGENCY

    @pytest.mark.asyncio
    async def test_negated_flag_in_associated_state(self, started_session):
        s = started_session
        await s.process_message("headache")
        r = await s.process_message("no numbness")
        assert r.is_complete is False
        assert s.context.red_flags == []
        assert s.state == SessionState.DETAILS


# ---------------------------------------------------------------------------
# Terminal state
# ---------------------------------------------------------------------------

class TestComplete:
    @pytest.mark.asyncio
    async def test_further_turns_are_ignored(self, started_session):
        s = started_session
        await s.process_message("chest pain")
        risk = s.context.risk
        snapshot = s.context.model_dump()
        message_count = len(s.messages)

        r = await s.process_message("actually I'm fine, severity 1, 2 days, 20 years old")
        assert r.text == SESSION_ENDED
        assert r.is_complete is True
        assert s.context.model_dump() == snapshot
        assert s.context.risk is risk
        assert len(s.messages) == message_count

    @pytest.mark.asyncio
    async def test_start_session_after_complete(self, started_session):
        s = started_session
        await s.process_message("chest pain")
        r = await s.process_message(START_SESSION)
        assert r.text == SESSION_ENDED
        assert s.state == SessionState.COMPLETE


# ---------------------------------------------------------------------------
# Extractor fallback
# ---------------------------------------------------------------------------

class TestExtractorFallback:
    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_rules(self, static_extractor):
        s = _session_with_remote(static_extractor(error=RuntimeError("boom")))
        await s.process_message(START_SESSION)
        r = await s.process_message("mild headache")
        assert r.is_complete is False
        assert s.context.severity == 2

    @pytest.mark.asyncio
    async def test_remote_associated_symptoms_go_to_details(self, static_extractor):
        remote = static_extractor(result=EntityCandidate(
            symptom="headache", associated_symptoms="nausea", source="remote",
        ))
        s = _session_with_remote(remote)
        await s.process_message(START_SESSION)
        await s.process_message("headache with nausea")
        assert s.state == SessionState.DETAILS
        assert s.context.main_symptom == "headache"
        assert s.context.associated_symptoms == "nausea"

    @pytest.mark.asyncio
    async def test_remote_associated_with_details_asks_age(self, static_extractor):
        remote = static_extractor(result=EntityCandidate(
            symptom="headache", associated_symptoms="nausea",
            severity=6, duration="2 days", source="remote",
        ))
        s = _session_with_remote(remote)
        await s.process_message(START_SESSION)
        r = await s.process_message("headache with nausea, 6, two days")
        assert s.state == SessionState.AGE
        assert "headache + nausea" in r.text

    @pytest.mark.asyncio
    async def test_remote_negated_flag_is_filtered(self, static_extractor):
        remote = static_extractor(result=EntityCandidate(
            symptom="cough", red_flags=["chest pain"], source="remote",
        ))
        s = _session_with_remote(remote)
        await s.process_message(START_SESSION)
        r = await s.process_message("no chest pain, just a cough")
        assert r.is_complete is False
        assert s.context.red_flags == []


# ---------------------------------------------------------------------------
# Transcript, SBAR, reset
# ---------------------------------------------------------------------------

class TestSessionApi:
    @pytest.mark.asyncio
    async def test_transcript(self, started_session):
        s = started_session
        await s.process_message("I have a headache, severity 8, for 2 days, I'm 40")
        roles = [m.role for m in s.messages]
        assert roles == [MessageRole.ASSISTANT, MessageRole.USER, MessageRole.ASSISTANT]
        assert all(COMPLETION_MARKER not in m.text for m in s.messages)

    @pytest.mark.asyncio
    async def test_sbar_only_after_completion(self, started_session):
        s = started_session
        with pytest.raises(ReportNotReadyError):
            s.generate_sbar()
        assert s.summary is None

        await s.process_message("I have a headache, severity 8, for 2 days, I'm 40")
        sbar = s.generate_sbar()
        assert sbar.startswith("S: headache (Sev 8).")
        assert s.summary == sbar

    @pytest.mark.asyncio
    async def test_reset(self, started_session):
        s = started_session
        await s.process_message("chest pain")
        s.reset()
        assert s.state == SessionState.GREETING
        assert s.context.risk is None
        assert s.context.red_flags == []
        assert s.messages == []

    @pytest.mark.asyncio
    async def test_unknown_state_placeholder(self, started_session):
        s = started_session
        s.state = "SOMETHING_ELSE"
        r = await s.process_message("headache")
        assert r.text == UNKNOWN_STATE_PLACEHOLDER
        assert r.is_complete is False
