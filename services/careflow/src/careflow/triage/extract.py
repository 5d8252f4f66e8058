"""Deterministic rule-based entity extraction.

Used on every turn the remote extractor cannot answer (no API key, network
error, malformed payload). It never fails: fields it cannot find come back
as None.

Extraction order matters:
  1. Age is found first and its span is blanked out.
  2. Duration is searched in what remains, then blanked out.
  3. Severity is searched in what remains, so "for 3 days" or "I'm 8 years
     old" never read as a severity score.
  4. Red flags are matched against the full text.
  5. Symptom is whatever text is left once all three spans, denied red flags
     ("no chest pain"), connectors, filler phrases and intensity adjectives
     are stripped.

A bare "N years" is read as a duration. It only counts as an age next to an
explicit marker ("years old", "aged", "i'm"), and "i'm 8/10" is a pain score.

Every table below is an ordered list of ExtractionRule(priority, pattern,
handler). Rules run in ascending priority and the first one whose handler
yields a value wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.red_flags import negated_spans
from services.careflow.src.careflow.triage.schemas import EntityCandidate

LOCAL_CONFIDENCE = 0.9

# (value, match) picked by a rule handler out of all matches of its pattern
RuleHit = tuple[object, re.Match[str]]


@dataclass(frozen=True)
class ExtractionRule:
    priority: int
    pattern: re.Pattern[str]
    handler: Callable[[list[re.Match[str]]], RuleHit | None]


@dataclass(frozen=True)
class RuleMatch:
    value: object
    span: tuple[int, int]


def _apply_rules(rules: list[ExtractionRule], text: str) -> RuleMatch | None:
    for rule in sorted(rules, key=lambda r: r.priority):
        hit = rule.handler(list(rule.pattern.finditer(text)))
        if hit is not None:
            value, match = hit
            return RuleMatch(value=value, span=match.span())
    return None


def _first(convert: Callable[[re.Match[str]], object]):
    """Handler taking the first match (in order of appearance) that converts."""

    def handler(matches: list[re.Match[str]]) -> RuleHit | None:
        for match in matches:
            value = convert(match)
            if value is not None:
                return value, match
        return None

    return handler


def _blank_spans(text: str, spans: list[tuple[int, int]]) -> str:
    """Replace each span with spaces, keeping every other offset unchanged."""
    chars = list(text)
    for start, end in spans:
        chars[start:end] = " " * (end - start)
    return "".join(chars)


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------

_MAX_AGE = 130
_TIME_UNIT = r"(?:minute|hour|day|week|month|year)s?"
# "8/10", "8 out of 10" is a pain score
_SCORE_SUFFIX = r"\s*(?:/|out of\b)"


def _age_value(match: re.Match[str]) -> int | None:
    age = int(match.group(1))
    return age if age <= _MAX_AGE else None


AGE_RULES: list[ExtractionRule] = [
    # "40 years old", "40 yrs old", "40-year-old"
    ExtractionRule(10, re.compile(r"\b(\d{1,3})[\s-]*(?:years?|yrs?)[\s-]*old\b"), _first(_age_value)),
    # "40yo", "40 y/o"
    ExtractionRule(20, re.compile(r"\b(\d{1,3})\s*(?:yo|y/o)\b"), _first(_age_value)),
    # "aged 40", "age: 40", "age 52 years"
    ExtractionRule(
        30,
        re.compile(rf"\b(?:age|aged):?\s+(\d{{1,3}})\b(?!{_SCORE_SUFFIX})"),
        _first(_age_value),
    ),
    # "i'm 40", "i am 40"; a bare "N years" without an age marker is a duration
    ExtractionRule(
        40,
        re.compile(
            rf"\b(?:i'm|im|i am)\s+(\d{{1,3}})\b(?!\s*{_TIME_UNIT}\b)(?!{_SCORE_SUFFIX})"
        ),
        _first(_age_value),
    ),
]


# ---------------------------------------------------------------------------
# Duration
# ---------------------------------------------------------------------------

DURATION_RULES: list[ExtractionRule] = [
    # "2 days", "a week", "three hours"
    ExtractionRule(
        10,
        re.compile(rf"\b(?:\d+|a|an|one|two|three)\s+{_TIME_UNIT}\b"),
        _first(lambda m: m.group(0)),
    ),
    # "since yesterday", "for a while"
    ExtractionRule(
        20,
        re.compile(r"\b(?:since|for)\s+(?:yesterday|last night|this morning|a while)\b"),
        _first(lambda m: m.group(0)),
    ),
]


# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------

SEVERITY_WORDS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

SEVERITY_KEYWORDS: dict[str, int] = {
    "mild": 2, "low": 2, "slight": 2, "bit": 2,
    "moderate": 5, "medium": 5, "average": 5,
    "severe": 8, "high": 8, "intense": 8,
    "worst": 10, "excruciating": 10, "unbearable": 10,
    "killer": 9,
    "bad": 7,
    "hurts": 6, "painful": 6,
}


def _strongest_keyword(matches: list[re.Match[str]]) -> RuleHit | None:
    """Highest weight wins; equal weights keep the first appearance."""
    best: RuleHit | None = None
    for match in matches:
        weight = SEVERITY_KEYWORDS[match.group(1)]
        if best is None or weight > best[0]:
            best = (weight, match)
    return best


SEVERITY_RULES: list[ExtractionRule] = [
    # "8", "8/10", "8 out of 10"; never the "10" of a score denominator
    ExtractionRule(
        10,
        re.compile(r"(?<!/)(?<!/ )(?<!out of )\b(10|[1-9])(?:\s*(?:/|out of)\s*10)?\b"),
        _first(lambda m: int(m.group(1))),
    ),
    ExtractionRule(
        20,
        re.compile(r"\b(" + "|".join(SEVERITY_WORDS) + r")\b"),
        _first(lambda m: SEVERITY_WORDS[m.group(1)]),
    ),
    ExtractionRule(
        30,
        re.compile(r"\b(" + "|".join(SEVERITY_KEYWORDS) + r")\b"),
        _strongest_keyword,
    ),
]


# ---------------------------------------------------------------------------
# Symptom clean-up
# ---------------------------------------------------------------------------

_CONNECTORS = re.compile(r"\b(?:for|since|is|was|around|about|and|also|but|with)\b")

_FILLERS = re.compile(
    r"\b(?:i am having|i have|i've had|i've got|i feel|it feels|there is|"
    r"suffering from|complaining of|experiencing|"
    r"pain level|pain scale|the last|the past|"
    r"i'm|im|i am|my|severity|level|rated|age|years|old)\b"
)

_DESCRIPTORS = re.compile(
    r"\b(?:a|an|the|some|very|really|quite|bad|mild|severe|moderate)\b"
)

_PUNCTUATION = re.compile(r"[.,!?;:]")


def extract_symptom(text: str, spans: list[tuple[int, int]]) -> str | None:
    """Return what is left of the text once known entities and noise are removed."""
    clean = _blank_spans(text, spans)
    for pattern in (_CONNECTORS, _FILLERS, _DESCRIPTORS, _PUNCTUATION):
        clean = pattern.sub(" ", clean)
    clean = re.sub(r"\s+", " ", clean).strip()
    return clean or None


# ---------------------------------------------------------------------------
# Red flags
# ---------------------------------------------------------------------------

RED_FLAG_KEYWORDS: tuple[str, ...] = (
    # Cardiac
    "chest pain", "heart attack", "crushing pain",
    # Respiratory
    "shortness of breath", "difficulty breathing", "can't breathe",
    "cannot breathe", "gasping", "air hunger",
    # Neurological
    "stroke", "face drooping", "facial drooping", "slurred speech",
    "numbness", "seizure",
    # Consciousness
    "unconscious", "fainted", "passed out",
    # Bleeding
    "severe bleeding", "hemorrhage",
    # Psychiatric / toxic
    "suicide", "suicidal", "kill myself", "overdose",
)


def detect_red_flags(text: str) -> list[str]:
    """Return every critical keyword found in the (normalized) text."""
    return [keyword for keyword in RED_FLAG_KEYWORDS if keyword in text]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def normalize(text: str) -> str:
    return text.lower().replace("’", "'").strip()


def parse_entities(text: str) -> EntityCandidate:
    """Extract entities from one turn of free text using the rule tables."""
    clean = normalize(text or "")

    age = _apply_rules(AGE_RULES, clean)
    spans = [age.span] if age else []

    duration = _apply_rules(DURATION_RULES, _blank_spans(clean, spans))
    if duration:
        spans.append(duration.span)

    severity = _apply_rules(SEVERITY_RULES, _blank_spans(clean, spans))
    if severity:
        spans.append(severity.span)

    red_flags = detect_red_flags(clean)
    spans.extend(negated_spans(red_flags, clean))

    return EntityCandidate(
        symptom=extract_symptom(clean, spans),
        severity=severity.value if severity else None,
        duration=duration.value if duration else None,
        age=age.value if age else None,
        red_flags=red_flags,
        raw_input=text or "",
        confidence=LOCAL_CONFIDENCE,
        source="local",
    )


class RuleBasedExtractor(EntityExtractor):
    """Local extractor backed by parse_entities. Total: never returns None."""

    @property
    def name(self) -> str:
        return "rules"

    async def parse(self, text: str) -> EntityCandidate:
        return parse_entities(text)
