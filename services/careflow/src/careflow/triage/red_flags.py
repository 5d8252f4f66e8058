"""Negation filter for detected red flags.

Keyword matching alone would turn "no chest pain" into an emergency. A flag
is dropped when the turn text puts a negation cue directly in front of it.
"""

import logging
import re

logger = logging.getLogger(__name__)

NEGATION_CUES: tuple[str, ...] = ("no", "not", "don't have", "dont have", "do not have", "without")

_NEGATION_PREFIX = r"\b(?:" + "|".join(re.escape(cue) for cue in NEGATION_CUES) + r")\s+"


def _negation_pattern(flag: str) -> re.Pattern[str]:
    return re.compile(_NEGATION_PREFIX + re.escape(flag.lower()), re.IGNORECASE)


def is_negated(flag: str, source_text: str) -> bool:
    return _negation_pattern(flag).search(source_text.replace("’", "'")) is not None


def negated_spans(flags: list[str], source_text: str) -> list[tuple[int, int]]:
    """Spans of "<cue> <flag>" phrases such as "no chest pain" in source_text."""
    text = source_text.replace("’", "'")
    return [
        match.span()
        for flag in flags
        for match in _negation_pattern(flag).finditer(text)
    ]


def filter_red_flags(flags: list[str], source_text: str) -> list[str]:
    """Return the flags that are not explicitly negated in source_text."""
    if not flags:
        return []

    kept = []
    for flag in flags:
        if is_negated(flag, source_text or ""):
            logger.info("red_flag_negated", extra={"flag": flag})
            continue
        kept.append(flag)
    return kept
