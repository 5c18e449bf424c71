"""
ModMail Bot - Content Filter
============================

Banned-term scanning that survives casing, punctuation, leetspeak and
letter spacing.

DESIGN:
    Text is normalized once, then each term is tried three ways:
    (a) whole word, (b) plain containment, (c) letters separated by
    whitespace ("b a d"). Any hit on any term flags the whole text.

    Containment makes short terms trigger inside longer words. That is an
    accepted policy tradeoff, handled by curating the term list.
"""

import re
from typing import Iterable, List, Optional, Pattern, Tuple

from src.core.logger import logger

from .constants import DEFAULT_BANNED_TERMS, LEET_TABLE


# =============================================================================
# Compiled Regex Patterns
# =============================================================================

NON_WORD_PATTERN: Pattern = re.compile(r"[^\w\s]|_", re.UNICODE)
WHITESPACE_PATTERN: Pattern = re.compile(r"\s+")


# =============================================================================
# Normalization
# =============================================================================

def normalize_text(text: str) -> str:
    """
    Normalize text for matching.

    Order matters: lowercase, strip everything but letters/digits/whitespace,
    collapse whitespace, apply the leetspeak table, trim.

    Example:
        "F.U.C.K  y0u" -> "fuck you"
    """
    text = text.lower()
    text = NON_WORD_PATTERN.sub("", text)
    text = WHITESPACE_PATTERN.sub(" ", text)
    text = text.translate(LEET_TABLE)
    return text.strip()


def _spaced_pattern(term: str) -> Pattern:
    """Build a pattern matching the term with whitespace runs between letters."""
    letters = [re.escape(ch) for ch in term if not ch.isspace()]
    return re.compile(r"\s*".join(letters))


# =============================================================================
# Content Filter
# =============================================================================

class ContentFilter:
    """
    Profanity filter over a fixed term list.

    Attributes:
        terms: Normalized banned terms, in priority order.
    """

    def __init__(self, terms: Optional[Iterable[str]] = None, extra_terms: Optional[Iterable[str]] = None) -> None:
        source = list(DEFAULT_BANNED_TERMS if terms is None else terms)
        if extra_terms:
            source.extend(extra_terms)

        self.terms: List[str] = []
        self._patterns: List[Tuple[str, Pattern, Pattern]] = []

        for raw in source:
            term = normalize_text(raw)
            if not term or term in self.terms:
                continue
            self.terms.append(term)
            self._patterns.append((
                term,
                re.compile(rf"\b{re.escape(term)}\b"),
                _spaced_pattern(term),
            ))

        logger.tree("Content Filter Initialized", [
            ("Terms", str(len(self.terms))),
            ("Rules", "word, containment, spaced"),
        ], emoji="🧹")

    def find_match(self, text: Optional[str]) -> Optional[str]:
        """
        Return the first banned term found in the text, or None.

        Args:
            text: Raw message content.
        """
        if not text:
            return None

        normalized = normalize_text(text)
        if not normalized:
            return None

        for term, word_pattern, spaced_pattern in self._patterns:
            if word_pattern.search(normalized):
                return term
            if term in normalized:
                return term
            if spaced_pattern.search(normalized):
                return term
        return None

    def is_prohibited(self, text: Optional[str]) -> bool:
        """Check whether the text contains any banned term."""
        return self.find_match(text) is not None


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "ContentFilter",
    "normalize_text",
]
