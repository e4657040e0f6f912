"""Keyword-proximity scoring over a text window.

Contextual heuristics throughout the extractor share one shape: look for a
keyword near a candidate span and adjust the candidate's score when it is
close enough. Rules are plain data so each one can be tested on its own and
new vocabulary can be added without touching control flow.
"""

import re
from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

Direction = Literal["before", "after", "around"]

T = TypeVar("T")


@dataclass(frozen=True)
class ExtractedField(Generic[T]):
    """A scored candidate value and the text span it came from.

    Several candidates for the same field coexist while a document is being
    scanned; only the winner survives into the extraction result.
    """

    value: T
    start: int
    end: int
    score: float
    reasons: tuple[str, ...] = ()

    @property
    def rationale(self) -> str:
        return ", ".join(self.reasons) if self.reasons else "no context"


@dataclass(frozen=True)
class KeywordRule:
    """A single keyword -> score delta rule.

    Attributes:
        name: Short identifier used in score rationales
        pattern: Regular expression (matched case-insensitively)
        delta: Score adjustment applied when the keyword is close enough
        max_distance: Maximum characters between keyword and candidate
        direction: Side of the candidate the keyword must appear on
    """

    name: str
    pattern: str
    delta: float
    max_distance: int = 100
    direction: Direction = "around"
    _compiled: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled", re.compile(self.pattern, re.IGNORECASE))

    def distance(
        self,
        text: str,
        start: int,
        end: int,
        window: int,
        lo: int = 0,
        hi: int | None = None,
    ) -> int | None:
        """Distance from the candidate span to the nearest keyword hit.

        Only the ``window`` characters on each side of the span are searched,
        and never outside ``[lo, hi)``.

        Returns:
            Character distance, or None if no hit on the configured side
        """
        best: int | None = None

        if self.direction in ("before", "around"):
            first = max(lo, start - window)
            for hit in self._compiled.finditer(text, first, start):
                gap = start - hit.end()
                if best is None or gap < best:
                    best = gap

        if self.direction in ("after", "around"):
            last = min(len(text) if hi is None else hi, end + window)
            hit = self._compiled.search(text, end, last)
            if hit is not None:
                gap = hit.start() - end
                if best is None or gap < best:
                    best = gap

        return best


@dataclass(frozen=True)
class WindowScore:
    """Result of scoring one candidate span against a rule table."""

    score: float
    reasons: tuple[str, ...] = ()


def score_window(
    text: str,
    start: int,
    end: int,
    rules: tuple[KeywordRule, ...],
    window: int = 200,
    lo: int = 0,
    hi: int | None = None,
) -> WindowScore:
    """Score a candidate span by the keywords that surround it.

    Each rule contributes its delta at most once, when its nearest hit lies
    within ``rule.max_distance`` characters of the span.

    Args:
        text: Full document text
        start: Candidate span start offset
        end: Candidate span end offset
        rules: Rule table to apply
        window: Characters searched on each side of the span
        lo: Leftmost offset a keyword may start at
        hi: Offset a keyword must end before (defaults to the end of text)

    Returns:
        Accumulated score and a human-readable rationale per applied rule
    """
    score = 0.0
    reasons: list[str] = []
    for rule in rules:
        gap = rule.distance(text, start, end, window, lo, hi)
        if gap is not None and gap <= rule.max_distance:
            score += rule.delta
            reasons.append(f"{rule.name}{rule.delta:+g}@{gap}")
    return WindowScore(score=score, reasons=tuple(reasons))
