"""Commit content generation.

Appends a marker line to the target file and picks the commit phrase.
Randomness and time are injected so output is reproducible in tests.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class GeneratedContent:
    """New file content plus the phrase and the upstream commit message."""

    content: str
    phrase: str
    message: str


class ContentGenerator:
    """Builds new file content and the commit message for one attempt.

    Args:
        random_source: RNG used for uniform phrase choice
        clock: Returns the timestamp embedded in the marker line
        attribution: Optional line appended to the upstream message only

    Example:
        >>> gen = ContentGenerator(random.Random(7), attribution=None)
        >>> result = gen.generate(["Update docs"], "# Readme\\n")
        >>> result.phrase
        'Update docs'
    """

    def __init__(
        self,
        random_source: random.Random | None = None,
        clock: Clock = utc_now,
        attribution: str | None = None,
    ) -> None:
        self.random = random_source or random.Random()
        self.clock = clock
        self.attribution = attribution

    def choose_phrase(self, phrases: Sequence[str]) -> str:
        if not phrases:
            raise ValueError("at least one commit phrase is required")
        return phrases[self.random.randrange(len(phrases))]

    def build_message(self, phrase: str) -> str:
        if self.attribution:
            return f"{phrase}\n\n{self.attribution}"
        return phrase

    def generate(self, phrases: Sequence[str], existing_content: str = "") -> GeneratedContent:
        phrase = self.choose_phrase(phrases)
        timestamp = self.clock().astimezone(UTC).isoformat()
        content = f"{existing_content or ''}\n<!-- {phrase} - {timestamp} -->\n"
        return GeneratedContent(content=content, phrase=phrase, message=self.build_message(phrase))


__all__ = ["Clock", "utc_now", "GeneratedContent", "ContentGenerator"]
