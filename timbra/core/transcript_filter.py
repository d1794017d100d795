"""Filter for transcripts that should not drive a reply.

Short acknowledgements, interjections and well-known transcription
artifacts (subtitle credits hallucinated on silence) are treated as if
nothing was said.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_PUNCTUATION_RE = re.compile(r"[^\w\s'-]+", re.UNICODE)
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_transcript(text: str) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    text = unicodedata.normalize("NFC", text).casefold()
    text = _PUNCTUATION_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


class TranscriptFilter:
    """Decides whether a transcript is junk."""

    def __init__(
        self,
        filler_words: Iterable[str],
        *,
        max_chars: int = 24,
        min_chars: int = 2,
    ) -> None:
        self._phrases = {normalize_transcript(w) for w in filler_words if w.strip()}
        # Multi-word phrases (subtitle credits) only match as a whole
        self._tokens = {phrase for phrase in self._phrases if " " not in phrase}
        self._max_chars = max_chars
        self._min_chars = min_chars

    def is_junk(self, text: str) -> bool:
        """True if ``text`` is empty, too short, or only filler."""
        normalized = normalize_transcript(text)
        if len(normalized) < max(self._min_chars, 1):
            return True
        if normalized in self._phrases:
            return True
        if len(normalized) > self._max_chars:
            return False
        return all(token in self._tokens for token in normalized.split())

    def clean(self, text: str) -> str | None:
        """Return the stripped transcript, or None when it is junk."""
        if self.is_junk(text):
            return None
        return " ".join(text.split())
