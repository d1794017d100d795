"""Tests for the junk transcript filter."""

from __future__ import annotations

import pytest

from timbra.config import DEFAULT_FILLER_WORDS
from timbra.core.transcript_filter import TranscriptFilter, normalize_transcript


@pytest.fixture
def transcript_filter() -> TranscriptFilter:
    return TranscriptFilter(DEFAULT_FILLER_WORDS, max_chars=24, min_chars=2)


class TestNormalize:
    """Tests for normalize_transcript."""

    def test_lowercases_and_strips_punctuation(self) -> None:
        assert normalize_transcript("  Danke schön!  ") == "danke schön"

    def test_collapses_whitespace(self) -> None:
        assert normalize_transcript("Ja,\n\tgenau.") == "ja genau"


class TestTranscriptFilter:
    """Tests for TranscriptFilter."""

    @pytest.mark.parametrize(
        "text",
        [
            "Danke.",
            "danke schön",
            "Ja, genau.",
            "Äh, hm.",
            "",
            "   ",
            "a",
            "Untertitel im Auftrag des ZDF.",
        ],
    )
    def test_junk(self, transcript_filter: TranscriptFilter, text: str) -> None:
        assert transcript_filter.is_junk(text)
        assert transcript_filter.clean(text) is None

    @pytest.mark.parametrize(
        "text",
        [
            "Ich möchte einen Termin am Montag",
            "Ja, ich möchte einen Termin",
            "Wann haben Sie geöffnet?",
            "Nein, der.",
            "Im Auftrag.",
        ],
    )
    def test_meaningful(self, transcript_filter: TranscriptFilter, text: str) -> None:
        assert not transcript_filter.is_junk(text)

    def test_clean_collapses_whitespace(self, transcript_filter: TranscriptFilter) -> None:
        cleaned = transcript_filter.clean("  Ich  brauche\neinen Termin ")
        assert cleaned == "Ich brauche einen Termin"

    def test_long_filler_only_text_is_kept(self) -> None:
        """Beyond max_chars a string of filler tokens is treated as real speech."""
        strict = TranscriptFilter(["ja"], max_chars=5)
        assert strict.is_junk("ja ja")
        assert not strict.is_junk("ja ja ja ja")

    def test_phrase_words_are_not_filler_tokens(self) -> None:
        """Words taken from a multi-word artifact do not count on their own."""
        artifacts = TranscriptFilter(["nein", "untertitel im auftrag des zdf"])
        assert artifacts.is_junk("Untertitel im Auftrag des ZDF")
        assert artifacts.is_junk("Nein.")
        assert not artifacts.is_junk("Nein, der Auftrag")

    def test_custom_filler_words(self) -> None:
        custom = TranscriptFilter(["Servus"])
        assert custom.is_junk("Servus!")
        assert not custom.is_junk("Danke")
