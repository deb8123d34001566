"""Tests for label_normalizer module."""

from __future__ import annotations

import logging

import pytest

from label_normalizer import (
    ACRONYM,
    ALPHANUM,
    APOSTROPHE,
    COMPANY,
    HOST,
    NUM,
    LabelNormalizer,
    Token,
    classic_filter,
    wiki_tokenize,
)


class TestWikiTokenize:
    def test_splits_on_punctuation_and_whitespace(self) -> None:
        tokens = list(wiki_tokenize("New York, (city)"))
        assert tokens == [
            Token("New", ALPHANUM),
            Token("York", ALPHANUM),
            Token("city", ALPHANUM),
        ]

    def test_classifies_tokens(self) -> None:
        tokens = list(wiki_tokenize("U.S. O'Neil's AT&T 3.14 www.example.org"))
        assert [token.type for token in tokens] == [ACRONYM, APOSTROPHE, COMPANY, NUM, HOST]

    def test_markup_is_a_boundary(self) -> None:
        tokens = list(wiki_tokenize("'''Bold''' and <i>italic</i>"))
        assert [token.text for token in tokens] == ["Bold", "and", "italic"]


class TestClassicFilter:
    def test_strips_possessive(self) -> None:
        tokens = list(classic_filter([Token("President's", APOSTROPHE)]))
        assert tokens == [Token("President", APOSTROPHE)]

    def test_keeps_inner_apostrophe(self) -> None:
        tokens = list(classic_filter([Token("O'Neil", APOSTROPHE)]))
        assert tokens == [Token("O'Neil", APOSTROPHE)]

    def test_removes_acronym_dots(self) -> None:
        tokens = list(classic_filter([Token("U.S.A.", ACRONYM)]))
        assert tokens == [Token("USA", ACRONYM)]


class TestLabelNormalizer:
    def test_case_variants_share_label(self) -> None:
        normalizer = LabelNormalizer()
        assert normalizer.normalize("New York") == "new york"
        assert normalizer.normalize("new york") == "new york"
        assert normalizer.normalize("NEW   York") == "new york"

    def test_classic_filtering(self) -> None:
        normalizer = LabelNormalizer()
        assert normalizer.normalize("U.S. President's") == "us president"

    def test_entities_and_emphasis(self) -> None:
        normalizer = LabelNormalizer()
        assert normalizer.normalize("''AT&amp;T''") == "at&t"

    def test_unicode_letters(self) -> None:
        assert LabelNormalizer().normalize("Café Müller") == "café müller"

    @pytest.mark.parametrize("text", ["", "   ", "!!! -- ...", "''' '''"])
    def test_nothing_usable_gives_empty_label(self, text: str) -> None:
        assert LabelNormalizer().normalize(text) == ""

    def test_deterministic(self) -> None:
        normalizer = LabelNormalizer()
        text = "The ''Big'' Apple's history"
        assert normalizer.normalize(text) == normalizer.normalize(text)
        assert LabelNormalizer().normalize(text) == normalizer.normalize(text)

    def test_pluggable_tokenizer_skips_empty_tokens(self) -> None:
        def comma_tokenizer(text: str):
            return [Token(part, ALPHANUM) for part in text.split(",")]

        normalizer = LabelNormalizer(tokenizer=comma_tokenizer, token_filters=[])
        assert normalizer.normalize("A,,B") == "A B"

    def test_failing_tokenizer_skips_label(self, caplog: pytest.LogCaptureFixture) -> None:
        def broken_tokenizer(text: str):
            raise OSError("reader failed")

        normalizer = LabelNormalizer(tokenizer=broken_tokenizer)
        with caplog.at_level(logging.ERROR, logger="label_normalizer"):
            assert normalizer.normalize("anything") == ""
        assert "Tokenization failed" in caplog.text
