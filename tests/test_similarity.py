"""Tests for error similarity metrics."""

from __future__ import annotations

import pytest

from bvr.similarity import edit_similarity, levenshtein_distance, similarity


class TestJaccardSimilarity:
    """Tests for word-set similarity between error lists."""

    def test_both_empty_is_identical(self) -> None:
        assert similarity([], []) == 1.0

    def test_one_empty_is_disjoint(self) -> None:
        assert similarity(["TypeError: x is undefined"], []) == 0.0
        assert similarity([], ["TypeError: x is undefined"]) == 0.0

    def test_identical_lists(self) -> None:
        errors = ["selector not found", "timeout waiting for element"]
        assert similarity(errors, list(errors)) == 1.0

    def test_case_insensitive(self) -> None:
        assert similarity(["Selector NOT found"], ["selector not found"]) == 1.0

    def test_partial_overlap(self) -> None:
        # {a, b, c} vs {b, c, d}: 2 shared of 4 total
        assert similarity(["a b c"], ["b c d"]) == pytest.approx(0.5)

    def test_disjoint_words(self) -> None:
        assert similarity(["KeyError user_id"], ["ImportError requests"]) == 0.0

    def test_symmetric(self) -> None:
        a = ["cannot read property of undefined", "module missing"]
        b = ["property undefined in render"]
        assert similarity(a, b) == similarity(b, a)

    def test_bounded(self) -> None:
        score = similarity(["one two three"], ["three four"])
        assert 0.0 <= score <= 1.0

    def test_whitespace_only_messages(self) -> None:
        assert similarity(["   "], ["\n"]) == 1.0


class TestEditSimilarity:
    """Tests for normalized Levenshtein similarity."""

    def test_distance_basic(self) -> None:
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "abc") == 0

    def test_distance_symmetric(self) -> None:
        assert levenshtein_distance("flaw", "lawn") == levenshtein_distance("lawn", "flaw")

    def test_empty_strings_identical(self) -> None:
        assert edit_similarity("", "") == 1.0

    def test_one_empty(self) -> None:
        assert edit_similarity("abc", "") == 0.0

    def test_normalized(self) -> None:
        assert edit_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_identical(self) -> None:
        assert edit_similarity("assert 1 == 2", "assert 1 == 2") == 1.0
