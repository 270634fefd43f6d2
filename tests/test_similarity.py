"""Tests for the edit-distance similarity score."""

import pytest
from rapidfuzz.distance import Levenshtein

from services.similarity import similarity

PAIRS = [
    ("kitten", "sitting"),
    ("sonic the hedgehog", "sonic the hedgehog 2"),
    ("", "tetris"),
    ("Zelda", "zelda ii"),
    ("abc", "xyz"),
]


def test_ratio_matches_levenshtein_distance():
    assert Levenshtein.distance("kitten", "sitting") == 3
    assert similarity("Kitten ", "sitting") == pytest.approx((7 - 3) / 7)
    assert similarity("flaw", "lawn") == pytest.approx(0.5)


@pytest.mark.parametrize("value", ["a", "Tetris", "  padded  ", "ポケモン"])
def test_identical_strings_score_one(value):
    assert similarity(value, value) == 1.0


def test_empty_strings_score_one():
    assert similarity("", "") == 1.0
    assert similarity("   ", "") == 1.0


def test_comparison_ignores_case_and_outer_whitespace():
    assert similarity(" Metroid ", "metroid") == 1.0


def test_ratio_uses_longer_length():
    assert similarity("kitten", "sitting") == pytest.approx(4 / 7)
    assert similarity("abc", "xyz") == 0.0
    assert similarity("", "tetris") == 0.0


@pytest.mark.parametrize("a, b", PAIRS)
def test_score_is_symmetric_and_bounded(a, b):
    forward = similarity(a, b)
    assert forward == similarity(b, a)
    assert 0.0 <= forward <= 1.0
