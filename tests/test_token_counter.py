"""Tests for token counter factory."""

import pytest

from rolling_memory.token_counter import create_token_counter, estimate_tokens


def test_estimate():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abc") == 1
    assert estimate_tokens("a" * 40) == 10


def test_default_mode_is_estimate():
    assert create_token_counter() is estimate_tokens


def test_callable_spec():
    counter = create_token_counter("callable:rolling_memory.token_counter:estimate_tokens")
    assert counter("a" * 8) == 2


def test_bad_callable_spec():
    with pytest.raises(ValueError):
        create_token_counter("callable:no_colon_here")


def test_unknown_mode():
    with pytest.raises(ValueError):
        create_token_counter("words")
