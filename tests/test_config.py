"""Unit tests for core/config.py SECRET_KEY handling."""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_debug_generates_random_key():
    first = Settings(secret_key="", debug=True)
    second = Settings(secret_key="", debug=True)
    assert len(first.secret_key) >= 32
    assert first.secret_key != second.secret_key


def test_missing_key_refused_outside_debug():
    with pytest.raises(ValidationError, match="SECRET_KEY is not set"):
        Settings(secret_key="", debug=False)


def test_short_key_refused():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(secret_key="too-short", debug=True)


def test_explicit_key_kept():
    key = "k" * 40
    assert Settings(secret_key=key, debug=False).secret_key == key
