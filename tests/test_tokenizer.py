"""
Tokenizer module unit tests
"""

import pytest

import tokenizer
from exceptions import EncodingError
from tokenizer import count_tokens, estimate_prompt_tokens, estimate_tokens_from_chars


class TestCountTokens:
    """Test count_tokens function"""

    def test_empty_string(self):
        """Empty string should return 0"""
        assert count_tokens("") == 0

    def test_invalid_input(self):
        """Non-string input should raise exception"""
        with pytest.raises(ValueError):
            count_tokens(123)

        with pytest.raises(ValueError):
            count_tokens(None)

    def test_encoder_failure(self, monkeypatch):
        def broken_encoder():
            raise EncodingError("offline")

        monkeypatch.setattr(tokenizer, "get_encoder", broken_encoder)
        with pytest.raises(EncodingError):
            count_tokens("第一集")


class TestEstimates:
    def test_estimate_from_chars(self):
        assert estimate_tokens_from_chars(0) == 1
        assert estimate_tokens_from_chars(300) == 100

    def test_prompt_estimate_falls_back(self, monkeypatch):
        def broken_encoder():
            raise EncodingError("offline")

        monkeypatch.setattr(tokenizer, "get_encoder", broken_encoder)
        assert estimate_prompt_tokens("字" * 30) == 10

    def test_prompt_estimate_uses_encoder(self, monkeypatch):
        class FakeEncoder:
            def encode(self, text, disallowed_special=()):
                return list(text)

        monkeypatch.setattr(tokenizer, "get_encoder", lambda: FakeEncoder())
        assert estimate_prompt_tokens("abcd") == 4
