#!/usr/bin/env python3
"""
Unit tests for the gateway text protocol: cumulative input decoding and the
CON/END response encoding.
"""

import pytest

from app.services.input_decoder import HOME_KEY, current_input, decode_tokens
from app.services.response_encoder import APOLOGY, Reply, apology, encode, is_terminal


class TestDecodeTokens:

    @pytest.mark.smoke
    @pytest.mark.unit
    def test_empty_text_has_no_tokens(self):
        assert decode_tokens("") == []
        assert decode_tokens("   ") == []
        assert decode_tokens(None) == []

    @pytest.mark.unit
    def test_tokens_in_order(self):
        assert decode_tokens("1*5551234567*4321") == ["1", "5551234567", "4321"]

    @pytest.mark.unit
    def test_empty_segments_dropped(self):
        assert decode_tokens("1**2") == ["1", "2"]
        assert decode_tokens("*1*") == ["1"]

    @pytest.mark.unit
    def test_tokens_are_stripped(self):
        assert decode_tokens(" 1 * 2 ") == ["1", "2"]


class TestCurrentInput:

    @pytest.mark.smoke
    @pytest.mark.unit
    def test_first_contact_is_empty(self):
        assert current_input("") == ""

    @pytest.mark.unit
    def test_last_token_wins(self):
        assert current_input("1*5551234567") == "5551234567"
        assert current_input("2") == "2"

    @pytest.mark.unit
    def test_bare_star_is_home_key(self):
        assert current_input("*") == HOME_KEY

    @pytest.mark.unit
    def test_trailing_double_star_is_home_key(self):
        assert current_input("1*5551234567*4321**") == HOME_KEY

    @pytest.mark.unit
    def test_input_after_home_key(self):
        assert current_input("1***2") == "2"


class TestResponseEncoder:

    @pytest.mark.smoke
    @pytest.mark.unit
    def test_continue_marker(self):
        assert encode(Reply("Hello")) == "CON Hello"

    @pytest.mark.unit
    def test_terminate_marker(self):
        assert encode(Reply("Bye", end=True)) == "END Bye"

    @pytest.mark.unit
    def test_apology_is_terminal(self):
        assert apology() == f"END {APOLOGY}"
        assert is_terminal(apology())
        assert not is_terminal("CON Hello")
