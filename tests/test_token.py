"""Tests for the card token codec."""

import base64
import re

import pytest

from qrcard.errors import TokenDecodeError
from qrcard.projector import filter_non_empty
from qrcard.records import Record
from qrcard.token import card_url, decode_token, decode_token_strict, encode_token, token_from_url

URL_SAFE = re.compile(r"[A-Za-z0-9_-]*")


class TestRoundTrip:
    """decode(encode(R)) == R."""

    def test_contact_records(self, contact_records) -> None:
        """The name + phone card survives the round trip in order."""
        token = encode_token(contact_records)
        assert token
        assert decode_token(token) == contact_records

    def test_reserved_and_unicode_characters(self, mixed_records) -> None:
        """&, =, quotes, newlines and emoji are all preserved."""
        records = filter_non_empty(mixed_records)
        assert decode_token(encode_token(records)) == records

    def test_empty_set(self) -> None:
        """The empty set encodes to the empty token and back."""
        assert encode_token([]) == ""
        assert decode_token("") == []

    def test_duplicate_keys_keep_order(self) -> None:
        """Duplicate keys are separate, ordered entries."""
        records = [Record("Tel", "1"), Record("Tel", "2"), Record("A", "")]
        assert decode_token(encode_token(records)) == records

    def test_encoding_is_deterministic(self, contact_records) -> None:
        """Identical records give identical tokens."""
        assert encode_token(contact_records) == encode_token(list(contact_records))


class TestTokenShape:
    """Tokens are safe inside a query string."""

    def test_only_base64url_characters(self, mixed_records) -> None:
        """No &, =, whitespace or padding in the token."""
        token = encode_token(filter_non_empty(mixed_records))
        assert URL_SAFE.fullmatch(token)

    def test_card_url_appends_query_parameter(self) -> None:
        """The token rides in the ``d`` parameter."""
        assert card_url("https://qrcard.uz/", "abc") == "https://qrcard.uz/?d=abc"
        assert card_url("https://x.uz/?lang=uz", "abc") == "https://x.uz/?lang=uz&d=abc"


class TestMalformedTokens:
    """Decode never raises; the strict variant explains why."""

    @pytest.mark.parametrize("token", [
        "not a token!",
        "a",
        "%%%",
        "bm90IGpzb24",      # "not json"
        "eyJrIjoidiJ9",     # {"k":"v"}
        "W1sxLDJdXQ",       # [[1,2]]
        "W1siYSJdXQ",       # [["a"]]
        "_w",               # invalid UTF-8
    ])
    def test_returns_none(self, token) -> None:
        """Corrupt tokens yield no data instead of an exception."""
        assert decode_token(token) is None

    def test_strict_decode_raises(self) -> None:
        """The strict decoder reports the reason."""
        with pytest.raises(TokenDecodeError, match="base64url alphabet"):
            decode_token_strict("abc def")

    def test_non_string_token(self) -> None:
        """Non-str input is treated as malformed."""
        assert decode_token(None) is None

    def test_deeply_nested_json(self) -> None:
        """JSON nested past the recursion limit is malformed, not a crash."""
        token = base64.urlsafe_b64encode(b"[" * 100000).rstrip(b"=").decode("ascii")
        assert decode_token(token) is None
        assert token_from_url(card_url("https://qrcard.uz/", token)) is None
        with pytest.raises(TokenDecodeError, match="nested too deeply"):
            decode_token_strict(token)


class TestTokenFromUrl:
    """Detecting a token in an incoming URL."""

    def test_decodes_token_parameter(self, contact_records) -> None:
        """A card URL yields its records."""
        url = card_url("https://qrcard.uz/", encode_token(contact_records))
        assert token_from_url(url) == contact_records

    def test_url_without_token(self) -> None:
        """Ordinary URLs are not cards."""
        assert token_from_url("https://qrcard.uz/?lang=uz") is None

    def test_url_with_corrupt_token(self) -> None:
        """A corrupt token behaves like no token."""
        assert token_from_url("https://qrcard.uz/?d=@@@") is None
