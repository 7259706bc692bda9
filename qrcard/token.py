"""Card Token Codec: record lists <-> compact URL-safe tokens.

A token is the record list as compact JSON (``[["key","value"],...]``),
UTF-8 encoded and wrapped in unpadded base64url. The result only uses
``A-Z a-z 0-9 - _`` so it can sit in a query string without escaping.

The empty record list encodes to the empty token and back.
"""

import base64
import binascii
import json
import re
from urllib.parse import parse_qs, urlsplit

from qrcard.errors import TokenDecodeError
from qrcard.logging import audit, get_logger, trace
from qrcard.records import Record

log = get_logger("token")

# Query parameter carrying the token in card URLs
TOKEN_PARAM = "d"

_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]*")


def _serialize(records: list[Record]) -> str:
    return json.dumps(
        [[r.key, r.value] for r in records],
        ensure_ascii=False,
        separators=(",", ":"),
    )


def _parse(text: str) -> list[Record]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TokenDecodeError(f"payload is not JSON: {e.msg}") from e
    except RecursionError as e:
        raise TokenDecodeError("payload JSON is nested too deeply") from e
    if not isinstance(data, list):
        raise TokenDecodeError("payload is not a record list")
    records = []
    for i, item in enumerate(data):
        if (not isinstance(item, list) or len(item) != 2
                or not all(isinstance(part, str) for part in item)):
            raise TokenDecodeError(f"record {i} is not a [key, value] string pair")
        records.append(Record(item[0], item[1]))
    return records


@trace
def encode_token(records: list[Record]) -> str:
    """Encode an (already filtered) record list into a card token."""
    if not records:
        return ""
    raw = _serialize(records).encode("utf-8")
    token = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
    audit("token.encoded", logger=log, records=len(records), json_bytes=len(raw), token_len=len(token))
    return token


def decode_token_strict(token: str) -> list[Record]:
    """Decode a card token, raising TokenDecodeError on any malformed input."""
    if not isinstance(token, str):
        raise TokenDecodeError(f"token must be str, got {type(token).__name__}")
    if token == "":
        return []
    if not _TOKEN_RE.fullmatch(token):
        raise TokenDecodeError("token contains characters outside the base64url alphabet")
    if len(token) % 4 == 1:
        raise TokenDecodeError("token length is not a valid base64 length")
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise TokenDecodeError(f"token is not base64url: {e}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TokenDecodeError("token payload is not UTF-8") from e
    return _parse(text)


def decode_token(token: str) -> list[Record] | None:
    """Decode a card token; malformed tokens yield None instead of raising."""
    try:
        records = decode_token_strict(token)
    except TokenDecodeError as e:
        log.debug("decode_token: ignoring malformed token (%s)", e)
        return None
    audit("token.decoded", logger=log, records=len(records), token_len=len(token))
    return records


def card_url(base_url: str, token: str) -> str:
    """Append the token query parameter to ``base_url``."""
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{TOKEN_PARAM}={token}"


def token_from_url(url: str) -> list[Record] | None:
    """Detect and decode a card token in ``url``; None when absent or malformed."""
    values = parse_qs(urlsplit(url).query, keep_blank_values=True).get(TOKEN_PARAM)
    if not values:
        return None
    return decode_token(values[0])
