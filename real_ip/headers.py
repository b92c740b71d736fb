"""
Header value parsing

Splits comma separated header values (x-forwarded-for style lists) into
tokens following the HTTP list / quoted-string grammar, and normalizes each
token into something `ipaddress.ip_address` (or any other parser) accepts.

Python slices copy, so tokens are small owned strings rather than views into
the header value. Header values are short, so this is not worth avoiding.
"""

from enum import Enum
from ipaddress import ip_address
from typing import Callable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class HeaderParseError(ValueError):
    """A header value could not be fully parsed."""

    def __init__(self, message: str, header: Optional[str] = None):
        super().__init__(message)
        self.header = header

    def __str__(self) -> str:
        message = super().__str__()
        if self.header:
            return f"{self.header}: {message}"
        return message


class _State(Enum):
    DEFAULT = "default"
    QUOTED = "quoted"
    QUOTED_PAIR = "quoted_pair"
    TOKEN = "token"
    POSTAMBLE_FOR_QUOTED = "postamble_for_quoted"


def iter_comma_separated(value: str) -> Iterator[str]:
    """
    Lazily split a comma separated header value into raw tokens.

    Leading spaces/tabs are skipped, quoted tokens are yielded with their
    quotes, and anything between a closing quote and the next comma is
    dropped. A comma seen outside of a token yields an empty token, but
    trailing whitespace at the end of the value yields nothing.

    Args:
        value: The raw header value

    Yields:
        Raw tokens, not trimmed or unquoted
    """
    state = _State.DEFAULT
    start = 0

    for i, c in enumerate(value):
        if state is _State.DEFAULT:
            if c == '"':
                start = i
                state = _State.QUOTED
            elif c == ",":
                yield value[i:i]
            elif c not in " \t":
                start = i
                state = _State.TOKEN
        elif state is _State.QUOTED:
            if c == '"':
                state = _State.POSTAMBLE_FOR_QUOTED
                yield value[start:i + 1]
            elif c == "\\":
                state = _State.QUOTED_PAIR
        elif state is _State.QUOTED_PAIR:
            state = _State.QUOTED
        elif state is _State.TOKEN:
            if c == ",":
                state = _State.DEFAULT
                yield value[start:i]
        elif state is _State.POSTAMBLE_FOR_QUOTED:
            if c == ",":
                state = _State.DEFAULT

    if state in (_State.TOKEN, _State.QUOTED, _State.QUOTED_PAIR):
        yield value[start:]


def maybe_quoted(token: str) -> str:
    """Remove one layer of quoting ("a\\"b" -> a"b), leaving unquoted tokens as they are."""
    if not token.startswith('"'):
        return token

    chars = []
    escaped = False
    for c in token[1:]:
        if escaped:
            chars.append(c)
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == '"':
            break
        else:
            chars.append(c)
    return "".join(chars)


def maybe_bracketed(token: str) -> str:
    """Strip the brackets of an IPv6 literal ([::1] -> ::1)."""
    if token.startswith("[") and token.endswith("]"):
        return token[1:-1]
    return token


def _parse_token(token: str, parse: Callable[[str], T]) -> T:
    token = token.strip()
    if not token:
        raise HeaderParseError("empty value")
    normalized = maybe_bracketed(maybe_quoted(token))
    try:
        return parse(normalized)
    except ValueError as e:
        raise HeaderParseError(f"invalid value {token!r}: {e}") from e


def parse_single(value: str, parse: Callable[[str], T] = ip_address) -> T:
    """
    Parse a single-valued header (e.g. x-real-ip) with the same normalization as list items.

    Raises:
        HeaderParseError: If the value is empty or `parse` rejects it
    """
    return _parse_token(value, parse)


def parse_comma_separated(value: str, parse: Callable[[str], T] = ip_address) -> List[T]:
    """
    Parse a comma separated header value into a list of typed values.

    Each token is trimmed, unquoted and unbracketed before being handed to
    `parse`. Parsing is all-or-nothing: a single empty or invalid token
    fails the whole header.

    Args:
        value: The raw header value
        parse: Converts one normalized token, raising ValueError if invalid

    Returns:
        The parsed values in header order

    Raises:
        HeaderParseError: If any token fails to parse
    """
    return [_parse_token(token, parse) for token in iter_comma_separated(value)]
