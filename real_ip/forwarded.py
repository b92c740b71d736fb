"""
RFC 7239 Forwarded header parsing

    Forwarded: for=192.0.2.60;proto=http;by=203.0.113.43, for="[2001:db8:cafe::17]:4711"

Each comma separated element describes one hop. Only the pieces needed to
recover client addresses are interpreted; unknown parameters are ignored.
"""

import logging
import re
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Dict, Iterator, List, Optional, Union

from .headers import maybe_quoted
from .networks import IPAddress

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
_OBFUSCATED = re.compile(r"^_[A-Za-z0-9._-]+$")
_PORT = re.compile(r"^[0-9]{1,5}$")

UNKNOWN = "unknown"


class ForwardedParseError(ValueError):
    """A Forwarded element does not follow RFC 7239."""


@dataclass(frozen=True)
class NodeIdentifier:
    # IP address, "unknown" or an obfuscated identifier such as "_hidden"
    name: Union[IPv4Address, IPv6Address, str]
    # port number, obfuscated port ("_abc") or None
    port: Union[int, str, None] = None

    @property
    def ip(self) -> Optional[IPAddress]:
        if isinstance(self.name, (IPv4Address, IPv6Address)):
            return self.name
        return None


@dataclass(frozen=True)
class Forwarded:
    forwarded_for: Optional[NodeIdentifier] = None
    forwarded_by: Optional[NodeIdentifier] = None
    host: Optional[str] = None
    proto: Optional[str] = None


def _split(value: str, separator: str) -> Iterator[str]:
    """Split on separator, ignoring separators inside quoted strings."""
    start = 0
    quoted = False
    escaped = False
    for i, c in enumerate(value):
        if escaped:
            escaped = False
        elif quoted:
            if c == "\\":
                escaped = True
            elif c == '"':
                quoted = False
        elif c == '"':
            quoted = True
        elif c == separator:
            yield value[start:i]
            start = i + 1
    yield value[start:]


def _parse_value(raw: str) -> str:
    if not raw.startswith('"'):
        if not _TOKEN.match(raw):
            raise ForwardedParseError(f"invalid token {raw!r}")
        return raw

    escaped = False
    for i, c in enumerate(raw[1:], start=1):
        if escaped:
            escaped = False
        elif c == "\\":
            escaped = True
        elif c == '"':
            if i != len(raw) - 1:
                raise ForwardedParseError(f"unexpected {raw[i + 1:]!r} after quoted string")
            return maybe_quoted(raw)
    raise ForwardedParseError(f"unterminated quoted string {raw!r}")


def _parse_port(text: str) -> Union[int, str]:
    if _PORT.match(text):
        port = int(text)
        if port <= 65535:
            return port
    elif _OBFUSCATED.match(text):
        return text
    raise ForwardedParseError(f"invalid port {text!r}")


def parse_node(value: str) -> NodeIdentifier:
    """
    Parse a node identifier ("for" / "by" value).

    Args:
        value: Unquoted value, e.g. "192.0.2.43:80", "[2001:db8::1]", "unknown" or "_hidden"

    Returns:
        The NodeIdentifier

    Raises:
        ForwardedParseError: If the value is not a valid node
    """
    port = None
    if value.startswith("["):
        end = value.find("]")
        if end < 0:
            raise ForwardedParseError(f"unterminated IPv6 literal {value!r}")
        try:
            name = IPv6Address(value[1:end])
        except ValueError as e:
            raise ForwardedParseError(str(e)) from e
        rest = value[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise ForwardedParseError(f"unexpected {rest!r} after IPv6 literal")
            port = _parse_port(rest[1:])
        return NodeIdentifier(name, port)

    host, sep, port_text = value.partition(":")
    if sep:
        port = _parse_port(port_text)
    if host.lower() == UNKNOWN:
        return NodeIdentifier(UNKNOWN, port)
    if _OBFUSCATED.match(host):
        return NodeIdentifier(host, port)
    try:
        return NodeIdentifier(IPv4Address(host), port)
    except ValueError as e:
        raise ForwardedParseError(str(e)) from e


def parse_forwarded_element(element: str) -> Forwarded:
    """
    Parse one forwarded-element (the pairs between two commas).

    Raises:
        ForwardedParseError: On malformed pairs, duplicate parameters or invalid nodes
    """
    pairs: Dict[str, str] = {}
    for pair in _split(element, ";"):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, raw = pair.partition("=")
        name = name.lower()
        if not sep or not _TOKEN.match(name):
            raise ForwardedParseError(f"invalid pair {pair!r}")
        if name in pairs:
            raise ForwardedParseError(f"duplicate parameter {name!r}")
        pairs[name] = _parse_value(raw)

    return Forwarded(
        forwarded_for=parse_node(pairs["for"]) if "for" in pairs else None,
        forwarded_by=parse_node(pairs["by"]) if "by" in pairs else None,
        host=pairs.get("host"),
        proto=pairs["proto"].lower() if "proto" in pairs else None,
    )


def parse_forwarded(value: str) -> Iterator[Forwarded]:
    """Parse a Forwarded header value, skipping elements that are malformed."""
    for element in _split(value, ","):
        try:
            yield parse_forwarded_element(element)
        except ForwardedParseError as e:
            logger.debug(f"Dropping malformed Forwarded element {element.strip()!r}: {e}")


def forwarded_for_addresses(value: str) -> List[IPAddress]:
    """IP addresses from the "for" parameter of each element, in header order."""
    return [
        forwarded.forwarded_for.ip
        for forwarded in parse_forwarded(value)
        if forwarded.forwarded_for is not None and forwarded.forwarded_for.ip is not None
    ]
