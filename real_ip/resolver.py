"""
Trusted proxy chain resolution

Forwarding headers are only as trustworthy as whoever sent them. The chain
of claimed addresses plus the TCP peer is walked from this server outwards;
the first hop that is not a trusted proxy is the client. Everything claimed
beyond that hop was written by a party we do not trust.
"""

import logging
from enum import Enum
from typing import List, Mapping, Optional, Sequence

from .forwarded import forwarded_for_addresses
from .headers import HeaderParseError, parse_comma_separated, parse_single
from .networks import IPAddress, IpNetworks

logger = logging.getLogger(__name__)

X_FORWARDED_FOR = "x-forwarded-for"
X_REAL_IP = "x-real-ip"
FORWARDED = "forwarded"


class InvalidHeaderPolicy(str, Enum):
    """What to do with an x-forwarded-for / x-real-ip value that does not parse."""

    # treat the header as absent and fall back to the next one
    IGNORE = "ignore"
    # raise HeaderParseError so the caller can refuse the request
    REJECT = "reject"


def resolve_hops(
    peer: Optional[IPAddress],
    forwarded_for: Sequence[IPAddress],
    trusted_proxies: IpNetworks,
) -> Optional[IPAddress]:
    """
    Pick the client address out of a hop chain.

    Args:
        peer: Address of the directly connected party, None if unknown
        forwarded_for: Claimed addresses, client first, nearest proxy last
        trusted_proxies: Networks allowed to set forwarding headers

    Returns:
        The first untrusted hop walking from the peer outwards. If every hop
        is trusted, the first claimed address (or the peer when nothing was
        claimed). None only when the peer is unknown.
    """
    if peer is None:
        return None

    hops = [*forwarded_for, peer]
    for hop in reversed(hops):
        if not trusted_proxies.contains(hop):
            return hop

    # all hops were trusted
    return forwarded_for[0] if forwarded_for else peer


def _parse_header(name: str, value: str, policy: InvalidHeaderPolicy, parse) -> Optional[List[IPAddress]]:
    try:
        return parse(value)
    except HeaderParseError as e:
        e.header = name
        if policy is InvalidHeaderPolicy.REJECT:
            logger.warning(f"Rejecting request with invalid {name} header: {e}")
            raise
        logger.debug(f"Ignoring invalid {name} header: {e}")
        return None


def get_forwarded_for(
    headers: Mapping[str, str],
    policy: InvalidHeaderPolicy = InvalidHeaderPolicy.IGNORE,
) -> List[IPAddress]:
    """
    Extract the claimed address chain from the forwarding headers.

    x-forwarded-for wins over x-real-ip, which wins over Forwarded. A header
    that is present but unparseable is skipped (IGNORE) or raised (REJECT).

    Args:
        headers: Header mapping with lowercase names (starlette Headers work too)
        policy: Handling of unparseable x-forwarded-for / x-real-ip values

    Returns:
        Claimed addresses, client first; empty when no header yields anything

    Raises:
        HeaderParseError: Only with InvalidHeaderPolicy.REJECT
    """
    value = headers.get(X_FORWARDED_FOR)
    if value is not None:
        addresses = _parse_header(X_FORWARDED_FOR, value, policy, parse_comma_separated)
        if addresses is not None:
            return addresses

    value = headers.get(X_REAL_IP)
    if value is not None:
        addresses = _parse_header(X_REAL_IP, value, policy, lambda v: [parse_single(v)])
        if addresses is not None:
            return addresses

    value = headers.get(FORWARDED)
    if value is not None:
        return forwarded_for_addresses(value)

    return []


def real_ip(
    peer: Optional[IPAddress],
    headers: Mapping[str, str],
    trusted_proxies: IpNetworks,
    policy: InvalidHeaderPolicy = InvalidHeaderPolicy.IGNORE,
) -> Optional[IPAddress]:
    """Resolve the real client address of a request from its peer and headers."""
    if peer is None:
        return None
    return resolve_hops(peer, get_forwarded_for(headers, policy), trusted_proxies)
