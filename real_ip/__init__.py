from .forwarded import Forwarded, ForwardedParseError, NodeIdentifier, forwarded_for_addresses, parse_forwarded
from .headers import HeaderParseError, iter_comma_separated, maybe_bracketed, maybe_quoted, parse_comma_separated
from .networks import IpNetworks
from .request import RealIp, get_client_ip, get_real_ip
from .resolver import InvalidHeaderPolicy, get_forwarded_for, real_ip, resolve_hops

__all__ = [
    "Forwarded",
    "ForwardedParseError",
    "HeaderParseError",
    "InvalidHeaderPolicy",
    "IpNetworks",
    "NodeIdentifier",
    "RealIp",
    "forwarded_for_addresses",
    "get_client_ip",
    "get_forwarded_for",
    "get_real_ip",
    "iter_comma_separated",
    "maybe_bracketed",
    "maybe_quoted",
    "parse_comma_separated",
    "parse_forwarded",
    "real_ip",
    "resolve_hops",
]
