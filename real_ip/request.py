"""FastAPI integration: resolve the real client IP of a request."""

import logging
from functools import lru_cache
from ipaddress import ip_address
from typing import Dict, Iterable, Optional, Union

from fastapi import Depends, HTTPException, Request

from .config import load_env, load_invalid_header_policy, load_trusted_proxies
from .headers import HeaderParseError
from .networks import IPAddress, IpNetworks
from .resolver import FORWARDED, X_FORWARDED_FOR, X_REAL_IP, InvalidHeaderPolicy, real_ip

logger = logging.getLogger(__name__)


def peer_address(request: Request) -> Optional[IPAddress]:
    """Address of the directly connected party, None if missing or not an IP (e.g. unix socket)."""
    if request.client is None:
        return None
    try:
        return ip_address(request.client.host)
    except ValueError:
        logger.debug(f"Peer host {request.client.host!r} is not an IP address")
        return None


def forwarding_headers(request: Request) -> Dict[str, str]:
    """
    Collect the forwarding headers of a request.

    Repeated x-forwarded-for / Forwarded fields are list headers and get
    joined, x-real-ip holds a single address so only its first field counts.
    """
    headers = {}
    for name in (X_FORWARDED_FOR, FORWARDED):
        values = request.headers.getlist(name)
        if values:
            headers[name] = ", ".join(values)
    if X_REAL_IP in request.headers:
        headers[X_REAL_IP] = request.headers[X_REAL_IP]
    return headers


class RealIp:
    """
    Dependency providing the "real ip" of the connected client.

    Forwarding headers are only honoured along a chain of trusted proxies;
    with nested reverse proxies every one of them has to be trusted.

    Example:
        real_ip = RealIp([ip_address("127.0.0.1")])

        @app.get("/hello")
        async def hello(addr = Depends(real_ip)):
            return f"Hello {addr}"
    """

    def __init__(
        self,
        trusted_proxies: Union[IpNetworks, Iterable[IPAddress]] = (),
        invalid_header_policy: InvalidHeaderPolicy = InvalidHeaderPolicy.IGNORE,
    ):
        if not isinstance(trusted_proxies, IpNetworks):
            trusted_proxies = IpNetworks.from_addresses(trusted_proxies)
        self.trusted_proxies = trusted_proxies
        self.invalid_header_policy = invalid_header_policy

    def __call__(self, request: Request) -> Optional[IPAddress]:
        """
        Resolve the client address of request.

        Raises:
            HTTPException: 400 if a forwarding header is invalid and the policy is REJECT
        """
        try:
            return real_ip(
                peer_address(request),
                forwarding_headers(request),
                self.trusted_proxies,
                self.invalid_header_policy,
            )
        except HeaderParseError as e:
            raise HTTPException(status_code=400, detail=f"Invalid {e.header or 'forwarding'} header")


@lru_cache(maxsize=1)
def get_real_ip() -> RealIp:
    """RealIp configured from the environment (REAL_IP_TRUSTED_PROXIES, REAL_IP_INVALID_HEADER)."""
    load_env()
    return RealIp(load_trusted_proxies(), load_invalid_header_policy())


def client_address(request: Request, resolver: RealIp = Depends(get_real_ip)) -> Optional[IPAddress]:
    """Route dependency; override get_real_ip to change the trusted proxies."""
    return resolver(request)


def get_client_ip(request: Request, resolver: Optional[RealIp] = None) -> str:
    """
    Extract the real client IP from a request.

    This is a plain function, not a dependency, so app.dependency_overrides
    for get_real_ip do not reach it. Pass resolver to use other trusted proxies.

    Args:
        request: FastAPI Request object
        resolver: RealIp to use, defaults to the one configured from the environment

    Returns:
        Client IP address string, or "unknown" if not available
    """
    addr = (resolver or get_real_ip())(request)
    return str(addr) if addr is not None else "unknown"
