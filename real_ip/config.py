import logging
from os import getenv

from dotenv import find_dotenv, load_dotenv

from .networks import IpNetworks
from .resolver import InvalidHeaderPolicy

logger = logging.getLogger(__name__)

TRUSTED_PROXIES_ENV = "REAL_IP_TRUSTED_PROXIES"
INVALID_HEADER_ENV = "REAL_IP_INVALID_HEADER"


def load_env() -> None:
    """Load a .env file from the working directory (existing variables win)."""
    load_dotenv(find_dotenv(usecwd=True))


def load_trusted_proxies() -> IpNetworks:
    """
    Read the trusted proxies from REAL_IP_TRUSTED_PROXIES.

    The variable holds comma separated addresses or CIDR ranges, e.g.
    "127.0.0.1, 10.0.0.0/8, fd00::/8". Unset means nothing is trusted.

    Raises:
        ValueError: If an entry is not an address or network
    """
    raw = getenv(TRUSTED_PROXIES_ENV, "")
    entries = [entry.strip() for entry in raw.split(",") if entry.strip()]
    try:
        networks = IpNetworks.parse(entries)
    except ValueError as e:
        raise ValueError(f"{TRUSTED_PROXIES_ENV}: {e}") from e
    logger.info(f"Trusting {len(networks)} proxy network(s): {', '.join(str(n) for n in networks) or 'none'}")
    return networks


def load_invalid_header_policy() -> InvalidHeaderPolicy:
    """Read REAL_IP_INVALID_HEADER ("ignore" or "reject", default "ignore")."""
    raw = getenv(INVALID_HEADER_ENV, InvalidHeaderPolicy.IGNORE.value).strip().lower()
    try:
        return InvalidHeaderPolicy(raw)
    except ValueError:
        choices = ", ".join(policy.value for policy in InvalidHeaderPolicy)
        raise ValueError(f"{INVALID_HEADER_ENV} must be one of {choices}, got {raw!r}") from None
