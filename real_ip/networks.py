from ipaddress import IPv4Address, IPv4Network, IPv6Address, IPv6Network, ip_network
from typing import Iterable, Tuple, Union

IPAddress = Union[IPv4Address, IPv6Address]
IPNetwork = Union[IPv4Network, IPv6Network]


class IpNetworks:
    """A set of IP networks, e.g. the trusted reverse proxies"""

    def __init__(self, networks: Iterable[IPNetwork] = ()):
        self._networks: Tuple[IPNetwork, ...] = tuple(networks)

    @classmethod
    def from_addresses(cls, addresses: Iterable[IPAddress]) -> "IpNetworks":
        """Build one exact-match network (/32 or /128) per address."""
        return cls(ip_network(address) for address in addresses)

    @classmethod
    def parse(cls, entries: Iterable[str]) -> "IpNetworks":
        """
        Build the set from configuration strings.

        Args:
            entries: Bare addresses ("10.0.0.1", "::1") or CIDR ranges ("10.0.0.0/8")

        Returns:
            IpNetworks containing one network per entry

        Raises:
            ValueError: If an entry is neither an address nor a network
        """
        return cls(ip_network(entry.strip(), strict=False) for entry in entries)

    @property
    def networks(self) -> Tuple[IPNetwork, ...]:
        return self._networks

    def contains(self, address: IPAddress) -> bool:
        """Check if address is part of any of the networks (never across IPv4/IPv6)."""
        return any(
            network.version == address.version and address in network
            for network in self._networks
        )

    def __contains__(self, address: IPAddress) -> bool:
        return self.contains(address)

    def __len__(self) -> int:
        return len(self._networks)

    def __iter__(self):
        return iter(self._networks)

    def __repr__(self) -> str:
        return f"IpNetworks([{', '.join(str(n) for n in self._networks)}])"
