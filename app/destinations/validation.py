"""Address validation for webhook destinations.

Factories call validate_webhook_url() from get_client() so that malformed or
forbidden addresses raise ClientConstructionError before any I/O happens.
"""

import ipaddress
from typing import Iterable, List, Optional, Union
from urllib.parse import urlsplit

from destinations.errors import ClientConstructionError
from destinations.models import DestinationType

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

ALLOWED_SCHEMES = frozenset({"http", "https"})


class HostDenyList:
    """Hosts that webhook destinations may not target.

    Entries are either CIDR ranges / IP addresses, matched against IP literal
    hosts, or hostnames, matched exactly or as a parent domain
    ("example.com" denies "hooks.example.com"). Hostnames are not resolved,
    so a CIDR entry does not cover a name that points into its range; list
    such names explicitly.

    Example:
        deny_list = HostDenyList(["10.0.0.0/8", "metadata.internal"])
        deny_list.is_denied("10.1.2.3")  # True
        deny_list.is_denied("hooks.slack.com")  # False
    """

    def __init__(self, entries: Optional[Iterable[str]] = None):
        self._networks: List[IPNetwork] = []
        self._hostnames: List[str] = []
        for entry in entries or []:
            entry = entry.strip().lower()
            if not entry:
                continue
            try:
                self._networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                self._hostnames.append(entry.rstrip("."))

    def __bool__(self) -> bool:
        return bool(self._networks or self._hostnames)

    def is_denied(self, host: str) -> bool:
        """Check whether host matches any deny list entry."""
        host = host.strip().lower().rstrip(".")
        try:
            address = ipaddress.ip_address(host.strip("[]"))
        except ValueError:
            return any(
                host == name or host.endswith(f".{name}") for name in self._hostnames
            )
        return any(address in network for network in self._networks)


def validate_webhook_url(
    url: Optional[str],
    destination_type: DestinationType,
    deny_list: Optional[HostDenyList] = None,
) -> str:
    """Validate a webhook URL and return it unchanged.

    Args:
        url: Target URL from the message
        destination_type: Type used in error reporting
        deny_list: Optional hosts that may not be targeted

    Returns:
        The validated URL

    Raises:
        ClientConstructionError: If the URL is missing, malformed, uses an
            unsupported scheme, or targets a denied host.
    """
    if not url or not url.strip():
        raise ClientConstructionError(
            "Destination URL is required", destination_type=destination_type
        )

    try:
        parts = urlsplit(url.strip())
        # Accessing port validates it (raises ValueError when out of range)
        _ = parts.port
    except ValueError as e:
        raise ClientConstructionError(
            f"Malformed destination URL: {e}", destination_type=destination_type
        ) from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise ClientConstructionError(
            f"Unsupported URL scheme '{parts.scheme}', expected http or https",
            destination_type=destination_type,
        )

    if not parts.hostname:
        raise ClientConstructionError(
            "Destination URL has no host", destination_type=destination_type
        )

    if deny_list and deny_list.is_denied(parts.hostname):
        raise ClientConstructionError(
            f"Destination host is denied: {parts.hostname}",
            destination_type=destination_type,
        )

    return url.strip()


def url_origin(url: str) -> str:
    """Return scheme://host[:port] for url, used as a client cache key."""
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"
