"""Post-authentication redirect target validation."""

import ipaddress
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger(__name__)

LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})  # noqa: S104
PRIVATE_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


class RedirectKind(StrEnum):
    RELATIVE = "relative"
    SAME_ORIGIN = "same_origin"
    TRUSTED_CROSS_ORIGIN = "trusted_cross_origin"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RedirectDecision:
    kind: RedirectKind
    url: str

    @property
    def allowed(self) -> bool:
        return self.kind is not RedirectKind.REJECTED


def is_local_hostname(hostname: str) -> bool:
    """True for loopback and RFC 1918 addresses and for localhost with any port."""
    host = hostname.strip().lower()
    if host in LOCAL_HOSTNAMES or host.startswith("localhost:"):
        return True
    try:
        address = ipaddress.IPv4Address(host)
    except ValueError:
        return False
    return any(address in network for network in PRIVATE_NETWORKS)


def get_origin(url: str) -> str | None:
    """Return scheme://host[:port] of an absolute http(s) URL, None when it has none."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return None
    default_port = 443 if parts.scheme == "https" else 80
    suffix = f":{port}" if port is not None and port != default_port else ""
    return f"{parts.scheme}://{parts.hostname}{suffix}"


def normalize_development_origin(origin: str) -> str:
    """Map every local host of an origin to localhost, keeping scheme and port."""
    parts = urlsplit(origin)
    if parts.hostname is None or not is_local_hostname(parts.hostname):
        return origin
    try:
        port = parts.port or (443 if parts.scheme == "https" else 80)
    except ValueError:
        return origin
    return f"{parts.scheme}://localhost:{port}"


class RedirectValidator:
    """Decides where a user may be sent after signing in.

    Relative paths and same-origin URLs are always allowed. Other origins are
    allowed only in production and only for hostnames in the trusted domain
    list. Everything else falls back to the base URL.
    """

    def __init__(self, production: bool, trusted_domains: Iterable[str] = ()) -> None:
        self.production = production
        self.trusted_domains = frozenset(domain.lower() for domain in trusted_domains)

    def decide(self, target_url: str, base_url: str) -> RedirectDecision:
        base_url = base_url.rstrip("/")
        # Appended to the base URL, so even "//host" stays on our origin
        if target_url.startswith("/"):
            return RedirectDecision(RedirectKind.RELATIVE, f"{base_url}{target_url}")

        target_origin = get_origin(target_url)
        if target_origin is None:
            return self._reject(target_url, base_url, "malformed")

        if target_origin == get_origin(base_url):
            return RedirectDecision(RedirectKind.SAME_ORIGIN, target_url)

        hostname = urlsplit(target_url).hostname or ""
        if self.production and hostname in self.trusted_domains:
            return RedirectDecision(RedirectKind.TRUSTED_CROSS_ORIGIN, target_url)

        return self._reject(target_url, base_url, "untrusted_origin")

    def validate(self, target_url: str, base_url: str) -> str:
        return self.decide(target_url, base_url).url

    def is_valid_production_hostname(self, hostname: str) -> bool:
        if not self.production:
            return True
        return not is_local_hostname(hostname)

    def validate_base_url(self, url: str | None, trust_host: bool = False) -> str | None:
        """Return the configured application URL if it is usable, else None.

        In production a base URL pointing at a local host is refused unless
        trust_host is set.
        """
        if not url:
            return None
        if get_origin(url) is None:
            if self.production:
                logger.warning("invalid_base_url_format", url=url)
            return None
        hostname = urlsplit(url).hostname or ""
        if not trust_host and not self.is_valid_production_hostname(hostname):
            logger.warning("invalid_base_url_for_production", url=url)
            return None
        return url

    def are_origins_equivalent(self, origin1: str, origin2: str) -> bool:
        """Exact match, or outside production any two local origins on the same port."""
        if origin1 == origin2:
            return True
        if self.production:
            return False
        return normalize_development_origin(origin1) == normalize_development_origin(origin2)

    def is_valid_callback_url(
        self,
        callback_url: str,
        current_origin: str,
        allow_relative: bool = True,
        allowed_domains: Iterable[str] = (),
    ) -> bool:
        """Check a callback URL handed to the sign-in page.

        allowed_domains match exactly or as a parent domain.
        """
        # "//host" is protocol-relative, browsers treat it as another origin
        if callback_url.startswith("/") and not callback_url.startswith("//"):
            return allow_relative

        origin = get_origin(callback_url)
        if origin is None:
            return False
        if self.are_origins_equivalent(origin, current_origin):
            return True

        hostname = urlsplit(callback_url).hostname or ""
        return any(hostname == domain or hostname.endswith(f".{domain}") for domain in allowed_domains)

    def _reject(self, target_url: str, base_url: str, reason: str) -> RedirectDecision:
        logger.warning("redirect_rejected", target=target_url, reason=reason)
        return RedirectDecision(RedirectKind.REJECTED, base_url)
