"""Session cookie delivery.

The session cookie is shared across every subdomain of the production apex
and stays host-only everywhere else (local development, IP literals and
tunnel/preview hosts), where a ``Domain`` attribute would make the browser
reject it.
"""

import ipaddress
from typing import Any

from loguru import logger
from starlette.responses import Response

from src.flattr_auth.runtime.config.config_data import CookieConfig

_LOOPBACK_NAMES = ("localhost",)


def request_hostname(request_host: str | None) -> str:
    """Lower-cased host without port, brackets or trailing dot."""
    if not request_host:
        return ""
    host = request_host.strip().lower()
    if host.startswith("["):
        # [::1]:8000
        host = host[1:].split("]", 1)[0]
    elif host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host.rstrip(".")


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _matches_suffix(host: str, suffix: str) -> bool:
    suffix = suffix.lower().lstrip(".")
    return bool(suffix) and (host == suffix or host.endswith(f".{suffix}"))


class SessionDeliveryService:
    """Builds and attaches the session cookie for a given request host."""

    def __init__(self, config: CookieConfig, secure: bool = True):
        self._config = config
        self._secure = secure

    @property
    def cookie_name(self) -> str:
        return self._config.name

    def cookie_domain_for(self, request_host: str | None) -> str | None:
        """``Domain`` attribute for ``request_host``, or None for a host-only cookie."""
        host = request_hostname(request_host)
        if not host:
            return None

        if host in _LOOPBACK_NAMES or host.endswith(".localhost") or _is_ip_literal(host):
            return None

        if any(_matches_suffix(host, suffix) for suffix in self._config.tunnel_suffixes):
            return None

        apex = self._config.production_domain.lower().lstrip(".")
        if _matches_suffix(host, apex):
            return f".{apex}"

        return None

    def cookie_settings(self, request_host: str | None) -> dict[str, Any]:
        return {
            "httponly": True,
            "secure": self._secure,
            "samesite": "none",
            "path": "/",
            "max_age": self._config.max_age,
            "domain": self.cookie_domain_for(request_host),
        }

    def attach(self, response: Response, credential: str, request_host: str | None) -> None:
        """Set the session cookie carrying ``credential`` on ``response``."""
        settings = self.cookie_settings(request_host)
        logger.bind(cookie_domain=settings["domain"] or "<host-only>").debug(
            "Setting session cookie"
        )
        response.set_cookie(self._config.name, credential, **settings)

    def clear(self, response: Response, request_host: str | None) -> None:
        """Expire the session cookie using the same domain policy it was set with."""
        settings = self.cookie_settings(request_host)
        settings.pop("max_age")
        response.delete_cookie(self._config.name, **settings)
