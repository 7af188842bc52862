"""Unit tests for session cookie delivery."""

from http.cookies import SimpleCookie

import pytest
from starlette.responses import Response

from src.flattr_auth.core.services import SessionDeliveryService
from src.flattr_auth.core.services.session.delivery import request_hostname
from src.flattr_auth.runtime.config.config_data import CookieConfig


def _set_cookie(response: Response) -> SimpleCookie:
    cookie = SimpleCookie()
    cookie.load(response.headers["set-cookie"])
    return cookie


class TestRequestHostname:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("app.flattr.io", "app.flattr.io"),
            ("App.Flattr.IO:443", "app.flattr.io"),
            ("localhost:3000", "localhost"),
            ("[::1]:8000", "::1"),
            ("flattr.io.", "flattr.io"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_hostname(self, raw, expected):
        assert request_hostname(raw) == expected


class TestCookieDomain:
    @pytest.mark.parametrize(
        "host",
        [
            "flattr.io",
            "www.flattr.io",
            "app.flattr.io",
            "api.staging.flattr.io:443",
        ],
    )
    def test_production_hosts_share_apex_cookie(self, session_delivery, host):
        assert session_delivery.cookie_domain_for(host) == ".flattr.io"

    @pytest.mark.parametrize(
        "host",
        [
            "localhost:3000",
            "localhost",
            "web.localhost:8080",
            "127.0.0.1:8000",
            "[::1]:8000",
            "abc123.ngrok-free.app",
            "demo.ngrok.io",
            "xyz.free.pinggy.link",
            "flattr-git-main.vercel.app",
            "flattr-auth.onrender.com",
            "notflattr.io",
            "flattr.io.evil.example",
            "",
            None,
        ],
    )
    def test_other_hosts_get_host_only_cookie(self, session_delivery, host):
        assert session_delivery.cookie_domain_for(host) is None

    def test_configured_apex(self):
        delivery = SessionDeliveryService(CookieConfig(production_domain="example.com"))

        assert delivery.cookie_domain_for("app.example.com") == ".example.com"
        assert delivery.cookie_domain_for("app.flattr.io") is None


class TestAttachAndClear:
    def test_attach_sets_cookie_attributes(self, session_delivery):
        response = Response()

        session_delivery.attach(response, "credential-value", "app.flattr.io")

        morsel = _set_cookie(response)["auth-token"]
        assert morsel.value == "credential-value"
        assert morsel["httponly"] is True
        assert morsel["secure"] is True
        assert morsel["samesite"].lower() == "none"
        assert morsel["path"] == "/"
        assert morsel["domain"] == ".flattr.io"
        assert morsel["max-age"] == str(7 * 24 * 3600)

    def test_attach_on_localhost_is_host_only(self, session_delivery):
        response = Response()

        session_delivery.attach(response, "credential-value", "localhost:3000")

        header = response.headers["set-cookie"]
        assert "auth-token=credential-value" in header
        assert "Domain" not in header

    def test_clear_expires_cookie_with_same_domain(self, session_delivery):
        response = Response()

        session_delivery.clear(response, "www.flattr.io")

        morsel = _set_cookie(response)["auth-token"]
        assert morsel.value == ""
        assert morsel["domain"] == ".flattr.io"
        assert morsel["max-age"] == "0"
        assert morsel["httponly"] is True
        assert morsel["secure"] is True

    def test_cookie_name_from_config(self):
        delivery = SessionDeliveryService(CookieConfig(name="session"))
        response = Response()

        delivery.attach(response, "v", "localhost")

        assert delivery.cookie_name == "session"
        assert response.headers["set-cookie"].startswith("session=v")
