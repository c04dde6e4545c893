"""HTTP plumbing shared by the fetcher, version lookup and telemetry."""

from __future__ import annotations

import os
import ssl
import urllib.request

try:
    import certifi
except Exception:  # pragma: no cover - fallback when optional dependency unavailable
    certifi = None


USER_AGENT = "dazzer-cli-pip"


def _build_ssl_context() -> ssl.SSLContext:
    """Create TLS context for artifact downloads with explicit CA handling."""
    if os.environ.get("DAZZER_ALLOW_INSECURE_TLS", "").strip() == "1":
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("DAZZER_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    if certifi is not None:
        return ssl.create_default_context(cafile=certifi.where())

    return ssl.create_default_context()


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Surface 3xx responses as HTTPError so the caller can budget the hops."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def build_opener(follow_redirects: bool = True) -> urllib.request.OpenerDirector:
    handlers: list[urllib.request.BaseHandler] = [urllib.request.HTTPSHandler(context=_build_ssl_context())]
    if not follow_redirects:
        handlers.append(_NoRedirectHandler())
    return urllib.request.build_opener(*handlers)


def make_request(
    url: str,
    *,
    method: str = "GET",
    data: bytes | None = None,
    accept: str = "*/*",
    content_type: str | None = None,
) -> urllib.request.Request:
    headers = {"User-Agent": USER_AGENT, "Accept": accept}
    if content_type:
        headers["Content-Type"] = content_type
    return urllib.request.Request(url, data=data, headers=headers, method=method)
