"""Single-server reachability check.

One GET per check through a fresh httpx client. A TLS failure on an
``https://`` URL is retried once over plain ``http://``. Every failure is
returned as an offline CheckResult; nothing is raised to the caller.
"""

from __future__ import annotations

import logging
import socket
import ssl
import time

import httpx

from .models import CheckResult, Server, classify
from .network import NetworkGate

logger = logging.getLogger(__name__)

CHECK_TIMEOUT = 30.0  # seconds

MSG_NO_NETWORK = "Not connected to the internet"
MSG_HOST_NOT_FOUND = "A server with the specified hostname could not be found"
MSG_TIMED_OUT = "The connection timed out"
MSG_CANNOT_CONNECT = "Could not connect to the server"
MSG_TLS_FAILED = "Secure connection failed"


def check_server(
    server: Server,
    gate: NetworkGate | None = None,
    *,
    timeout: float = CHECK_TIMEOUT,
    match_expected: bool = False,
    transport: httpx.BaseTransport | None = None,
) -> CheckResult:
    """Probe ``server`` once and return the classified result.

    ``match_expected`` switches classification from "any 2xx" to
    "equals the server's expected status code". ``transport`` is handed to
    the httpx client (tests use ``httpx.MockTransport``).
    """
    if gate is not None and not gate.available:
        logger.info("Network unavailable, skipping check of %s", server.domain)
        return CheckResult.offline(MSG_NO_NETWORK)

    expected = server.expected_status_code if match_expected else None
    url = server.formatted_domain
    logger.debug("Checking server status for: %s", url)

    try:
        code = _fetch_status(url, timeout, transport)
        return _classified(server, url, code, expected)
    except Exception as e:
        if _is_tls_failure(e) and url.lower().startswith("https://"):
            http_url = "http://" + url[len("https://"):]
            logger.info("TLS failed for %s, retrying over HTTP", server.domain)
            try:
                code = _fetch_status(http_url, timeout, transport)
                return _classified(server, http_url, code, expected)
            except Exception as fallback_error:
                logger.info("HTTP fallback failed for %s: %s", server.domain, fallback_error)
            message = MSG_TLS_FAILED
        else:
            message = _describe(e)
        logger.info("Error checking %s: %s", server.domain, message)
        return CheckResult.offline(message)


def _fetch_status(url: str, timeout: float, transport: httpx.BaseTransport | None) -> int:
    """GET ``url`` and drain the body, giving up once ``timeout`` seconds
    have passed since the request started.

    httpx's own timeout bounds each phase (connect, each read); the deadline
    bounds the fetch as a whole.
    """
    deadline = time.monotonic() + timeout
    # New client per call: no cookies, cache or pooled connections carried over
    with httpx.Client(timeout=timeout, follow_redirects=True, transport=transport) as client:
        with client.stream("GET", url) as resp:
            for _ in resp.iter_raw():
                if time.monotonic() > deadline:
                    raise httpx.ReadTimeout(
                        f"Response not complete after {timeout}s", request=resp.request,
                    )
    return resp.status_code


def _classified(server: Server, url: str, code: int, expected: int | None) -> CheckResult:
    online = classify(code, expected)
    logger.info("Server: %s - Status Code: %d (URL: %s)", server.domain, code, url)
    return CheckResult(status_code=code, is_online=online, message=f"Status code {code}")


def _exception_chain(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _is_tls_failure(exc: BaseException) -> bool:
    """True when the failure came from the TLS handshake."""
    for e in _exception_chain(exc):
        if isinstance(e, ssl.SSLError):
            return True
    return isinstance(exc, httpx.ConnectError) and "[SSL" in str(exc)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return MSG_TIMED_OUT
    if isinstance(exc, httpx.ConnectError):
        if any(isinstance(e, socket.gaierror) for e in _exception_chain(exc)):
            return MSG_HOST_NOT_FOUND
        return MSG_CANNOT_CONNECT
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return f"Invalid URL: {exc}"
    return f"{type(exc).__name__}: {exc}"
