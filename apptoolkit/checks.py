"""Ready-made health checks."""

from __future__ import annotations

import concurrent.futures
import socket
import urllib.error
import urllib.request
from typing import Callable


class CheckFailedError(Exception):
    """Raised by a check when the checked service is unhealthy."""


def dns_probe_check(host: str, timeout: float) -> Callable[[], None]:
    """Return a check that fails unless host resolves within timeout seconds."""

    def check() -> None:
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(socket.getaddrinfo, host, None, 0, socket.SOCK_STREAM)
            addresses = future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            raise CheckFailedError(f"lookup {host}: i/o timeout") from exc
        except OSError as exc:
            raise CheckFailedError(f"lookup {host}: {exc}") from exc
        finally:
            pool.shutdown(wait=False)
        if not addresses:
            raise CheckFailedError("could not resolve host")

    return check


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Report a redirect response as it is instead of following it."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        raise urllib.error.HTTPError(req.full_url, code, msg, headers, fp)


def http_get_check(url: str, timeout: float) -> Callable[[], None]:
    """Return a check that fails unless a GET of url answers 200 OK.

    Redirects are never followed.
    """
    opener = urllib.request.build_opener(_NoRedirect)

    def check() -> None:
        try:
            with opener.open(url, timeout=timeout) as response:
                code, reason = response.status, response.reason
        except urllib.error.HTTPError as exc:
            code, reason = exc.code, exc.reason
            exc.close()
        except (urllib.error.URLError, OSError) as exc:
            raise CheckFailedError(str(exc)) from exc
        if code != 200:
            raise CheckFailedError(f"{code}: {code} {reason}")

    return check