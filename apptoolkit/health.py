"""Liveness and readiness endpoints served as a WSGI application.

A check is a callable that raises an exception when the checked service is
unhealthy. :class:`ChecksHandler` calls its checks without arguments;
:class:`ContextChecksHandler` passes them the WSGI environ of the request.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable, Mapping, Optional

Check = Callable[[], None]
ContextCheck = Callable[[Mapping[str, Any]], None]

_OK = "200 OK"
_NOT_FOUND = "404 Not Found"
_METHOD_NOT_ALLOWED = "405 Method Not Allowed"
_UNAVAILABLE = "503 Service Unavailable"


def _normalise(path: str) -> str:
    if not path:
        raise ValueError("check path must not be empty")
    return path if path.startswith("/") else "/" + path


def _error(start_response: Callable, status: str, text: str) -> list[bytes]:
    body = text.encode()
    start_response(
        status,
        [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("X-Content-Type-Options", "nosniff"),
            ("Content-Length", str(len(body))),
        ],
    )
    return [body]


class ChecksHandler:
    """Serves liveness checks at one path and readiness checks at another.

    A GET answers 200 when every check passes and 503 otherwise; with
    ``fail_fast`` the first failing check ends the run. Other methods get 405
    and other paths 404.
    """

    def __init__(self, health_path: str, ready_path: str, *, fail_fast: bool = False) -> None:
        self.health_path = _normalise(health_path)
        self.ready_path = _normalise(ready_path)
        if self.health_path == self.ready_path:
            raise ValueError(f"multiple registrations for {self.health_path}")
        self.fail_fast = fail_fast
        self._lock = threading.Lock()
        self._liveness: dict[str, Optional[Callable[..., None]]] = {}
        self._readiness: dict[str, Optional[Callable[..., None]]] = {}

    def add_liveness(self, name: str, check: Optional[Callable[..., None]]) -> None:
        """Register or replace a liveness check."""
        with self._lock:
            self._liveness[name] = check

    def add_readiness(self, name: str, check: Optional[Callable[..., None]]) -> None:
        """Register or replace a readiness check."""
        with self._lock:
            self._readiness[name] = check

    def _run(self, check: Callable[..., None], environ: Mapping[str, Any]) -> None:
        check()

    def _match(self, path: str) -> Optional[dict]:
        best: Optional[tuple[str, dict]] = None
        for pattern, checks in ((self.ready_path, self._readiness), (self.health_path, self._liveness)):
            if path == pattern or (pattern.endswith("/") and path.startswith(pattern)):
                if best is None or len(pattern) > len(best[0]):
                    best = (pattern, checks)
        return None if best is None else best[1]

    def _healthy(self, checks: Iterable[tuple[str, Any]], environ: Mapping[str, Any]) -> bool:
        healthy = True
        for _name, check in checks:
            if check is None:
                continue
            try:
                self._run(check, environ)
            except Exception:
                healthy = False
                if self.fail_fast:
                    break
        return healthy

    def __call__(self, environ: Mapping[str, Any], start_response: Callable) -> list[bytes]:
        checks = self._match(environ.get("PATH_INFO") or "/")
        if checks is None:
            return _error(start_response, _NOT_FOUND, "404 page not found\n")
        if environ.get("REQUEST_METHOD", "GET") != "GET":
            return _error(start_response, _METHOD_NOT_ALLOWED, "Method Not Allowed\n")
        with self._lock:
            snapshot = list(checks.items())
        status = _OK if self._healthy(snapshot, environ) else _UNAVAILABLE
        start_response(status, [("Content-Length", "0")])
        return [b""]


class ContextChecksHandler(ChecksHandler):
    """A :class:`ChecksHandler` whose checks receive the request's environ."""

    def _run(self, check: Callable[..., None], environ: Mapping[str, Any]) -> None:
        check(environ)