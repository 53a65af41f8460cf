"""Per-request database transactions.

A :class:`Transaction` wraps a database object that offers
``begin(options)``. That method returns a transaction handle with ``commit()``
and ``rollback()`` methods and, optionally, a ``closed`` attribute that is
true once the underlying connection is gone. At most one handle is opened per
:class:`Transaction`, however many times it is begun.
"""

from __future__ import annotations

import contextlib
import contextvars
import threading
from typing import Any, Callable, Iterable, Iterator, Optional


class TransactionError(Exception):
    """Base class of transaction errors; carries a status code and details."""

    code = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.details: list[dict[str, Any]] = []


class TransactionMissingError(TransactionError):
    """No transaction is bound to the current context."""

    def __init__(self) -> None:
        super().__init__("Database transaction for request missing in context")


class TransactionNoDatabaseError(TransactionError):
    """A transaction is bound to the context, but it has no database."""

    def __init__(self) -> None:
        super().__init__("Transaction in context, but DB is nil")


class DatabaseUnavailableError(TransactionError):
    """The connection behind an open transaction is no longer available."""

    code = "UNAVAILABLE"

    def __init__(self) -> None:
        super().__init__("Database connection not available")


class CommitFailedError(TransactionError):
    """Committing the transaction of a request failed."""

    code = "INTERNAL"

    def __init__(self) -> None:
        super().__init__("failed to commit transaction")


def _is_closed(handle: Any) -> bool:
    return bool(getattr(handle, "closed", False))


class Transaction:
    """A lazily opened, single transaction over a database."""

    def __init__(self, db: Any = None, hooks: Iterable[Callable[[], None]] = ()) -> None:
        self.db = db
        self._hooks: list[Callable[[], None]] = list(hooks)
        self._current: Any = None
        self._lock = threading.Lock()

    def add_after_commit_hook(self, *hooks: Callable[[], None]) -> None:
        """Register callables to run after a successful commit."""
        self._hooks.extend(hooks)

    def begin(self) -> Any:
        """Open the transaction, or return the one already open."""
        return self.begin_with_options(None)

    def begin_with_options(self, options: Any) -> Any:
        """Open the transaction with options, or return the one already open."""
        with self._lock:
            if self._current is None:
                if self.db is None:
                    raise TransactionNoDatabaseError()
                self._current = self.db.begin(options)
            return self._current

    def rollback(self) -> None:
        """Abort the open transaction, if any, and forget it."""
        with self._lock:
            current = self._current
            if current is None:
                return
            if _is_closed(current):
                raise DatabaseUnavailableError()
            self._current = None
            current.rollback()

    def commit(self) -> None:
        """Commit the open transaction, if any, then run the after-commit hooks."""
        with self._lock:
            current = self._current
            if current is None or _is_closed(current):
                return
            self._current = None
            current.commit()
            hooks = list(self._hooks)
        for hook in hooks:
            hook()


_context_txn: contextvars.ContextVar[Optional[Transaction]] = contextvars.ContextVar(
    "transaction", default=None
)


def current_transaction() -> Optional[Transaction]:
    """Return the transaction bound to the current context, or None."""
    return _context_txn.get()


@contextlib.contextmanager
def use_transaction(txn: Transaction) -> Iterator[Transaction]:
    """Bind a transaction to the current context for the duration of a block."""
    token = _context_txn.set(txn)
    try:
        yield txn
    finally:
        _context_txn.reset(token)


def _from_context() -> Transaction:
    txn = current_transaction()
    if txn is None:
        raise TransactionMissingError()
    if txn.db is None:
        raise TransactionNoDatabaseError()
    return txn


def begin_from_context() -> Any:
    """Begin the transaction bound to the current context."""
    return _from_context().begin()


def begin_with_options_from_context(options: Any) -> Any:
    """Begin the transaction bound to the current context with options."""
    return _from_context().begin_with_options(options)


def _detail(error: BaseException) -> dict[str, Any]:
    return {"code": "INTERNAL", "target": "gorm", "message": str(error)}


def _attach_details(exc: BaseException, error: BaseException) -> None:
    details = getattr(exc, "details", None)
    if isinstance(details, list):
        details.append(_detail(error))
        return
    with contextlib.suppress(AttributeError, TypeError):
        exc.details = [_detail(error)]  # type: ignore[attr-defined]


def unary_interceptor(db: Any) -> Callable[[Any, Callable[[Any], Any]], Any]:
    """Return an interceptor that gives each request a transaction over db."""
    return unary_interceptor_txn(Transaction(db))


def unary_interceptor_txn(txn: Transaction) -> Callable[[Any, Callable[[Any], Any]], Any]:
    """Return an interceptor that gives each request a copy of txn.

    The handler may begin the transaction through the context. If the handler
    raises, the transaction is rolled back; otherwise it is committed.
    """

    def interceptor(request: Any, handler: Callable[[Any], Any]) -> Any:
        request_txn = Transaction(txn.db, txn._hooks)
        with use_transaction(request_txn):
            try:
                response = handler(request)
            except Exception as exc:
                try:
                    request_txn.rollback()
                except TransactionError as terr:
                    raise terr from exc
                except Exception as terr:
                    _attach_details(exc, terr)
                raise
            except BaseException:
                with contextlib.suppress(Exception):
                    request_txn.rollback()
                raise
            try:
                request_txn.commit()
            except TransactionError:
                raise
            except Exception as terr:
                failure = CommitFailedError()
                failure.details.append(_detail(terr))
                raise failure from terr
        return response

    return interceptor