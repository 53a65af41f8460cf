import pytest

from apptoolkit.transaction import (
    CommitFailedError,
    DatabaseUnavailableError,
    Transaction,
    TransactionMissingError,
    TransactionNoDatabaseError,
    begin_from_context,
    begin_with_options_from_context,
    current_transaction,
    unary_interceptor,
    unary_interceptor_txn,
    use_transaction,
)


class FakeHandle:
    def __init__(self, db):
        self.db = db
        self.closed = db.closed

    def commit(self):
        self.db.calls.append("commit")
        if self.db.commit_error is not None:
            raise self.db.commit_error

    def rollback(self):
        self.db.calls.append("rollback")
        if self.db.rollback_error is not None:
            raise self.db.rollback_error


class FakeDB:
    def __init__(self, begin_error=None, commit_error=None, rollback_error=None, closed=False):
        self.begin_error = begin_error
        self.commit_error = commit_error
        self.rollback_error = rollback_error
        self.closed = closed
        self.calls = []
        self.options = []

    def begin(self, options):
        self.calls.append("begin")
        self.options.append(options)
        if self.begin_error is not None:
            raise self.begin_error
        return FakeHandle(self)


def _begin_handler(result="ok"):
    def handler(request):
        txn = current_transaction()
        assert txn is not None
        txn.begin()
        return result

    return handler


def test_unary_interceptor_success():
    db = FakeDB()
    interceptor = unary_interceptor(db)
    assert interceptor(None, _begin_handler()) == "ok"
    assert db.calls == ["begin", "commit"]


def test_unary_interceptor_txn_success():
    db = FakeDB()
    txn = Transaction(db)
    interceptor = unary_interceptor_txn(txn)
    assert interceptor("request", _begin_handler("done")) == "done"
    assert db.calls == ["begin", "commit"]


def test_interceptor_without_begin_touches_nothing():
    db = FakeDB()
    interceptor = unary_interceptor(db)
    assert interceptor(None, lambda request: 42) == 42
    assert db.calls == []


def test_unary_interceptor_error():
    db = FakeDB(rollback_error=RuntimeError("handler"))

    def handler(request):
        current_transaction().begin()
        raise ValueError("handler")

    interceptor = unary_interceptor(db)
    with pytest.raises(ValueError, match="^handler$") as info:
        interceptor(None, handler)
    assert db.calls == ["begin", "rollback"]
    assert info.value.details == [{"code": "INTERNAL", "target": "gorm", "message": "handler"}]


def test_unary_interceptor_error_rolls_back_cleanly():
    db = FakeDB()

    def handler(request):
        current_transaction().begin()
        raise KeyError("missing")

    with pytest.raises(KeyError):
        unary_interceptor(db)(None, handler)
    assert db.calls == ["begin", "rollback"]


def test_unary_interceptor_unavailable_on_rollback():
    db = FakeDB(closed=True)

    def handler(request):
        current_transaction().begin()
        raise ValueError("handler")

    with pytest.raises(DatabaseUnavailableError) as info:
        unary_interceptor(db)(None, handler)
    assert info.value.code == "UNAVAILABLE"


def test_unary_interceptor_details():
    db = FakeDB(commit_error=RuntimeError("internal"))
    with pytest.raises(CommitFailedError) as info:
        unary_interceptor(db)(None, _begin_handler())
    assert db.calls == ["begin", "commit"]
    assert str(info.value) == "failed to commit transaction"
    assert info.value.code == "INTERNAL"
    assert info.value.details[0] == {"code": "INTERNAL", "target": "gorm", "message": "internal"}


def test_interceptor_copies_hooks():
    db = FakeDB()
    fired = []
    txn = Transaction(db)
    txn.add_after_commit_hook(lambda: fired.append("hook"))
    unary_interceptor_txn(txn)(None, _begin_handler())
    assert fired == ["hook"]


@pytest.mark.parametrize("with_options", [False, True])
def test_transaction_begin_is_singleton(with_options):
    db = FakeDB()
    txn = Transaction(db)

    def begin():
        return txn.begin_with_options("serializable") if with_options else txn.begin()

    first = begin()
    second = begin()
    assert first is second
    assert db.calls == ["begin"]
    assert db.options == ["serializable" if with_options else None]


def test_transaction_commit():
    db = FakeDB()
    txn = Transaction(db)
    assert txn.commit() is None
    assert db.calls == []
    first = txn.begin()
    txn.commit()
    assert db.calls == ["begin", "commit"]
    assert txn.begin() is not first
    assert db.calls == ["begin", "commit", "begin"]


def test_transaction_after_commit_hook():
    db = FakeDB()
    txn = Transaction(db)
    txn.begin()
    called = []
    txn.add_after_commit_hook(lambda: called.append(True))
    txn.commit()
    assert called == [True]
    assert db.calls == ["begin", "commit"]


def test_hook_not_fired_on_failed_commit():
    db = FakeDB(commit_error=RuntimeError("boom"))
    txn = Transaction(db)
    txn.begin()
    called = []
    txn.add_after_commit_hook(lambda: called.append(True))
    with pytest.raises(RuntimeError, match="boom"):
        txn.commit()
    assert called == []


def test_transaction_rollback():
    db = FakeDB()
    txn = Transaction(db)
    assert txn.rollback() is None
    first = txn.begin()
    txn.rollback()
    assert db.calls == ["begin", "rollback"]
    assert txn.begin() is not first


def test_transaction_rollback_broken_db():
    db = FakeDB(closed=True)
    txn = Transaction(db)
    txn.begin()
    with pytest.raises(DatabaseUnavailableError, match="Database connection not available"):
        txn.rollback()
    assert "rollback" not in db.calls


def test_commit_on_closed_connection_does_nothing():
    db = FakeDB(closed=True)
    txn = Transaction(db)
    txn.begin()
    assert txn.commit() is None
    assert db.calls == ["begin"]


def test_context():
    assert current_transaction() is None
    txn = Transaction()
    with use_transaction(txn) as bound:
        assert bound is txn
        assert current_transaction() is txn
    assert current_transaction() is None


def _begin_from_context(with_options):
    if with_options:
        return begin_with_options_from_context("serializable")
    return begin_from_context()


@pytest.mark.parametrize("with_options", [False, True])
def test_begin_from_context_good(with_options):
    db = FakeDB()
    with use_transaction(Transaction(db)):
        first = _begin_from_context(with_options)
        second = _begin_from_context(with_options)
    assert isinstance(first, FakeHandle)
    assert first is second
    assert db.calls == ["begin"]


@pytest.mark.parametrize("with_options", [False, True])
def test_begin_from_context_missing(with_options):
    with pytest.raises(TransactionMissingError, match="missing in context"):
        _begin_from_context(with_options)


@pytest.mark.parametrize("with_options", [False, True])
def test_begin_from_context_fails_to_open(with_options):
    db = FakeDB(begin_error=RuntimeError("cannot begin"))
    with use_transaction(Transaction(db)):
        with pytest.raises(RuntimeError, match="cannot begin"):
            _begin_from_context(with_options)


@pytest.mark.parametrize("with_options", [False, True])
def test_begin_from_context_no_db(with_options):
    with use_transaction(Transaction()):
        with pytest.raises(TransactionNoDatabaseError, match="DB is nil"):
            _begin_from_context(with_options)