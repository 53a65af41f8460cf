# apptoolkit

Helpers for services that keep their data in a SQL database and answer
requests over RPC or HTTP. The package has no dependencies outside the
standard library.

## Installation

```
pip install .
```

To install the test dependencies as well, use `pip install .[test]`.

## What is inside

- `apptoolkit.version` checks schema migration versions.
  - `VersionRange(lower, upper)` and `VersionExactly(target)` are
    validators. Their `validate(version)` raises `MigrationVersionError`
    when the version is not acceptable.
  - `max_version_from(path)` returns a `VersionExactly` for the highest
    numbered `*.sql` file in a directory of files named `##_name.up.sql`.
  - `verify_migration_version(connection, validator)` reads the
    `schema_migrations` table through a DB-API connection. It raises an error
    when the database is dirty or when its version fails the validator.
- `apptoolkit.transaction` gives each request at most one lazily opened
  transaction.
  - A `Transaction` wraps any object with a `begin(options)` method. That
    method returns a handle with `commit()` and `rollback()`.
  - `use_transaction(txn)` binds a transaction to the current context, and
    `current_transaction()` reads it back.
  - `begin_from_context()` and `begin_with_options_from_context(options)`
    begin the transaction in the context. They raise
    `TransactionMissingError` or `TransactionNoDatabaseError` when there is
    nothing to begin.
  - `unary_interceptor(db)` and `unary_interceptor_txn(txn)` wrap a
    `handler(request)`. The transaction is rolled back when the handler raises
    and committed otherwise. A failed commit raises `CommitFailedError`. Hooks
    added with `add_after_commit_hook` run after a successful commit.
- `apptoolkit.resource` converts resource `Identifier` values
  (`application_name`, `resource_type`, `resource_id`) to database values and
  back.
  - `encode`, `decode`, `decode_int64` and `decode_bytes` do the conversion.
  - `register_codec` plugs in a `Codec` for one message type, or the default
    one when the message is `None`.
  - `register_application`, `set_plural`, `set_return_empty` and
    `reset_registry` set up and clear the package settings.
  - `name(message)` derives a snake_case resource name.
- `apptoolkit.health` has `ChecksHandler` and `ContextChecksHandler`. Both are
  WSGI applications that serve a liveness path and a readiness path.
  - A `GET` answers `200` when every check passes and `503` otherwise. Other
    methods get `405` and unknown paths get `404`.
  - With `fail_fast=True` the first failing check stops the run.
  - `ContextChecksHandler` passes the WSGI environ to each check.
- `apptoolkit.checks` has ready-made checks that raise `CheckFailedError`.
  - `dns_probe_check(host, timeout)` fails unless the host resolves.
  - `http_get_check(url, timeout)` fails unless a GET answers `200`.
    Redirects are never followed.
- Integration-test helpers:
  - `apptoolkit.network`: `get_open_port_in_range` and `get_open_port` find a
    port that nothing listens on, or raise `PortError`.
  - `apptoolkit.processes`: `run_binary` and `run_container` start a binary or
    a detached `docker run`, and `build_go_source` runs `go build`. Each
    returns a callable that undoes what it did. Failures raise
    `ProcessError`.
  - `apptoolkit.postgres`: `new_test_postgres_db(**kwargs)` returns
    `PostgresDB` settings on a free port from 35000 upwards. Its
    `run_as_docker_container()` starts PostgreSQL in Docker and waits for it,
    `reset()` drops and rebuilds the schema, and `dsn()` gives the connection
    string. Pass a DB-API `connect` function to use `reset()`. If no server
    answers in time, `DatabaseTimeoutError` is raised.

## Examples

```python
from apptoolkit.health import ChecksHandler
from apptoolkit.checks import dns_probe_check

checker = ChecksHandler("/healthz", "/ready")
checker.add_readiness("dns", dns_probe_check("localhost", 2.0))
# serve `checker` with any WSGI server
```

```python
from apptoolkit.version import VersionRange, MigrationVersionError

try:
    VersionRange(1, 4).validate(5)
except MigrationVersionError as exc:
    print(exc)  # Database at version 5, higher than requirement of 4
```

```python
from apptoolkit import resource

resource.register_application("simpleapp")
ident = resource.encode(None, "externalapp/external_resource/id")
# Identifier(application_name='externalapp', resource_type='external_resource', resource_id='id')
resource.decode(None, ident)  # 'externalapp/external_resource/id'
```

```python
from apptoolkit.transaction import begin_from_context, unary_interceptor

interceptor = unary_interceptor(db)  # db offers begin(options)

def handler(request):
    tx = begin_from_context()
    ...  # work inside tx; it is committed if this returns

response = interceptor(request, handler)
```

## What it does not do

The package does not build queries. It does not turn filters, sort orders,
pagination or field selections into SQL. It does not resolve API field paths
to columns, work out join clauses, copy fields by a field mask, or build
full-text search expressions. Query building is left to your database layer.
Transactions are managed around whatever database object you pass in, and
there is no server or command-line program.