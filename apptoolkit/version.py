"""Validation of the database schema migration version."""

from __future__ import annotations

import abc
import os
from dataclasses import dataclass
from typing import Any


class MigrationVersionError(ValueError):
    """Raised when the database version does not meet a requirement."""


class MigrationVersionValidator(abc.ABC):
    """Checks a database migration version."""

    @abc.abstractmethod
    def validate(self, version: int) -> None:
        """Raise MigrationVersionError if the version is not acceptable."""


@dataclass(frozen=True)
class VersionRange(MigrationVersionValidator):
    """Accepts versions between lower and upper, inclusive."""

    lower: int
    upper: int

    def validate(self, version: int) -> None:
        if version < self.lower:
            raise MigrationVersionError(
                f"Database at version {version}, lower than requirement of {self.lower}"
            )
        if version > self.upper:
            raise MigrationVersionError(
                f"Database at version {version}, higher than requirement of {self.upper}"
            )


@dataclass(frozen=True)
class VersionExactly(MigrationVersionValidator):
    """Accepts exactly one version."""

    target: int

    def validate(self, version: int) -> None:
        if version != self.target:
            raise MigrationVersionError(
                f"Database at version {version}, not equal to requirement of {self.target}"
            )


def max_version_from(path: str | os.PathLike) -> VersionExactly:
    """Target the highest numbered ``.sql`` migration file in a directory."""
    target = 0
    entries = sorted(os.scandir(path), key=lambda e: e.name)
    for entry in entries:
        name = entry.name
        if entry.is_dir() or "." not in name:
            continue
        if name[name.rindex("."):] != ".sql":
            continue
        parts = name.split("_")
        if len(parts) < 2:
            raise MigrationVersionError(
                f'Filename "{name}" does not match migration file naming requirements '
                "##_name.[up/down].sql"
            )
        target = max(target, int(parts[0]))
    return VersionExactly(target)


def verify_migration_version(connection: Any, validator: MigrationVersionValidator) -> None:
    """Check the schema_migrations table of a DB-API connection."""
    cursor = connection.cursor()
    try:
        cursor.execute("SELECT * FROM schema_migrations")
        row = cursor.fetchone()
    finally:
        cursor.close()
    if row is None:
        raise MigrationVersionError("sql: no rows in result set")
    version, dirty = int(row[0]), bool(row[1])
    if dirty:
        raise MigrationVersionError(f"Database at version {version}, but is dirty")
    validator.validate(version)