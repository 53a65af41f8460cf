"""Helpers for database-backed services: transactions, migration versions, resource identifiers, health checks and integration-test tools."""

__version__ = "0.1.0"