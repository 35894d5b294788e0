"""
Unit Tests

Unit tests run in isolation without external dependencies.
PostgreSQL is replaced by an in-memory store or an in-memory SQLite database.
"""
