"""Audit storage for moderation decisions, backed by SQLite through aiosqlite."""
