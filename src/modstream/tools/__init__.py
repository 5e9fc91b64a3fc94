"""Moderation tool catalog: names, schemas, and typed parameter parsing."""
