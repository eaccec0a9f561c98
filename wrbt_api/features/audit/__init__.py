"""Append-only audit log of bot requests."""
