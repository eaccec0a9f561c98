"""Example bot-facing endpoints behind bearer-token authentication."""
