"""Admin console endpoints (bot approval and allowlist management)."""
