"""Bearer-token authentication for bot-facing endpoints."""
