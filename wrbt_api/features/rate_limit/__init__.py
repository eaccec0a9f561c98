"""Per-IP rate limiting for the pairing endpoints."""
