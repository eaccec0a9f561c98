"""Pre-approved platform identities."""
