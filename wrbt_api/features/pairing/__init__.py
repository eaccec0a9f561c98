"""Bot pairing: register, poll status, admin approve/revoke."""
