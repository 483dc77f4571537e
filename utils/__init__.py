"""Request helpers: validation, payloads, auth and errors."""
