"""Access logging for ASGI services."""
