"""Backend utilities for the local HTML to PDF service.

This package intentionally keeps FastAPI route handlers thin:
- explicit service configuration loaded once at startup
- option allow-listing for the external renderer
- scoped temp files + periodic cleanup of stale ones
- renderer invocation with timeout and admission control

Security note:
The service is meant to listen on loopback only. Callers authenticate with a
shared API key; renderer output and filesystem paths are only ever written to
the operator log, never returned in responses.
"""
