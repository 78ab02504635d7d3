"""
Protected Static Cache service package.

Serves password-gated pages from a file-backed static cache once the
requester has unlocked them, and exposes operator tools to inspect,
clear and warm that cache.

Structure:
- app.main: FastAPI app, admin routes, and middleware wiring.
- app.store: File-backed cache store with owner-only permissions.
- app.gate: Gate evaluator contract consumed from the host application.
- app.coordinator: Per-request state machine and ASGI middleware.
- app.admin: Clear, preload and coverage operations.
- app.audit: Append-only audit log.
"""
