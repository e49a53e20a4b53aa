"""
alerts — Emergency alert core.

Sub-modules:
    channels/       — Per-channel delivery backends (SMS, email, authority, push)
    alert_service   — Fan-out to channels and status aggregation
    validation      — Boundary checks before an AlertRecord exists
    log_store       — Bounded local log of completed dispatches
    models          — Data structures shared across the system
"""
