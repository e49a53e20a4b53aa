"""
channels — Per-channel delivery backends.

Each channel module exposes:
    async send(alert, recipients, *, context) → ChannelOutcome

Channels are stateless coroutines that never raise: a failure is reported
as an unsuccessful ChannelOutcome. Fan-out and aggregation live in
alert_service.
"""
