"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — pretty (dev) / JSON (prod) logging
    errors          — exception hierarchy & handlers
    middleware      — request logging, correlation ids
    health          — health check aggregation
    database        — async SQLAlchemy engine and sessions
"""
