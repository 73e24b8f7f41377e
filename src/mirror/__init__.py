"""
Anonymized mirror sync engine.

Keeps a pseudonymized copy of the customers collection consistent with
the source: full sync, catch-up after a restart, and live change feed
tailing, with a durable timestamp checkpoint between them.
"""

__version__ = "1.0.0"

__all__ = [
    "change_feed",
    "checkpoint",
    "config",
    "errors",
    "generator",
    "models",
    "orchestrator",
    "scanner",
    "writer",
]
