"""
Exceptions raised by the sync engine.
"""


class MirrorError(Exception):
    """Base exception for sync engine errors."""


class ConfigurationError(MirrorError):
    """Required configuration is missing or invalid (fatal at start-up)."""


class ChangeFeedError(MirrorError):
    """The change feed failed and the reconnect budget is exhausted."""
