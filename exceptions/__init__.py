class BotError(Exception):
    """Base bot exception."""

class ConfigError(BotError):
    """Raised when a game server or rule definition is invalid."""

class LookupFailed(BotError):
    """Raised when an external lookup (geo, account age) fails."""
