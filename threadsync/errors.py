"""Error kinds shared by providers, the sync router and command handlers."""


class SyncError(Exception):
    """Base class for every error raised by threadsync."""


class NotFound(SyncError):
    """An identifier, user, team, state or thread could not be resolved."""


class UpstreamFailure(SyncError, RuntimeError):
    """A network or API error from Slack or Linear."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code  # upstream error string, e.g. "channel_not_found"


class ParseError(SyncError, ValueError):
    """Malformed identifier or serialized action payload."""


class ConfigurationMissing(SyncError):
    """A required setting is not configured."""
