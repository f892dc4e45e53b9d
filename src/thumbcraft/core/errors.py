"""Exception types raised by the Thumbcraft core."""


class ThumbcraftError(Exception):
    """Base class for Thumbcraft errors."""


class ProviderConfigurationError(ThumbcraftError):
    """No provider able to serve the requested mode has credentials.

    Raised before any generation slot starts.  This is the only provider
    failure that reaches the caller.
    """


class ProviderResponseError(ThumbcraftError):
    """A provider returned a response that cannot be used.

    Absorbed at the slot boundary like any other provider failure.
    """


class HistoryStoreError(ThumbcraftError):
    """The history file exists but cannot be read back.

    Raised instead of overwriting the file so other users' entries survive.
    """
