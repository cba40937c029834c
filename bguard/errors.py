"""Exception types shared across the guard."""


class GuardError(Exception):
    """Base class for everything bguard raises on purpose."""


class DecodeError(GuardError):
    """The raw handshake string could not be decoded."""


class MalformedHandshake(DecodeError):
    """Wrong number of NUL-separated fields."""


class InvalidPlayerId(DecodeError):
    """The player id field is not 32 hex digits."""


class PropertyFormatError(GuardError):
    """The forwarded property JSON is not a list of well-formed properties."""


class ConfigError(GuardError):
    """The configuration file is missing required structure."""
