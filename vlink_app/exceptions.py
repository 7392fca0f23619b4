from typing import Optional


class VlinkError(Exception):
    """Base class for application-specific errors."""
    pass

class ValidationError(VlinkError):
    """Malformed sequence tokens, invalid ranges or renumbering outside the locked range."""
    pass

class StateError(VlinkError):
    """Errors caused by missing or inconsistent persisted state (e.g. undo without a ledger)."""
    pass

class LinkError(VlinkError):
    """A filesystem primitive (link, mkdir, remove) failed for a single item."""
    def __init__(self, message: str, path: Optional[str] = None, errno: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.errno = errno

class ConfigError(VlinkError):
    """Errors related to configuration loading or validation."""
    pass