"""Exception types raised by the mirror.

Most failures inside the regeneration pipeline are logged rather than raised;
these cover the cases where a caller has to react.
"""


class MirrorError(Exception):
    """Base class for mirror errors."""


class NotConfiguredError(MirrorError):
    """Raised when an operation needs a cache root, endpoint or credentials."""


class UnsafePathError(MirrorError, ValueError):
    """Raised when a derived cache path resolves outside the cache root."""


class SchedulerClosedError(MirrorError, RuntimeError):
    """Raised when submitting to a scheduler that has been shut down."""
