"""Window Lock: keep targets switched on outside their daily disable window."""

__version__ = "1.0.0"

from .exceptions import (
    ConfigError,
    InvalidTimeFormatError,
    LockoutActiveError,
    StoreUnavailableError,
    TargetLockedError,
    TargetNotFoundError,
    WindowLockError,
)

__all__ = [
    "__version__",
    "WindowLockError",
    "InvalidTimeFormatError",
    "LockoutActiveError",
    "TargetNotFoundError",
    "TargetLockedError",
    "StoreUnavailableError",
    "ConfigError",
]
