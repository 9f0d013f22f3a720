# Utils module
from .errors import (
    MusicError,
    NetworkError,
    NetworkTimeout,
    NoAudioStreamError,
    ResourceError,
    StorageError,
    StorageQuotaExceeded,
)
from .decorators import handle_errors, log_operation

__all__ = [
    # Errors
    "MusicError",
    "NetworkError",
    "NetworkTimeout",
    "NoAudioStreamError",
    "ResourceError",
    "StorageError",
    "StorageQuotaExceeded",
    # Decorators
    "handle_errors",
    "log_operation",
]
