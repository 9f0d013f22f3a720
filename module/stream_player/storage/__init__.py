# Storage module
from .store import JsonStore, StoreKey
from .library import Library
from .cache import ResponseCache

__all__ = ["JsonStore", "StoreKey", "Library", "ResponseCache"]
