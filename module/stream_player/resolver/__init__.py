# Resolver module
from .client import StreamResolver
from .parsing import StreamQuality, select_stream
from .retry import RetryPolicy, linear_backoff
from .tracker import RequestTracker, RequestToken

__all__ = [
    "StreamResolver",
    "StreamQuality",
    "select_stream",
    "RetryPolicy",
    "linear_backoff",
    "RequestTracker",
    "RequestToken",
]
