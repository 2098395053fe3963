"""Python clients for the Wrapped API."""

from .client import StatsRequest, WrappedClient
from .async_client import AsyncWrappedClient

__all__ = ["WrappedClient", "StatsRequest", "AsyncWrappedClient"]
