"""Remote data source contract and its HTTP implementation."""

from coursesync.remote.base import RemoteDataSource
from coursesync.remote.http import HttpRemoteSource

__all__ = ["RemoteDataSource", "HttpRemoteSource"]
