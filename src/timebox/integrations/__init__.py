"""
Adapters that apply the current Budget to common collaborators.

Each one is an explicit wrapper composed by the application:

    http      TimeboxClient, AsyncTimeboxClient (httpx)
    dbapi     TimeboxConnection, TimeboxCursor (any DB-API 2.0 driver)
    handlers  @timeboxed for request handlers
    jobs      JobMiddleware for job runners

`http` imports httpx, so it is not imported here.
"""

from .dbapi import TimeboxConnection, TimeboxCursor
from .handlers import timeboxed
from .jobs import JobMiddleware

__all__ = ["TimeboxConnection", "TimeboxCursor", "timeboxed", "JobMiddleware"]
