"""Remote log store clients."""

from poolwatch.clients.rest import RestLogQuery, RestLogStore

__all__ = [
    "RestLogQuery",
    "RestLogStore",
]
