"""Request store: the read/query/delete interface over captured requests.

Capturing and persisting requests happens elsewhere (the web application's
recorder middleware). This package only defines the record shape the
inspector reads and the store interface it queries, plus two concrete
stores: an in-memory one and one over the recorder's SQLite table.
"""

from binocs.store.base import (
    STATUS_RANGES,
    RequestFilters,
    RequestRecord,
    RequestStats,
    RequestStore,
)
from binocs.store.memory import InMemoryRequestStore
from binocs.store.sqlite import SQLiteRequestStore

__all__ = [
    "STATUS_RANGES",
    "RequestRecord",
    "RequestFilters",
    "RequestStats",
    "RequestStore",
    "InMemoryRequestStore",
    "SQLiteRequestStore",
]
