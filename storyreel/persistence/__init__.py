"""
Persistence Layer.

- SQLite (or in-memory) story records
- Filesystem media store with byte-range reads
"""
from .database import get_connection, transaction, init_schema, close_connection
from .stories_repo import (
    StoriesRepository,
    SQLiteStoriesRepository,
    InMemoryStoriesRepository,
    get_stories_repository,
)
from .media_store import (
    MediaStore,
    MediaStream,
    ByteRange,
    InvalidLocator,
    RangeNotSatisfiable,
    parse_range,
    get_media_store,
)

__all__ = [
    # Database
    "get_connection",
    "transaction",
    "init_schema",
    "close_connection",

    # Stories
    "StoriesRepository",
    "SQLiteStoriesRepository",
    "InMemoryStoriesRepository",
    "get_stories_repository",

    # Media
    "MediaStore",
    "MediaStream",
    "ByteRange",
    "InvalidLocator",
    "RangeNotSatisfiable",
    "parse_range",
    "get_media_store",
]
