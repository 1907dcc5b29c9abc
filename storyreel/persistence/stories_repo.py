"""
Story State Store.

Whole-record persistence of Story objects. Every save overwrites the
stored record; the last writer wins.
"""
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from threading import Lock
from typing import Optional, List, Dict

from ..pipeline.models import Story
from .database import get_connection, transaction

logger = logging.getLogger(__name__)


class StoriesRepository(ABC):
    """Contract shared by the SQLite and in-memory stores."""

    @abstractmethod
    def load(self, story_id: str) -> Optional[Story]:
        pass

    @abstractmethod
    def save(self, story: Story) -> None:
        pass

    @abstractmethod
    def list(self) -> List[Story]:
        """All stories, newest ingestion first."""
        pass

    @abstractmethod
    def delete(self, story_id: str) -> bool:
        pass


class SQLiteStoriesRepository(StoriesRepository):
    """SQLite repository for stories."""

    def __init__(self, conn: Optional[sqlite3.Connection] = None):
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn or get_connection()

    def load(self, story_id: str) -> Optional[Story]:
        row = self.conn.execute(
            "SELECT payload_json FROM stories WHERE story_id = ?",
            (story_id,)
        ).fetchone()
        if not row:
            return None
        return Story.from_dict(json.loads(row["payload_json"]))

    def save(self, story: Story) -> None:
        payload = json.dumps(story.to_dict(), ensure_ascii=False)
        with transaction(self.conn) as conn:
            conn.execute(
                """
                INSERT INTO stories (story_id, title, stage, progress_percent, created_at, updated_at, payload_json)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(story_id) DO UPDATE SET
                    title = excluded.title,
                    stage = excluded.stage,
                    progress_percent = excluded.progress_percent,
                    updated_at = excluded.updated_at,
                    payload_json = excluded.payload_json
                """,
                (
                    story.id,
                    story.title,
                    story.stage.value,
                    story.progress_percent,
                    story.created_at,
                    story.updated_at,
                    payload,
                )
            )

    def list(self) -> List[Story]:
        rows = self.conn.execute(
            "SELECT payload_json FROM stories ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [Story.from_dict(json.loads(row["payload_json"])) for row in rows]

    def delete(self, story_id: str) -> bool:
        with transaction(self.conn) as conn:
            cursor = conn.execute("DELETE FROM stories WHERE story_id = ?", (story_id,))
        return cursor.rowcount > 0


class InMemoryStoriesRepository(StoriesRepository):
    """
    Process-local store. Records are kept serialized so callers never share
    mutable Story objects with the store.
    """

    def __init__(self):
        self._records: Dict[str, str] = {}
        self._order: Dict[str, int] = {}
        self._counter = 0
        self._lock = Lock()

    def load(self, story_id: str) -> Optional[Story]:
        with self._lock:
            payload = self._records.get(story_id)
        if payload is None:
            return None
        return Story.from_dict(json.loads(payload))

    def save(self, story: Story) -> None:
        payload = json.dumps(story.to_dict(), ensure_ascii=False)
        with self._lock:
            if story.id not in self._order:
                self._counter += 1
                self._order[story.id] = self._counter
            self._records[story.id] = payload

    def list(self) -> List[Story]:
        with self._lock:
            items = list(self._records.items())
            order = dict(self._order)
        stories = [Story.from_dict(json.loads(payload)) for _, payload in items]
        return sorted(stories, key=lambda s: (s.created_at, order[s.id]), reverse=True)

    def delete(self, story_id: str) -> bool:
        with self._lock:
            self._order.pop(story_id, None)
            return self._records.pop(story_id, None) is not None

    def raw(self, story_id: str) -> Optional[str]:
        """Serialized record as stored."""
        with self._lock:
            return self._records.get(story_id)


# Global repository instance
_stories_repo: Optional[StoriesRepository] = None


def get_stories_repository() -> StoriesRepository:
    """Get or create the stories repository singleton."""
    global _stories_repo
    if _stories_repo is None:
        from ..config import config
        if config.storage_backend == "memory":
            _stories_repo = InMemoryStoriesRepository()
        else:
            _stories_repo = SQLiteStoriesRepository()
        logger.info(f"Stories repository: {config.storage_backend}")
    return _stories_repo
