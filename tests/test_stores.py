"""
Tests for the story state stores.
"""
import pytest

from storyreel.persistence.database import connect
from storyreel.persistence.stories_repo import InMemoryStoriesRepository, SQLiteStoriesRepository
from storyreel.pipeline.enums import SegmentStatus, Stage
from storyreel.pipeline.models import Character, Segment, Story, StyleDescriptor


@pytest.fixture(params=["sqlite", "memory"])
def store(request, temp_dir):
    if request.param == "sqlite":
        conn = connect(temp_dir / "stories.db")
        yield SQLiteStoriesRepository(conn)
        conn.close()
    else:
        yield InMemoryStoriesRepository()


def make_story(story_id: str, created_at: str = "2026-01-01T00:00:00") -> Story:
    return Story(
        id=story_id,
        source_text="Once upon a time there was a lighthouse keeper.",
        title=f"Story {story_id}",
        created_at=created_at,
        updated_at=created_at,
    )


class TestStoriesRepository:

    def test_save_and_load_round_trip(self, store):
        story = make_story("a")
        story.stage = Stage.GENERATING_MEDIA
        story.style_descriptor = StyleDescriptor(characters=[Character(name="Ada", description="keeper")])
        story.segments = [
            Segment(
                id=1,
                scene_description="A lighthouse at night",
                narration_text="The lamp turned.",
                caption="Night",
                generation_prompt="lighthouse at night",
                status=SegmentStatus.COMPLETED,
                artifacts={"image": "a/segment-1/image.png"},
                generation_id="g1",
                attempt_count=1,
            )
        ]
        store.save(story)

        loaded = store.load("a")
        assert loaded == story
        assert loaded is not story

    def test_load_missing_returns_none(self, store):
        assert store.load("nope") is None

    def test_save_overwrites(self, store):
        story = make_story("a")
        store.save(story)
        story.stage = Stage.COMPLETED
        story.terminal_error = None
        store.save(story)

        assert store.load("a").stage == Stage.COMPLETED
        assert len(store.list()) == 1

    def test_list_newest_first(self, store):
        store.save(make_story("old", "2026-01-01T00:00:00"))
        store.save(make_story("new", "2026-03-01T00:00:00"))
        store.save(make_story("mid", "2026-02-01T00:00:00"))

        assert [s.id for s in store.list()] == ["new", "mid", "old"]

    def test_list_breaks_ties_by_insertion(self, store):
        store.save(make_story("first"))
        store.save(make_story("second"))

        assert [s.id for s in store.list()] == ["second", "first"]

    def test_delete(self, store):
        store.save(make_story("a"))

        assert store.delete("a") is True
        assert store.load("a") is None
        assert store.delete("a") is False

    def test_loaded_story_is_independent_copy(self, store):
        store.save(make_story("a"))
        story = store.load("a")
        story.title = "changed"

        assert store.load("a").title == "Story a"


def test_sqlite_persists_across_connections(temp_dir):
    path = temp_dir / "stories.db"
    conn = connect(path)
    SQLiteStoriesRepository(conn).save(make_story("durable"))
    conn.close()

    conn = connect(path)
    try:
        story = SQLiteStoriesRepository(conn).load("durable")
        row = conn.execute("SELECT stage, progress_percent FROM stories WHERE story_id = ?", ("durable",)).fetchone()
    finally:
        conn.close()

    assert story.title == "Story durable"
    assert row["stage"] == "uploaded"
    assert row["progress_percent"] == 0
