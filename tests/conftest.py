"""
Pytest configuration and fixtures for storyreel tests.
"""
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Set test environment before importing storyreel modules
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="storyreel-tests-")
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ["DEBUG"] = "true"
os.environ["RESUME_ON_STARTUP"] = "false"
os.environ["GOOGLE_API_KEY"] = ""
os.environ["ELEVENLABS_API_KEY"] = ""

from storyreel.config import PipelineConfig, SegmentationConfig  # noqa: E402
from storyreel.pipeline.enums import MediaKind  # noqa: E402
from storyreel.pipeline.models import (  # noqa: E402
    Artifact,
    GenerationOptions,
    GenerationResult,
    OperationHandle,
    Segment,
    StyleDescriptor,
)
from storyreel.providers.base import MediaGenerator  # noqa: E402
from storyreel.providers.local import (  # noqa: E402
    LocalAudioGenerator,
    LocalImageGenerator,
    LocalTextProvider,
    LocalVideoGenerator,
)


STORY_SENTENCE = "Mara walked through the quiet forest while the old lantern flickered beside her."


def make_story_text(words: int) -> str:
    """Story text with roughly `words` words, in full sentences."""
    sentence_words = len(STORY_SENTENCE.split())
    count = max(1, words // sentence_words)
    return " ".join([STORY_SENTENCE] * count)


async def no_sleep(seconds: float) -> None:
    return None


class RecordingSleep:
    """Awaitable sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedGenerator(MediaGenerator):
    """
    Media generator whose outcomes are scripted per prompt keyword.

    `script` maps a keyword to a list of outcomes consumed in order; an
    outcome is an Exception to raise, a GenerationResult to return, or
    None for a normal artifact. Prompts with no matching keyword succeed.
    """

    def __init__(self, kind: MediaKind, script: Optional[Dict[str, list]] = None, pending: bool = False):
        super().__init__(max_prompt_length=5000 if kind == MediaKind.AUDIO else 2000)
        self.kind = kind
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.pending = pending
        self.calls: List[str] = []
        self.options: List[GenerationOptions] = []
        self._ops: Dict[str, str] = {}

    @property
    def name(self) -> str:
        return f"scripted-{self.kind.value}"

    @property
    def is_available(self) -> bool:
        return True

    def _artifact(self, prompt: str) -> Artifact:
        content_type = {
            MediaKind.IMAGE: "image/png",
            MediaKind.AUDIO: "audio/wav",
            MediaKind.VIDEO: "video/mp4",
        }[self.kind]
        return Artifact(kind=self.kind, data=f"{self.kind.value}:{prompt[:40]}".encode(), content_type=content_type)

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        self.validate_request(prompt, options)
        self.calls.append(prompt)
        self.options.append(options)

        for keyword, outcomes in self.script.items():
            if keyword in prompt and outcomes:
                outcome = outcomes.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                if isinstance(outcome, GenerationResult):
                    return outcome
                break

        if self.pending:
            op_id = f"op-{len(self.calls)}"
            self._ops[op_id] = prompt
            return GenerationResult.pending(OperationHandle(operation_id=op_id, provider=self.name, kind=self.kind))
        return GenerationResult.completed(self._artifact(prompt))

    async def poll(self, operation: OperationHandle) -> GenerationResult:
        return GenerationResult.completed(self._artifact(self._ops.pop(operation.operation_id)))


class FixedSegmenter:
    """Segmenter that returns the same segments for every story."""

    def __init__(self, count: int = 3, text_provider=None):
        self.count = count
        self.text_provider = text_provider
        self.calls = 0

    async def segment(self, text: str, style: Optional[StyleDescriptor]) -> List[Segment]:
        self.calls += 1
        return [
            Segment(
                id=i,
                scene_description=f"Scene {i} description",
                narration_text=f"Narration for scene {i}.",
                caption=f"Scene {i}",
                generation_prompt=f"scene-{i} cinematic shot",
            )
            for i in range(1, self.count + 1)
        ]


class FixedStyleExtractor:
    def __init__(self, fail_with: Optional[Exception] = None):
        self.fail_with = fail_with
        self.calls = 0

    async def extract(self, text: str) -> StyleDescriptor:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return StyleDescriptor()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def pipeline_config():
    """Pipeline settings with no real waiting."""
    return PipelineConfig(
        media_kinds=("image", "audio", "video"),
        max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        poll_interval=0.0,
        poll_timeout=5.0,
        inter_segment_delay=0.0,
        segmentation=SegmentationConfig(),
    )


@pytest.fixture
def repo():
    from storyreel.persistence.stories_repo import InMemoryStoriesRepository
    return InMemoryStoriesRepository()


@pytest.fixture
def media_store(temp_dir):
    from storyreel.persistence.media_store import MediaStore
    return MediaStore(temp_dir / "media")


@pytest.fixture
def local_generators():
    return {
        MediaKind.IMAGE: LocalImageGenerator(),
        MediaKind.AUDIO: LocalAudioGenerator(),
        MediaKind.VIDEO: LocalVideoGenerator(polls_to_complete=2),
    }


@pytest.fixture
def make_orchestrator(repo, media_store, pipeline_config, local_generators):
    """Build an orchestrator; keyword arguments replace the defaults."""
    from storyreel.pipeline.orchestrator import StoryOrchestrator
    from storyreel.services.segmenter import Segmenter
    from storyreel.services.style_extractor import StyleExtractor

    def factory(**overrides):
        text_provider = LocalTextProvider()
        kwargs = dict(
            repo=repo,
            media_store=media_store,
            generators=dict(local_generators),
            style_extractor=StyleExtractor(text_provider),
            segmenter=Segmenter(text_provider, pipeline_config.segmentation),
            pipeline_config=pipeline_config,
            sleep=no_sleep,
        )
        kwargs.update(overrides)
        return StoryOrchestrator(**kwargs)

    return factory


@pytest.fixture
def create_story(repo):
    """Persist a new uploaded story and return it."""
    from storyreel.config import UploadConfig
    from storyreel.services.ingest import create_story as ingest

    def factory(words: int = 200, title: str = "Test Story"):
        return ingest(make_story_text(words), repo, UploadConfig(), title=title)

    return factory


# FastAPI test client fixture
@pytest.fixture
def test_client(make_orchestrator, repo, media_store):
    """
    Test client wired to in-memory storage and local generators.

    Used as a context manager so background runs share one event loop.
    """
    from fastapi.testclient import TestClient
    from storyreel.api import dependencies
    from storyreel.api.main import app

    orchestrator = make_orchestrator()
    app.dependency_overrides[dependencies.get_pipeline] = lambda: orchestrator
    app.dependency_overrides[dependencies.get_repository] = lambda: repo
    app.dependency_overrides[dependencies.get_store] = lambda: media_store

    with TestClient(app) as client:
        client.orchestrator = orchestrator
        yield client

    app.dependency_overrides.clear()
