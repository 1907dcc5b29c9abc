"""
Story Pipeline Orchestrator.

Drives a story through style extraction, the optional reference image,
segmentation and per-segment media generation:

    uploaded -> extracting_style -> generating_reference_asset (optional)
             -> generating_segments -> generating_media -> completed
    any stage -> failed

Every transition is persisted before the next step starts, so run() can
pick up from the stored stage after a restart. Segments are processed
one at a time in ascending id; a segment that runs out of retries is
marked failed and the loop moves on.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional, List, Set, Tuple

from ..config import PipelineConfig
from ..persistence.media_store import MediaStore
from ..persistence.stories_repo import StoriesRepository
from ..providers.base import MediaGenerator
from .enums import Stage, SegmentStatus, MediaKind, FailureKind, GenerationStatus
from .models import (
    Artifact,
    Failure,
    GenerationOptions,
    Story,
    StyleDescriptor,
    new_id,
    utc_now,
)
from .poller import await_completion
from .retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

# Store background tasks to prevent garbage collection
BACKGROUND_TASKS = set()


class OrchestratorError(Exception):
    """Base exception for orchestrator requests."""


class StoryNotFoundError(OrchestratorError):
    def __init__(self, story_id: str):
        self.story_id = story_id
        super().__init__(f"Story not found: {story_id}")


class SegmentNotFoundError(OrchestratorError):
    def __init__(self, story_id: str, segment_id: int):
        self.story_id = story_id
        self.segment_id = segment_id
        super().__init__(f"Segment {segment_id} not found in story {story_id}")


class SegmentBusyError(OrchestratorError):
    """Segment (or its story) is still generating."""


class InvalidStateError(OrchestratorError):
    """Operation not allowed in the story's current stage."""


class UnsupportedMediaKindError(OrchestratorError):
    """Requested media kind is not enabled in this pipeline."""


class _StoryGone(Exception):
    """Story record disappeared while a run was in flight."""


def fit_prompt(text: str, limit: int) -> str:
    """Trim a prompt to `limit` characters, on a word boundary when possible."""
    text = text.strip()
    if len(text) <= limit:
        return text
    cut = text[:limit]
    space = cut.rfind(" ")
    if space > limit // 2:
        cut = cut[:space]
    return cut.rstrip(" ,.;:\n")


def build_reference_prompt(style: Optional[StyleDescriptor]) -> str:
    """Prompt for the story-level reference image."""
    style = style or StyleDescriptor()
    lines = ["Create a reference image showing the main characters and visual style for a story."]

    if style.characters:
        lines.append("")
        lines.append("CHARACTERS:")
        for idx, char in enumerate(style.characters, start=1):
            lines.append(f"{idx}. {char.name}: {char.visual_traits or char.description}")

    lines.append("")
    lines.append(f"SETTING: {style.setting.location}")
    lines.append(f"Time Period: {style.setting.era}")
    lines.append(f"Atmosphere: {style.setting.mood}")
    lines.append("")
    lines.append("VISUAL STYLE:")
    lines.append(f"Art Style: {style.visual_style.art_style}")
    lines.append(f"Color Palette: {style.visual_style.palette}")
    lines.append(f"Cinematography: {style.visual_style.cinematography}")
    lines.append("")
    lines.append("Compose this as a character lineup or group shot that clearly shows all characters with consistent styling.")
    return "\n".join(lines)


def style_suffix(style: Optional[StyleDescriptor]) -> str:
    if style is None:
        return ""
    return (
        f"Visual style: {style.visual_style.art_style}. "
        f"Color palette: {style.visual_style.palette}. "
        f"Cinematography: {style.visual_style.cinematography}. "
        f"Setting: {style.setting.location}, {style.setting.era}, {style.setting.mood}."
    )


class StoryOrchestrator:
    """
    Runs the story pipeline.

    One asyncio task per story; stories may run concurrently. Every
    read-modify-write of a story record happens under a per-story lock
    and starts from a fresh load.
    """

    def __init__(
        self,
        repo: StoriesRepository,
        media_store: MediaStore,
        generators: Dict[MediaKind, MediaGenerator],
        style_extractor,
        segmenter,
        pipeline_config: Optional[PipelineConfig] = None,
        sleep: Callable = asyncio.sleep,
    ):
        self.repo = repo
        self.media_store = media_store
        self.generators = generators
        self.style_extractor = style_extractor
        self.segmenter = segmenter
        self.pipeline = pipeline_config or PipelineConfig()
        self.policy = RetryPolicy.from_pipeline_config(self.pipeline)
        self.media_kinds: List[MediaKind] = [MediaKind(k) for k in self.pipeline.media_kinds]
        self._sleep = sleep
        self._locks: Dict[str, asyncio.Lock] = {}
        self._runs: Dict[str, asyncio.Task] = {}
        self._regens: Dict[str, Set[asyncio.Task]] = {}

        logger.info(
            f"[PIPELINE] Orchestrator ready: media={','.join(k.value for k in self.media_kinds)}, "
            f"reference_asset={'on' if self.pipeline.enable_reference_asset else 'off'}, "
            f"max_attempts={self.policy.max_attempts}"
        )

    # =========================================================================
    # Record helpers
    # =========================================================================

    def _lock(self, story_id: str) -> asyncio.Lock:
        lock = self._locks.get(story_id)
        if lock is None:
            lock = self._locks[story_id] = asyncio.Lock()
        return lock

    def _load(self, story_id: str) -> Story:
        story = self.repo.load(story_id)
        if story is None:
            raise _StoryGone(story_id)
        return story

    async def _update(self, story_id: str, mutate: Callable[[Story], Optional[bool]]) -> Story:
        """
        Load, mutate and save a story under its lock.

        `mutate` may return False to skip the save.
        """
        async with self._lock(story_id):
            story = self._load(story_id)
            if mutate(story) is False:
                return story
            story.updated_at = utc_now()
            self.repo.save(story)
            return story

    async def _transition(self, story_id: str, stage: Stage, description: str) -> Story:
        def mutate(story: Story):
            story.stage = stage
            story.current_step_description = description

        story = await self._update(story_id, mutate)
        logger.info(f"[PIPELINE] {story_id} -> {stage.value} ({story.progress_percent}%)")
        return story

    async def _fail(self, story_id: str, message: str) -> Story:
        def mutate(story: Story):
            if story.stage.is_terminal:
                return False
            story.failed_stage = story.stage
            story.stage = Stage.FAILED
            story.terminal_error = message
            story.current_step_description = "Failed"

        story = await self._update(story_id, mutate)
        logger.error(f"[PIPELINE] {story_id} failed at {story.failed_stage.value if story.failed_stage else '?'}: {message}")
        return story

    def _is_current(self, story_id: str, segment_id: int, generation_id: str) -> bool:
        story = self.repo.load(story_id)
        if story is None:
            return False
        segment = story.get_segment(segment_id)
        return segment is not None and segment.generation_id == generation_id

    # =========================================================================
    # Background tasks
    # =========================================================================

    @staticmethod
    def _track(task: asyncio.Task) -> None:
        BACKGROUND_TASKS.add(task)
        task.add_done_callback(BACKGROUND_TASKS.discard)

    def is_running(self, story_id: str) -> bool:
        task = self._runs.get(story_id)
        return task is not None and not task.done()

    def start(self, story_id: str) -> bool:
        """
        Run a story in the background.

        Returns False when a run for this story is already in flight.
        """
        if self.is_running(story_id):
            logger.info(f"[PIPELINE] {story_id} already running")
            return False

        task = asyncio.create_task(self.run(story_id), name=f"story-{story_id}")
        self._track(task)
        self._runs[story_id] = task

        def forget(t: asyncio.Task):
            if self._runs.get(story_id) is t:
                del self._runs[story_id]

        task.add_done_callback(forget)
        return True

    def is_regenerating(self, story_id: str) -> bool:
        return any(not t.done() for t in self._regens.get(story_id, ()))

    def _track_regenerate(self, story_id: str, task: asyncio.Task) -> None:
        self._track(task)
        tasks = self._regens.setdefault(story_id, set())
        tasks.add(task)

        def forget(t: asyncio.Task):
            tasks.discard(t)
            if not tasks and self._regens.get(story_id) is tasks:
                del self._regens[story_id]

        task.add_done_callback(forget)

    def recover(self) -> int:
        """
        Restart every story left mid-pipeline (e.g. by a restart).

        Segments of finished stories still marked generating lost their
        regenerate task; they are marked failed so they can be regenerated.
        """
        count = 0
        for story in self.repo.list():
            if not story.stage.is_terminal:
                if self.start(story.id):
                    count += 1
                continue

            if self.is_regenerating(story.id):
                continue
            stuck = [s for s in story.segments if s.status == SegmentStatus.GENERATING]
            if not stuck:
                continue
            for segment in stuck:
                segment.status = SegmentStatus.FAILED
                segment.last_error = "Interrupted"
                segment.generation_id = None
            story.updated_at = utc_now()
            self.repo.save(story)
            logger.warning(f"[RESUME] {story.id} segments {[s.id for s in stuck]} were interrupted - marked failed")

        if count:
            logger.info(f"[RESUME] Restarted {count} unfinished stories")
        return count

    # =========================================================================
    # Main run
    # =========================================================================

    async def run(self, story_id: str) -> Optional[Story]:
        """
        Drive a story from its stored stage to completed or failed.

        Completed and failed stories are returned untouched.
        """
        story = self.repo.load(story_id)
        if story is None:
            logger.warning(f"[PIPELINE] Story {story_id} not found")
            return None

        if story.stage.is_terminal:
            logger.info(f"[PIPELINE] {story_id} already {story.stage.value} - nothing to do")
            return story

        logger.info(f"[PIPELINE] Running {story_id} from stage {story.stage.value}")

        try:
            if story.stage == Stage.UPLOADED:
                story = await self._transition(story_id, Stage.EXTRACTING_STYLE, "Extracting visual style")

            if story.stage == Stage.EXTRACTING_STYLE:
                story = await self._extract_style(story)

            if story.stage == Stage.GENERATING_REFERENCE_ASSET:
                story = await self._generate_reference_asset(story)

            if story.stage == Stage.GENERATING_SEGMENTS:
                story = await self._generate_segments(story)

            if story.stage == Stage.GENERATING_MEDIA:
                story = await self._generate_media(story_id)

            return story

        except _StoryGone:
            logger.info(f"[PIPELINE] {story_id} was deleted - stopping")
            return None
        except Exception as e:
            logger.exception(f"[PIPELINE] {story_id} crashed")
            try:
                return await self._fail(story_id, f"Unexpected error: {e}")
            except _StoryGone:
                return None

    async def _extract_style(self, story: Story) -> Story:
        async def attempt(n: int):
            return await self.style_extractor.extract(story.source_text)

        result = await with_retry(attempt, self.policy, label=f"Style extraction {story.id}", sleep=self._sleep)
        if not result.ok:
            return await self._fail(story.id, f"Style extraction failed: {result.failure.message}")

        if self.pipeline.enable_reference_asset:
            next_stage, description = Stage.GENERATING_REFERENCE_ASSET, "Generating reference image"
        else:
            next_stage, description = Stage.GENERATING_SEGMENTS, "Splitting story into segments"

        def mutate(s: Story):
            s.style_descriptor = result.value
            s.stage = next_stage
            s.current_step_description = description

        story = await self._update(story.id, mutate)
        logger.info(f"[PIPELINE] {story.id} -> {next_stage.value} ({story.progress_percent}%)")
        return story

    async def _generate_reference_asset(self, story: Story) -> Story:
        generator = self.generators[MediaKind.IMAGE]
        prompt = fit_prompt(build_reference_prompt(story.style_descriptor), generator.max_prompt_length)
        options = GenerationOptions(aspect_ratio=self.pipeline.aspect_ratio)

        async def attempt(n: int):
            return await self._produce(generator, prompt, options, lambda: self.repo.load(story.id) is not None)

        result = await with_retry(attempt, self.policy, label=f"Reference image {story.id}", sleep=self._sleep)

        locator = None
        if result.ok:
            async with self._lock(story.id):
                self._load(story.id)
                locator = await self.media_store.write_reference(story.id, result.value.data, result.value.extension)
            logger.info(f"[PIPELINE] {story.id} reference image stored")
        else:
            logger.warning(f"[PIPELINE] {story.id} reference image failed, continuing without it: {result.failure}")

        def mutate(s: Story):
            s.reference_asset = locator
            s.stage = Stage.GENERATING_SEGMENTS
            s.current_step_description = "Splitting story into segments"

        story = await self._update(story.id, mutate)
        logger.info(f"[PIPELINE] {story.id} -> {Stage.GENERATING_SEGMENTS.value} ({story.progress_percent}%)")
        return story

    async def _generate_segments(self, story: Story) -> Story:
        async def attempt(n: int):
            return await self.segmenter.segment(story.source_text, story.style_descriptor)

        result = await with_retry(attempt, self.policy, label=f"Segmentation {story.id}", sleep=self._sleep)
        if not result.ok:
            return await self._fail(story.id, f"Segmentation failed: {result.failure.message}")

        segments = result.value

        def mutate(s: Story):
            s.segments = segments
            s.stage = Stage.GENERATING_MEDIA
            s.current_step_description = f"Generating media for {len(segments)} segments"

        story = await self._update(story.id, mutate)
        logger.info(f"[PIPELINE] {story.id} -> {Stage.GENERATING_MEDIA.value} with {len(segments)} segments")
        return story

    async def _generate_media(self, story_id: str) -> Story:
        story = self._load(story_id)
        processed = 0

        for segment_id in [s.id for s in story.segments]:
            segment = self._load(story_id).get_segment(segment_id)
            if segment is None or segment.status.is_settled:
                continue

            if processed and self.pipeline.inter_segment_delay > 0:
                await self._sleep(self.pipeline.inter_segment_delay)
            processed += 1

            if segment.status == SegmentStatus.GENERATING:
                logger.info(f"[RESUME] {story_id} segment {segment_id} was interrupted - restarting")
            await self._run_segment(story_id, segment_id)

        def mutate(s: Story):
            done = sum(1 for seg in s.segments if seg.status == SegmentStatus.COMPLETED)
            s.stage = Stage.COMPLETED
            s.current_step_description = f"Completed: {done} of {len(s.segments)} segments generated"

        story = await self._update(story_id, mutate)
        failed = sum(1 for s in story.segments if s.status == SegmentStatus.FAILED)
        logger.info(f"[PIPELINE] {story_id} completed ({len(story.segments) - failed} ok, {failed} failed)")
        return story

    # =========================================================================
    # Segment generation
    # =========================================================================

    def _mark_generating(self, story: Story, segment_id: int, new_prompt: Optional[str] = None) -> str:
        segment = story.get_segment(segment_id)
        segment.status = SegmentStatus.GENERATING
        segment.last_error = None
        if new_prompt:
            segment.generation_prompt = new_prompt
        segment.generation_id = new_id()
        segment.attempt_count += 1
        story.current_step_description = f"Generating segment {segment_id} of {len(story.segments)}"
        return segment.generation_id

    async def _run_segment(
        self,
        story_id: str,
        segment_id: int,
        generation_id: Optional[str] = None,
        kinds: Optional[List[MediaKind]] = None,
    ) -> None:
        """Generate media for one segment attempt; every enabled kind unless `kinds` narrows it."""
        if generation_id is None:
            def mark(story: Story):
                self._mark_generating(story, segment_id)

            story = await self._update(story_id, mark)
            generation_id = story.get_segment(segment_id).generation_id

        logger.info(f"[PIPELINE] {story_id} segment {segment_id} generating (attempt id {generation_id[:8]})")
        errors: Dict[str, str] = {}

        for kind in kinds or self.media_kinds:
            async def attempt(n: int, kind: MediaKind = kind):
                return await self._generate_kind(story_id, segment_id, kind, generation_id)

            result = await with_retry(
                attempt,
                self.policy,
                label=f"{story_id[:8]} segment {segment_id} {kind.value}",
                sleep=self._sleep,
            )

            if not result.ok:
                if result.failure.kind == FailureKind.CANCELLED:
                    logger.info(f"[PIPELINE] {story_id} segment {segment_id} attempt superseded - stopping")
                    return
                errors[kind.value] = result.failure.message
                continue

            if not await self._commit_artifact(story_id, segment_id, generation_id, kind, result.value):
                return

        await self._finish_segment(story_id, segment_id, generation_id, errors)

    async def _generate_kind(
        self,
        story_id: str,
        segment_id: int,
        kind: MediaKind,
        generation_id: str,
    ):
        story = self.repo.load(story_id)
        segment = story.get_segment(segment_id) if story else None
        if segment is None or segment.generation_id != generation_id:
            return Failure(kind=FailureKind.CANCELLED, message="Segment attempt superseded")

        generator = self.generators[kind]
        options = GenerationOptions(aspect_ratio=self.pipeline.aspect_ratio)

        if kind == MediaKind.AUDIO:
            prompt = segment.narration_text or segment.scene_description
        else:
            prompt = f"{segment.generation_prompt}\n\n{style_suffix(story.style_descriptor)}"

        if kind == MediaKind.VIDEO:
            options.duration_seconds = min(segment.target_duration_seconds, generator.max_duration_seconds)
            options.reference = await self._load_reference(segment.artifacts.get(MediaKind.IMAGE.value), story.reference_asset)
        elif kind == MediaKind.IMAGE:
            options.reference = await self._load_reference(story.reference_asset)

        return await self._produce(
            generator,
            fit_prompt(prompt, generator.max_prompt_length),
            options,
            lambda: self._is_current(story_id, segment_id, generation_id),
        )

    async def _produce(
        self,
        generator: MediaGenerator,
        prompt: str,
        options: GenerationOptions,
        should_continue: Callable[[], bool],
    ):
        """One generation attempt: generate, then poll when the job is long-running."""
        result = await generator.generate(prompt, options)

        if result.status == GenerationStatus.PENDING:
            poll = await await_completion(
                generator,
                result.operation,
                poll_interval=self.pipeline.poll_interval,
                timeout=self.pipeline.poll_timeout,
                should_continue=should_continue,
                sleep=self._sleep,
            )
            return poll.artifact if poll.ok else poll.failure

        if result.status == GenerationStatus.FAILED:
            return result.failure
        return result.artifact

    async def _load_reference(self, *locators: Optional[str]) -> Optional[Artifact]:
        """First readable image among the locators; missing ones are skipped."""
        for locator in locators:
            if not locator:
                continue
            if not self.media_store.exists(locator):
                logger.warning(f"[PIPELINE] Reference {locator} is missing - generating without it")
                continue
            try:
                data = await self.media_store.read(locator)
            except OSError as e:
                logger.warning(f"[PIPELINE] Reference {locator} unreadable ({e}) - generating without it")
                continue
            return Artifact(kind=MediaKind.IMAGE, data=data, content_type=self.media_store.content_type(locator))
        return None

    async def _commit_artifact(
        self,
        story_id: str,
        segment_id: int,
        generation_id: str,
        kind: MediaKind,
        artifact: Artifact,
    ) -> bool:
        """Store an artifact if its attempt is still the segment's current one."""
        async with self._lock(story_id):
            story = self.repo.load(story_id)
            segment = story.get_segment(segment_id) if story else None
            if segment is None or segment.generation_id != generation_id:
                logger.info(f"[PIPELINE] {story_id} segment {segment_id} {kind.value} discarded (stale attempt)")
                return False

            locator = await self.media_store.write(story_id, segment_id, kind.value, artifact.data, artifact.extension)
            segment.artifacts[kind.value] = locator
            story.updated_at = utc_now()
            self.repo.save(story)

        logger.info(f"[PIPELINE] {story_id} segment {segment_id} {kind.value} stored ({len(artifact.data)} bytes)")
        return True

    async def _finish_segment(
        self,
        story_id: str,
        segment_id: int,
        generation_id: str,
        errors: Dict[str, str],
    ) -> None:
        def mutate(story: Story):
            segment = story.get_segment(segment_id)
            if segment is None or segment.generation_id != generation_id:
                return False
            # a partial regenerate still needs an artifact for every enabled kind
            missing = {
                kind.value: "not generated"
                for kind in self.media_kinds
                if kind.value not in segment.artifacts and kind.value not in errors
            }
            problems = {**errors, **missing}
            segment.status = SegmentStatus.FAILED if problems else SegmentStatus.COMPLETED
            segment.last_error = "; ".join(f"{kind}: {message}" for kind, message in problems.items()) or None

        story = await self._update(story_id, mutate)
        if not self._is_current(story_id, segment_id, generation_id):
            return
        last_error = story.get_segment(segment_id).last_error
        if last_error:
            logger.warning(f"[PIPELINE] {story_id} segment {segment_id} failed: {last_error}")
        else:
            logger.info(f"[PIPELINE] {story_id} segment {segment_id} completed ({story.progress_percent}%)")

    # =========================================================================
    # Requests
    # =========================================================================

    def _resolve_kinds(self, kinds: Optional[Iterable]) -> Optional[List[MediaKind]]:
        """Normalize a requested subset of media kinds; None means all enabled kinds."""
        if not kinds:
            return None
        requested = set()
        for kind in kinds:
            try:
                requested.add(MediaKind(kind))
            except ValueError:
                raise UnsupportedMediaKindError(f"Unknown media kind: {kind}")
        disabled = requested - set(self.media_kinds)
        if disabled:
            names = ", ".join(sorted(k.value for k in disabled))
            raise UnsupportedMediaKindError(f"Media kind not enabled: {names}")
        return [k for k in self.media_kinds if k in requested]

    async def _begin_regenerate(self, story_id: str, segment_id: int, new_prompt: Optional[str]) -> str:
        async with self._lock(story_id):
            story = self.repo.load(story_id)
            if story is None:
                raise StoryNotFoundError(story_id)

            segment = story.get_segment(segment_id)
            if segment is None:
                raise SegmentNotFoundError(story_id, segment_id)

            if segment.status == SegmentStatus.GENERATING:
                raise SegmentBusyError(f"Segment {segment_id} is already generating")
            if not story.stage.is_terminal or self.is_running(story_id):
                raise SegmentBusyError(f"Story is still processing ({story.stage.value})")

            generation_id = self._mark_generating(story, segment_id, new_prompt)
            story.updated_at = utc_now()
            self.repo.save(story)

        logger.info(f"[REGENERATE] {story_id} segment {segment_id} queued (attempt id {generation_id[:8]})")
        return generation_id

    async def _spawn_regenerate(
        self,
        story_id: str,
        segment_id: int,
        new_prompt: Optional[str],
        kinds: Optional[Iterable],
    ) -> Tuple[asyncio.Task, str]:
        selected = self._resolve_kinds(kinds)
        generation_id = await self._begin_regenerate(story_id, segment_id, new_prompt)
        # registered before the next await so resume() sees it
        task = asyncio.create_task(
            self._regenerate_segment(story_id, segment_id, generation_id, selected),
            name=f"regenerate-{story_id}-{segment_id}",
        )
        self._track_regenerate(story_id, task)
        return task, generation_id

    async def regenerate(
        self,
        story_id: str,
        segment_id: int,
        new_prompt: Optional[str] = None,
        kinds: Optional[Iterable] = None,
    ) -> Optional[Story]:
        """
        Regenerate one segment's media and wait for the result.

        Args:
            new_prompt: Replaces the segment's generation prompt
            kinds: Only regenerate these media kinds; other artifacts are kept

        Raises:
            StoryNotFoundError, SegmentNotFoundError
            SegmentBusyError: The segment or its story is still generating
            UnsupportedMediaKindError: A requested kind is unknown or disabled
        """
        task, _ = await self._spawn_regenerate(story_id, segment_id, new_prompt, kinds)
        await task
        return self.repo.load(story_id)

    async def start_regenerate(
        self,
        story_id: str,
        segment_id: int,
        new_prompt: Optional[str] = None,
        kinds: Optional[Iterable] = None,
    ) -> str:
        """Validate and mark the segment, then regenerate in the background."""
        _, generation_id = await self._spawn_regenerate(story_id, segment_id, new_prompt, kinds)
        return generation_id

    async def _regenerate_segment(
        self,
        story_id: str,
        segment_id: int,
        generation_id: str,
        kinds: Optional[List[MediaKind]] = None,
    ) -> None:
        try:
            await self._run_segment(story_id, segment_id, generation_id, kinds)
        except _StoryGone:
            logger.info(f"[REGENERATE] {story_id} was deleted - stopping")
        except Exception as e:
            logger.exception(f"[REGENERATE] {story_id} segment {segment_id} crashed")
            try:
                await self._finish_segment(story_id, segment_id, generation_id, {"pipeline": str(e)})
            except _StoryGone:
                pass

    async def resume(self, story_id: str) -> Story:
        """
        Continue a failed story from the stage it failed in.

        Completed stages and settled segments are not redone. Rejected
        while the story's run or any of its regenerations is in flight.
        """
        async with self._lock(story_id):
            story = self.repo.load(story_id)
            if story is None:
                raise StoryNotFoundError(story_id)
            if story.stage != Stage.FAILED:
                raise InvalidStateError(f"Story is {story.stage.value} - only failed stories can be resumed")
            if self.is_running(story_id):
                raise InvalidStateError("Story is still running")
            if self.is_regenerating(story_id):
                raise InvalidStateError("A segment of this story is still regenerating")

            story.stage = story.failed_stage or Stage.UPLOADED
            story.failed_stage = None
            story.terminal_error = None
            story.current_step_description = f"Resuming from {story.stage.value}"
            story.updated_at = utc_now()
            self.repo.save(story)

        logger.info(f"[RESUME] {story_id} resuming from {story.stage.value}")
        self.start(story_id)
        return story

    async def delete(self, story_id: str) -> bool:
        """
        Remove a story and its media.

        An in-flight run notices at its next read and stops; remote jobs
        already submitted are left to finish on their own.
        """
        lock = self._lock(story_id)
        async with lock:
            if not self.repo.delete(story_id):
                raise StoryNotFoundError(story_id)
            await self.media_store.delete(story_id)

        if self._locks.get(story_id) is lock and not lock.locked():
            del self._locks[story_id]
        logger.info(f"[PIPELINE] {story_id} deleted")
        return True

    async def close(self) -> None:
        providers = {id(p): p for p in self.generators.values()}
        for service in (self.style_extractor, self.segmenter):
            text_provider = getattr(service, "text_provider", None)
            if text_provider is not None:
                providers[id(text_provider)] = text_provider
        for provider in providers.values():
            await provider.close()


# Global orchestrator instance
_orchestrator: Optional[StoryOrchestrator] = None


def get_orchestrator() -> StoryOrchestrator:
    """Get or create the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        from ..config import config
        from ..persistence.media_store import get_media_store
        from ..persistence.stories_repo import get_stories_repository
        from ..providers.factory import build_media_generators, get_text_provider
        from ..services.segmenter import Segmenter
        from ..services.style_extractor import StyleExtractor

        text_provider = get_text_provider()
        _orchestrator = StoryOrchestrator(
            repo=get_stories_repository(),
            media_store=get_media_store(),
            generators=build_media_generators(config),
            style_extractor=StyleExtractor(text_provider),
            segmenter=Segmenter(
                text_provider,
                config.pipeline.segmentation,
                default_duration=config.pipeline.default_segment_duration,
                max_prompt_length=config.pipeline.max_prompt_length,
            ),
            pipeline_config=config.pipeline,
        )
    return _orchestrator
