"""
Working example: run one story through the pipeline without the API server.

    python run_example.py [story.txt]

Without API keys every capability falls back to the local generators.
"""
import asyncio
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

sys.path.insert(0, str(Path(__file__).parent))

from storyreel.config import config
from storyreel.pipeline.enums import Stage
from storyreel.pipeline.orchestrator import get_orchestrator
from storyreel.services.ingest import create_story, title_from_filename


SAMPLE_STORY = """
Ilse kept the lighthouse on the northern cape. Every night she climbed the
ninety steps, trimmed the wick and watched the beam sweep the black water.

One winter a storm drove a fishing boat toward the rocks. Ilse saw its lamp
flicker between the waves and rang the bell until her arms burned.

The fishermen followed the sound into the harbor. In the morning they left
a basket of herring on her doorstep and a lantern painted bright red.

Ilse hung the lantern in the window, and from then on every boat that
passed the cape answered her light with a blink of its own.
"""


def print_progress(story):
    """Progress bar for the current story state."""
    bar_length = 30
    filled = int(bar_length * story.progress_percent / 100)
    bar = "=" * filled + "-" * (bar_length - filled)
    print(f"\r[{bar}] {story.progress_percent:3d}% | {story.stage.value}: {story.current_step_description}", end="", flush=True)


async def run(text: str, title: str):
    orchestrator = get_orchestrator()
    story = create_story(text, orchestrator.repo, config.upload, title=title)

    print(f"\nStory ID: {story.id}")
    print(f"Words: {len(story.source_text.split())}")
    print()
    print("Starting pipeline...")
    print("-" * 60)

    orchestrator.start(story.id)
    while orchestrator.is_running(story.id):
        print_progress(orchestrator.repo.load(story.id))
        await asyncio.sleep(0.5)

    story = orchestrator.repo.load(story.id)
    print_progress(story)
    print()
    print("-" * 60)

    if story.stage == Stage.COMPLETED:
        print("\nSUCCESS!")
        for segment in story.segments:
            status = segment.status.value.upper()
            print(f"  [{status}] {segment.id}. {segment.caption}")
            for kind, locator in segment.artifacts.items():
                print(f"      {kind}: {config.paths.media_dir / locator}")
            if segment.last_error:
                print(f"      error: {segment.last_error}")
    else:
        print(f"\nFAILED: {story.terminal_error}")

    await orchestrator.close()
    return story


def main():
    """Run the example story (or a .txt file given on the command line)."""
    print("=" * 60)
    print("STORY REEL PIPELINE - TEST")
    print("=" * 60)

    if len(sys.argv) > 1:
        path = Path(sys.argv[1])
        text = path.read_text(encoding="utf-8")
        title = title_from_filename(path.name)
    else:
        text = SAMPLE_STORY
        title = "The Lighthouse Keeper"

    return asyncio.run(run(text, title))


if __name__ == "__main__":
    main()
