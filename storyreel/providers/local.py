"""
Local providers - REQUIRED fallback.

Offline and deterministic: solid-colour PNG images, silent WAV narration,
a video job that completes after a few polls, and heuristic text analysis.
"""
import json
import re
import struct
import uuid
import zlib
import hashlib
import logging
from typing import Optional, Dict, Any, List

from ..pipeline.enums import MediaKind
from ..pipeline.models import Artifact, GenerationOptions, GenerationResult, OperationHandle
from .base import MediaGenerator, TextProvider
from .exceptions import PermanentProviderError

logger = logging.getLogger(__name__)


def _png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    chunk = chunk_type + data
    crc = zlib.crc32(chunk) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + chunk + struct.pack(">I", crc)


def solid_png(width: int, height: int, rgb: tuple) -> bytes:
    signature = b"\x89PNG\r\n\x1a\n"
    ihdr = _png_chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
    row = b"\x00" + bytes(rgb) * width
    idat = _png_chunk(b"IDAT", zlib.compress(row * height, 9))
    iend = _png_chunk(b"IEND", b"")
    return signature + ihdr + idat + iend


def silent_wav(duration: float, sample_rate: int = 16000, channels: int = 1, bits: int = 16) -> bytes:
    bytes_per_sample = bits // 8
    num_samples = int(sample_rate * duration)
    data_size = num_samples * channels * bytes_per_sample
    header = b"RIFF" + struct.pack("<I", 36 + data_size) + b"WAVE"
    fmt = b"fmt " + struct.pack(
        "<IHHIIHH",
        16,
        1,
        channels,
        sample_rate,
        sample_rate * channels * bytes_per_sample,
        channels * bytes_per_sample,
        bits,
    )
    return header + fmt + b"data" + struct.pack("<I", data_size) + b"\x00" * data_size


# ftyp + free + empty mdat
PLACEHOLDER_MP4 = bytes([
    0x00, 0x00, 0x00, 0x1C, 0x66, 0x74, 0x79, 0x70,
    0x69, 0x73, 0x6F, 0x6D, 0x00, 0x00, 0x02, 0x00,
    0x69, 0x73, 0x6F, 0x6D, 0x69, 0x73, 0x6F, 0x32,
    0x6D, 0x70, 0x34, 0x31,
    0x00, 0x00, 0x00, 0x08, 0x66, 0x72, 0x65, 0x65,
    0x00, 0x00, 0x00, 0x08, 0x6D, 0x64, 0x61, 0x74,
])


class LocalImageGenerator(MediaGenerator):
    """Solid-colour PNG, colour derived from the prompt."""

    kind = MediaKind.IMAGE
    SIZES = {"16:9": (320, 180), "9:16": (180, 320), "1:1": (256, 256)}

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        self.validate_request(prompt, options)
        width, height = self.SIZES.get(options.aspect_ratio, self.SIZES["16:9"])
        digest = hashlib.md5(prompt.encode("utf-8")).digest()
        data = solid_png(width, height, (digest[0], digest[1], digest[2]))
        return GenerationResult.completed(Artifact(kind=MediaKind.IMAGE, data=data, content_type="image/png"))


class LocalAudioGenerator(MediaGenerator):
    """Silent WAV sized by narration word count."""

    kind = MediaKind.AUDIO
    WORDS_PER_SECOND = 2.5

    def __init__(self, max_prompt_length: int = 5000, max_duration_seconds: int = 300):
        super().__init__(max_prompt_length, max_duration_seconds)

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        self.validate_request(prompt, options)
        duration = self._calculate_duration(prompt)
        return GenerationResult.completed(
            Artifact(kind=MediaKind.AUDIO, data=silent_wav(duration), content_type="audio/wav")
        )

    def _calculate_duration(self, text: str) -> float:
        word_count = len(text.split())
        return max(1.0, min(word_count / self.WORDS_PER_SECOND, 300.0))


class LocalVideoGenerator(MediaGenerator):
    """Video job that reports pending for `polls_to_complete` polls, then a placeholder MP4."""

    kind = MediaKind.VIDEO
    supports_polling = True

    def __init__(self, polls_to_complete: int = 1, max_prompt_length: int = 2000, max_duration_seconds: int = 60):
        super().__init__(max_prompt_length, max_duration_seconds)
        self.polls_to_complete = polls_to_complete
        self._jobs: Dict[str, int] = {}

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def generate(self, prompt: str, options: GenerationOptions) -> GenerationResult:
        self.validate_request(prompt, options)
        operation_id = f"local-{uuid.uuid4().hex[:12]}"
        self._jobs[operation_id] = 0
        return GenerationResult.pending(
            OperationHandle(
                operation_id=operation_id,
                provider=self.name,
                kind=MediaKind.VIDEO,
                metadata={"has_reference": options.reference is not None},
            )
        )

    async def poll(self, operation: OperationHandle) -> GenerationResult:
        if operation.operation_id not in self._jobs:
            raise PermanentProviderError(self.name, f"Unknown operation {operation.operation_id}")

        self._jobs[operation.operation_id] += 1
        if self._jobs[operation.operation_id] < self.polls_to_complete:
            return GenerationResult.pending(operation)

        del self._jobs[operation.operation_id]
        return GenerationResult.completed(
            Artifact(kind=MediaKind.VIDEO, data=PLACEHOLDER_MP4, content_type="video/mp4")
        )


class LocalTextProvider(TextProvider):
    """
    Heuristic analysis used when no text model is configured.

    Reads the structured context rather than the prompt: capitalised words
    become characters, and the story is cut into even sentence groups.
    """

    STOPWORDS = {"The", "A", "An", "And", "But", "Then", "When", "She", "He", "They", "It", "In", "On", "At", "Once"}

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def complete(
        self,
        prompt: str,
        task: str = "generic",
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        context = context or {}
        text = context.get("text", prompt)

        if task == "style":
            return json.dumps(self._style(text))
        if task == "segments":
            return json.dumps(self._segments(text, int(context.get("segment_count", 3))))
        return text

    def _style(self, text: str) -> Dict[str, Any]:
        counts: Dict[str, int] = {}
        for word in re.findall(r"\b[A-Z][a-z]{2,}\b", text):
            if word not in self.STOPWORDS:
                counts[word] = counts.get(word, 0) + 1
        names = sorted(counts, key=lambda w: (-counts[w], w))[:3]
        return {
            "characters": [
                {"name": n, "description": f"A character named {n}", "visual_traits": ""} for n in names
            ],
            "setting": {},
            "visual_style": {},
        }

    def _segments(self, text: str, count: int) -> List[Dict[str, Any]]:
        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text) if s.strip()]
        if not sentences:
            sentences = [text.strip()]
        count = max(1, min(count, len(sentences)))
        size = len(sentences) / count

        segments = []
        for i in range(count):
            chunk = " ".join(sentences[int(i * size):int((i + 1) * size)])
            first = chunk.split(".")[0][:200]
            segments.append({
                "scene_description": first,
                "narration": chunk,
                "caption": f"Scene {i + 1}",
                "prompt": f"Cinematic shot: {first}",
                "duration": 8,
            })
        return segments
