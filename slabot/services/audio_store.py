import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from slabot.logging_config import get_logger

logger = get_logger("audio_store")

DEFAULT_TTL_SECONDS = 300
AUDIO_SUFFIX = ".mp3"


@dataclass
class AudioBlob:
    data: bytes
    created_at: float


def normalize_audio_id(audio_id: str) -> str:
    """Accept ids with or without the trailing .mp3 suffix."""
    if audio_id.endswith(AUDIO_SUFFIX):
        return audio_id[: -len(AUDIO_SUFFIX)]
    return audio_id


class AudioStore:
    """Short-lived MP3 buffers served at /audio/{id}.mp3.

    Expired entries are swept whenever a new blob is stored; fetch never
    returns an expired blob even if it has not been swept yet.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._blobs: dict[str, AudioBlob] = {}

    def _is_expired(self, blob: AudioBlob, now: float) -> bool:
        return now - blob.created_at > self.ttl_seconds

    def sweep(self) -> int:
        now = self._clock()
        expired = [audio_id for audio_id, blob in self._blobs.items() if self._is_expired(blob, now)]
        for audio_id in expired:
            self._blobs.pop(audio_id, None)
        return len(expired)

    def store(self, data: bytes) -> str:
        now = self._clock()
        audio_id = f"audio_{int(now * 1000)}_{secrets.token_hex(5)}"
        self._blobs[audio_id] = AudioBlob(data=data, created_at=now)
        removed = self.sweep()
        if removed:
            logger.debug(f"Audio store swept {removed} expired blobs")
        return audio_id

    def fetch(self, audio_id: str) -> Optional[bytes]:
        blob = self._blobs.get(normalize_audio_id(audio_id))
        if blob is None or self._is_expired(blob, self._clock()):
            return None
        return blob.data

    def __len__(self) -> int:
        return len(self._blobs)
