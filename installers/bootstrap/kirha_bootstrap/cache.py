"""Time-limited on-disk cache of the latest release metadata."""

from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Callable

from kirha_core.config import CACHE_TTL_S
from kirha_core.logging_setup import get_logger

from .errors import MetadataParseError
from .models import ReleaseMetadata


LOGGER = get_logger("bootstrap.cache")

Clock = Callable[[], float]


class ReleaseCache:
    """JSON file holding ``{"timestamp": epoch_ms, "release": {...}}``.

    Reads never raise: a missing, corrupt or expired file is a miss. Writes are
    best-effort and replace the whole file atomically.
    """

    def __init__(self, path: Path, ttl_s: float = CACHE_TTL_S, clock: Clock = time.time) -> None:
        self.path = path
        self.ttl_s = ttl_s
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self) -> ReleaseMetadata | None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            LOGGER.debug(f"release cache unreadable: {exc}")
            return None

        if not isinstance(raw, dict):
            return None
        timestamp = raw.get("timestamp")
        if not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            return None

        age_ms = self._now_ms() - timestamp
        if age_ms < 0:
            LOGGER.debug("release cache timestamp is in the future", extra={"event": "release_cache_future"})
            return None
        if age_ms >= self.ttl_s * 1000:
            LOGGER.debug("release cache expired", extra={"event": "release_cache_expired"})
            return None

        try:
            release = ReleaseMetadata.from_payload(raw.get("release"))
        except MetadataParseError as exc:
            LOGGER.debug(f"release cache malformed: {exc}")
            return None

        LOGGER.debug(f"using cached release {release.tag_name}", extra={"event": "release_cache_hit"})
        return release

    def set(self, release: ReleaseMetadata) -> None:
        entry = {"timestamp": self._now_ms(), "release": release.to_payload()}
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".release-", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(entry, fh)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            LOGGER.warning(f"Failed to write release cache {self.path}: {exc}", extra={"event": "release_cache_write_failed"})
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
