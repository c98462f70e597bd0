"""SHA-256 verification of downloaded binaries against published sidecars."""

from __future__ import annotations

import hashlib
from pathlib import Path

from kirha_core.logging_setup import get_logger


LOGGER = get_logger("bootstrap.integrity")


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def read_expected_digest(checksum_path: Path) -> str:
    """First whitespace-delimited token of a ``sha256sum``-style sidecar."""
    parts = checksum_path.read_text(encoding="utf-8", errors="replace").split()
    return parts[0] if parts else ""


def verify_checksum(binary_path: Path, checksum_path: Path) -> bool:
    if not checksum_path.exists():
        LOGGER.warning("Checksum file not found, skipping verification", extra={"event": "checksum_missing"})
        return True

    expected = read_expected_digest(checksum_path)
    actual = sha256_file(binary_path)
    if actual != expected:
        LOGGER.error(
            f"Checksum verification failed! Expected: {expected} Actual: {actual}",
            extra={"event": "checksum_mismatch"},
        )
        return False

    LOGGER.info("Checksum verification passed", extra={"event": "checksum_verified"})
    return True
