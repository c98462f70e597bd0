"""Error taxonomy for binary resolution, installation and delegation."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class BootstrapError(RuntimeError):
    """Base class for every failure the installer or launcher reports."""


class UnsupportedPlatform(BootstrapError):
    def __init__(self, system: str, machine: str) -> None:
        self.system = system
        self.machine = machine
        super().__init__(f"Unsupported platform: {system}/{machine}")


class NetworkError(BootstrapError):
    def __init__(self, url: str, status: int | None = None, reason: str = "") -> None:
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            msg = f"Release index request failed: {status} {reason}".rstrip()
        else:
            msg = f"Release index request failed: {reason or 'connection error'}"
        super().__init__(f"{msg} ({url})")


class MetadataParseError(BootstrapError):
    pass


class AssetNotFound(BootstrapError):
    def __init__(self, expected: str, available: Sequence[str] = ()) -> None:
        self.expected = expected
        self.available = tuple(available)
        super().__init__(f"Binary not found for your platform: {expected}")


class DownloadError(BootstrapError):
    def __init__(self, url: str, status: int | None = None, reason: str = "") -> None:
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            msg = f"Failed to download: {status} {reason}".rstrip()
        else:
            msg = f"Failed to download: {reason or 'connection error'}"
        super().__init__(f"{msg} ({url})")


class ChecksumMismatch(BootstrapError):
    def __init__(self, path: Path, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum verification failed for {path.name}: expected {expected or '<empty>'}, got {actual}")


class BinaryNotFound(BootstrapError):
    def __init__(self, path: Path, platform_label: str) -> None:
        self.path = path
        self.platform_label = platform_label
        super().__init__(f"Binary not found: {path} (platform {platform_label})")


class SpawnError(BootstrapError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to start {path}: {reason}")
