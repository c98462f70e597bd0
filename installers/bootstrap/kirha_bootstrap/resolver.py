"""Release asset resolution for OS/architecture specific binaries."""

from __future__ import annotations

import platform
from dataclasses import dataclass
from pathlib import Path

from .errors import UnsupportedPlatform


BINARY_BASE_NAME = "kirha-mcp-installer"
CHECKSUM_SUFFIX = ".sha256"
MANIFEST_SUFFIX = ".manifest.json"
STAGING_SUFFIX = ".part"

_OS_ALIASES = {
    "darwin": "darwin",
    "linux": "linux",
    "windows": "windows",
}

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(frozen=True)
class PlatformTarget:
    os_name: str
    arch: str

    @property
    def label(self) -> str:
        return f"{self.os_name}/{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os_name == "windows"


SUPPORTED_TARGETS = tuple(
    PlatformTarget(os_name=os_name, arch=arch)
    for os_name in ("darwin", "linux", "windows")
    for arch in ("amd64", "arm64")
)


def resolve_target(system: str, machine: str) -> PlatformTarget:
    os_name = _OS_ALIASES.get(system.strip().lower())
    arch = _ARCH_ALIASES.get(machine.strip().lower())
    if os_name is None or arch is None:
        raise UnsupportedPlatform(system, machine)
    return PlatformTarget(os_name=os_name, arch=arch)


def current_target() -> PlatformTarget:
    return resolve_target(platform.system(), platform.machine())


def asset_name(target: PlatformTarget) -> str:
    ext = ".exe" if target.is_windows else ""
    return f"{BINARY_BASE_NAME}-{target.os_name}-{target.arch}{ext}"


def checksum_asset_name(target: PlatformTarget) -> str:
    return asset_name(target) + CHECKSUM_SUFFIX


def default_install_dir() -> Path:
    return Path(__file__).resolve().parent / "bin"


def binary_path(target: PlatformTarget, install_dir: Path | None = None) -> Path:
    return (install_dir or default_install_dir()) / asset_name(target)


def checksum_path(target: PlatformTarget, install_dir: Path | None = None) -> Path:
    return (install_dir or default_install_dir()) / checksum_asset_name(target)


def manifest_path(target: PlatformTarget, install_dir: Path | None = None) -> Path:
    return (install_dir or default_install_dir()) / (asset_name(target) + MANIFEST_SUFFIX)


def staging_path(target: PlatformTarget, install_dir: Path | None = None) -> Path:
    """Where a downloaded binary waits until it has been verified."""
    return (install_dir or default_install_dir()) / (asset_name(target) + STAGING_SUFFIX)
