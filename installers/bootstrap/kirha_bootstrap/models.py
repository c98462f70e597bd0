"""Typed models for release metadata and install outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import MetadataParseError
from .resolver import PlatformTarget


class InstallStatus(str, Enum):
    INSTALLED = "installed"
    SATISFIED = "satisfied"


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    url: str


@dataclass(frozen=True)
class ReleaseMetadata:
    tag_name: str
    assets: tuple[ReleaseAsset, ...]

    def find(self, name: str) -> ReleaseAsset | None:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None

    def names_with_prefix(self, prefix: str) -> list[str]:
        return [a.name for a in self.assets if a.name.startswith(prefix)]

    @classmethod
    def from_payload(cls, payload: Any) -> "ReleaseMetadata":
        """Parse a GitHub "latest release" document."""
        if not isinstance(payload, dict):
            raise MetadataParseError("Release metadata is not a JSON object")

        tag_name = payload.get("tag_name")
        raw_assets = payload.get("assets")
        if not isinstance(tag_name, str):
            raise MetadataParseError("Release metadata has no tag_name")
        if not isinstance(raw_assets, list):
            raise MetadataParseError("Release metadata has no assets list")

        assets: list[ReleaseAsset] = []
        for item in raw_assets:
            if not isinstance(item, dict):
                raise MetadataParseError("Release asset entry is not a JSON object")
            name = item.get("name")
            url = item.get("browser_download_url")
            if not isinstance(name, str) or not isinstance(url, str):
                raise MetadataParseError("Release asset entry lacks name or browser_download_url")
            assets.append(ReleaseAsset(name=name, url=url))

        return cls(tag_name=tag_name, assets=tuple(assets))

    def to_payload(self) -> dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "assets": [{"name": a.name, "browser_download_url": a.url} for a in self.assets],
        }


@dataclass(frozen=True)
class InstallResult:
    status: InstallStatus
    target: PlatformTarget
    binary_path: Path
    tag_name: str | None = None
    sha256: str | None = None
    verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "target_os": self.target.os_name,
            "target_arch": self.target.arch,
            "path": str(self.binary_path),
            "tag_name": self.tag_name,
            "sha256": self.sha256,
            "verified": self.verified,
        }
