"""Bootstrap installer and launcher for the kirha-mcp-installer native binary."""

from .cache import ReleaseCache
from .errors import (
    AssetNotFound,
    BinaryNotFound,
    BootstrapError,
    ChecksumMismatch,
    DownloadError,
    MetadataParseError,
    NetworkError,
    SpawnError,
    UnsupportedPlatform,
)
from .installer import install
from .launcher import run
from .models import InstallResult, InstallStatus, ReleaseAsset, ReleaseMetadata
from .resolver import PlatformTarget, asset_name, checksum_asset_name, current_target, resolve_target

__version__ = "0.1.0"

__all__ = [
    "AssetNotFound",
    "BinaryNotFound",
    "BootstrapError",
    "ChecksumMismatch",
    "DownloadError",
    "InstallResult",
    "InstallStatus",
    "MetadataParseError",
    "NetworkError",
    "PlatformTarget",
    "ReleaseAsset",
    "ReleaseCache",
    "ReleaseMetadata",
    "SpawnError",
    "UnsupportedPlatform",
    "asset_name",
    "checksum_asset_name",
    "current_target",
    "install",
    "resolve_target",
    "run",
]
