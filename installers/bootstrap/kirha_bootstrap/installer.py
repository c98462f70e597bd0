"""Install orchestration: check, resolve, download, verify, finalize."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from kirha_core.config import BootstrapSettings, load_settings
from kirha_core.logging_setup import get_logger

from .cache import ReleaseCache
from .errors import AssetNotFound, ChecksumMismatch
from .integrity import read_expected_digest, sha256_file, verify_checksum
from .models import InstallResult, InstallStatus, ReleaseAsset, ReleaseMetadata
from .resolver import (
    BINARY_BASE_NAME,
    PlatformTarget,
    asset_name,
    binary_path,
    checksum_asset_name,
    checksum_path,
    current_target,
    manifest_path,
    staging_path,
)
from .service import download_asset, fetch_latest_release


LOGGER = get_logger("bootstrap.installer")


def make_executable(path: Path, target: PlatformTarget) -> None:
    if target.is_windows:
        return
    try:
        path.chmod(0o755)
    except OSError as exc:
        LOGGER.warning(f"Failed to make binary executable: {exc}", extra={"event": "chmod_failed"})


def _remove(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            LOGGER.warning(f"Failed to remove {path}: {exc}")


def resolve_release(settings: BootstrapSettings, cache: ReleaseCache, use_cache: bool = True) -> ReleaseMetadata:
    if use_cache:
        cached = cache.get()
        if cached is not None:
            return cached

    LOGGER.info("Fetching latest release information...", extra={"event": "release_fetch"})
    release = fetch_latest_release(settings.api_url, timeout_s=settings.metadata_timeout_s)
    cache.set(release)
    return release


def locate_assets(release: ReleaseMetadata, target: PlatformTarget) -> tuple[ReleaseAsset, ReleaseAsset | None]:
    """Exact-name lookup of the binary and its optional checksum asset."""
    name = asset_name(target)
    binary = release.find(name)
    if binary is None:
        raise AssetNotFound(name, release.names_with_prefix(f"{BINARY_BASE_NAME}-"))
    return binary, release.find(checksum_asset_name(target))


def read_manifest(path: Path) -> dict[str, Any] | None:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return raw if isinstance(raw, dict) else None


def _write_manifest(path: Path, release: ReleaseMetadata, asset: ReleaseAsset, digest: str, verified: bool) -> None:
    payload = {
        "tag_name": release.tag_name,
        "asset": asset.name,
        "sha256": digest,
        "verified": verified,
        "installed_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        LOGGER.warning(f"Failed to write install manifest {path}: {exc}")


def install(
    settings: BootstrapSettings | None = None,
    target: PlatformTarget | None = None,
    cache: ReleaseCache | None = None,
    force: bool = False,
) -> InstallResult:
    settings = settings or load_settings()
    target = target or current_target()

    bin_path = binary_path(target, settings.install_dir)
    staged = staging_path(target, settings.install_dir)
    sidecar_path = checksum_path(target, settings.install_dir)
    manifest = manifest_path(target, settings.install_dir)

    LOGGER.info(f"Installing {BINARY_BASE_NAME} for {target.label}")
    LOGGER.info(f"Binary: {bin_path.name}")

    if bin_path.exists() and not force:
        LOGGER.info("Binary already exists, skipping download", extra={"event": "install_satisfied"})
        make_executable(bin_path, target)
        return InstallResult(status=InstallStatus.SATISFIED, target=target, binary_path=bin_path)

    cache = cache or ReleaseCache(settings.cache_path, ttl_s=settings.cache_ttl_s)
    try:
        # --force means "make it the latest", so a cached answer is not good enough.
        release = resolve_release(settings, cache, use_cache=not force)
        binary_asset, checksum_asset = locate_assets(release, target)

        # The binary stays under its staging name until verified; the launcher
        # and the fast path above only ever look at bin_path.
        download_asset(
            binary_asset.url,
            staged,
            timeout_s=settings.download_timeout_s,
            max_redirects=settings.max_redirects,
        )
        LOGGER.info(f"Downloaded {binary_asset.name}", extra={"event": "asset_downloaded"})

        verified = False
        if not settings.verify_checksum:
            LOGGER.warning("Checksum verification disabled, installing unverified binary", extra={"event": "checksum_skipped"})
        elif checksum_asset is None:
            LOGGER.warning(f"Release {release.tag_name} publishes no {checksum_asset_name(target)}, skipping verification")
        else:
            download_asset(
                checksum_asset.url,
                sidecar_path,
                timeout_s=settings.metadata_timeout_s,
                max_redirects=settings.max_redirects,
            )
            if not verify_checksum(staged, sidecar_path):
                raise ChecksumMismatch(bin_path, read_expected_digest(sidecar_path), sha256_file(staged))
            verified = True

        make_executable(staged, target)
        digest = sha256_file(staged)
        os.replace(staged, bin_path)
        _write_manifest(manifest, release, binary_asset, digest, verified)
    finally:
        _remove(staged, sidecar_path)

    LOGGER.info(
        f"{BINARY_BASE_NAME} {release.tag_name} is ready for {target.label}",
        extra={"event": "install_complete"},
    )
    return InstallResult(
        status=InstallStatus.INSTALLED,
        target=target,
        binary_path=bin_path,
        tag_name=release.tag_name,
        sha256=digest,
        verified=verified,
    )


def binary_status(settings: BootstrapSettings, target: PlatformTarget) -> dict[str, Any]:
    """Offline report of whether the launcher would find a usable binary."""
    path = binary_path(target, settings.install_dir)
    exists = path.is_file()
    executable = exists and (target.is_windows or os.access(path, os.X_OK))
    return {
        "target_os": target.os_name,
        "target_arch": target.arch,
        "path": str(path),
        "exists": exists,
        "executable": executable,
        "manifest": read_manifest(manifest_path(target, settings.install_dir)) if exists else None,
    }
