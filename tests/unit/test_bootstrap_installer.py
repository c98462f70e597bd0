from __future__ import annotations

import hashlib
import json
import os
import sys
from dataclasses import replace
from pathlib import Path

import pytest

import kirha_bootstrap.installer as installer
from kirha_bootstrap.cache import ReleaseCache
from kirha_bootstrap.errors import AssetNotFound, ChecksumMismatch, NetworkError, UnsupportedPlatform
from kirha_bootstrap.models import InstallStatus, ReleaseMetadata
from kirha_bootstrap.resolver import PlatformTarget
from kirha_core.config import load_settings

TARGET = PlatformTarget("linux", "amd64")
BINARY = b"\x7fELF fake kirha binary"
DIGEST = hashlib.sha256(BINARY).hexdigest()


class FakeReleaseHost:
    """Stands in for the GitHub API and asset CDN."""

    def __init__(self, payload: dict, files: dict[str, bytes]) -> None:
        self.payload = payload
        self.files = files
        self.metadata_calls = 0
        self.downloads: list[str] = []

    def fetch_latest_release(self, api_url: str, timeout_s: float = 30.0) -> ReleaseMetadata:
        self.metadata_calls += 1
        return ReleaseMetadata.from_payload(self.payload)

    def download_asset(self, url: str, dest: Path, timeout_s: float = 180.0, max_redirects: int = 5) -> Path:
        self.downloads.append(url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.files[url])
        return dest

    @property
    def network_calls(self) -> int:
        return self.metadata_calls + len(self.downloads)


def _payload(*names: str) -> dict:
    return {
        "tag_name": "v1.4.0",
        "assets": [{"name": n, "browser_download_url": f"https://dl/{n}"} for n in names],
    }


def _host(checksum: str | None = DIGEST, names: tuple[str, ...] | None = None) -> FakeReleaseHost:
    files = {"https://dl/kirha-mcp-installer-linux-amd64": BINARY}
    asset_names = ["kirha-mcp-installer-linux-amd64", "kirha-mcp-installer-darwin-arm64"]
    if checksum is not None:
        files["https://dl/kirha-mcp-installer-linux-amd64.sha256"] = (
            f"{checksum}  kirha-mcp-installer-linux-amd64\n".encode("utf-8")
        )
        asset_names.append("kirha-mcp-installer-linux-amd64.sha256")
    return FakeReleaseHost(_payload(*(names or tuple(asset_names))), files)


@pytest.fixture
def settings(tmp_path):
    return replace(
        load_settings({}),
        install_dir=tmp_path / "bin",
        cache_path=tmp_path / "cache" / "latest-release.json",
        log_to_file=False,
    )


@pytest.fixture
def host(monkeypatch):
    fake = _host()
    monkeypatch.setattr(installer, "fetch_latest_release", fake.fetch_latest_release)
    monkeypatch.setattr(installer, "download_asset", fake.download_asset)
    return fake


def _use(monkeypatch, fake: FakeReleaseHost) -> FakeReleaseHost:
    monkeypatch.setattr(installer, "fetch_latest_release", fake.fetch_latest_release)
    monkeypatch.setattr(installer, "download_asset", fake.download_asset)
    return fake


def test_fresh_install_verifies_and_finalizes(settings, host) -> None:
    result = installer.install(settings, target=TARGET)

    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    assert result.status is InstallStatus.INSTALLED
    assert result.binary_path == binary
    assert result.tag_name == "v1.4.0"
    assert result.verified is True
    assert result.sha256 == DIGEST
    assert binary.read_bytes() == BINARY
    assert not (settings.install_dir / "kirha-mcp-installer-linux-amd64.sha256").exists()
    if sys.platform != "win32":
        assert os.access(binary, os.X_OK)
        assert binary.stat().st_mode & 0o777 == 0o755

    manifest = json.loads((settings.install_dir / "kirha-mcp-installer-linux-amd64.manifest.json").read_text())
    assert manifest["tag_name"] == "v1.4.0"
    assert manifest["sha256"] == DIGEST
    assert manifest["verified"] is True


def test_second_run_is_offline_and_leaves_binary_untouched(settings, host) -> None:
    installer.install(settings, target=TARGET)
    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    before = binary.read_bytes()
    calls_after_first = host.network_calls

    result = installer.install(settings, target=TARGET)

    assert result.status is InstallStatus.SATISFIED
    assert host.network_calls == calls_after_first
    assert binary.read_bytes() == before


def test_existing_binary_gets_executable_bit(settings, host) -> None:
    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"placed by hand")
    binary.chmod(0o644)

    result = installer.install(settings, target=TARGET)

    assert result.status is InstallStatus.SATISFIED
    assert host.network_calls == 0
    assert binary.read_bytes() == b"placed by hand"
    if sys.platform != "win32":
        assert os.access(binary, os.X_OK)


def test_missing_asset_lists_candidates_and_writes_nothing(settings, monkeypatch) -> None:
    fake = _use(
        monkeypatch,
        FakeReleaseHost(
            _payload("kirha-mcp-installer-darwin-arm64", "kirha-mcp-installer-windows-amd64.exe", "checksums.txt"),
            {},
        ),
    )

    with pytest.raises(AssetNotFound) as excinfo:
        installer.install(settings, target=TARGET)

    assert excinfo.value.expected == "kirha-mcp-installer-linux-amd64"
    assert excinfo.value.available == (
        "kirha-mcp-installer-darwin-arm64",
        "kirha-mcp-installer-windows-amd64.exe",
    )
    assert fake.downloads == []
    assert not settings.install_dir.exists() or list(settings.install_dir.iterdir()) == []


def test_checksum_mismatch_removes_binary_and_sidecar(settings, monkeypatch) -> None:
    _use(monkeypatch, _host(checksum="0" * 64))

    with pytest.raises(ChecksumMismatch) as excinfo:
        installer.install(settings, target=TARGET)

    assert excinfo.value.expected == "0" * 64
    assert excinfo.value.actual == DIGEST
    assert not (settings.install_dir / "kirha-mcp-installer-linux-amd64").exists()
    assert not (settings.install_dir / "kirha-mcp-installer-linux-amd64.sha256").exists()
    assert not (settings.install_dir / "kirha-mcp-installer-linux-amd64.manifest.json").exists()


def test_release_without_checksum_installs_unverified(settings, monkeypatch) -> None:
    fake = _use(monkeypatch, _host(checksum=None))

    result = installer.install(settings, target=TARGET)

    assert result.verified is False
    assert fake.downloads == ["https://dl/kirha-mcp-installer-linux-amd64"]
    assert result.binary_path.read_bytes() == BINARY


def test_verification_disabled_skips_sidecar_download(settings, monkeypatch) -> None:
    fake = _use(monkeypatch, _host(checksum="0" * 64))

    result = installer.install(replace(settings, verify_checksum=False), target=TARGET)

    assert result.verified is False
    assert fake.downloads == ["https://dl/kirha-mcp-installer-linux-amd64"]
    assert result.binary_path.exists()


def test_failure_after_download_cleans_up(settings, monkeypatch) -> None:
    fake = _host()

    def flaky_download(url: str, dest: Path, timeout_s: float = 180.0, max_redirects: int = 5) -> Path:
        if url.endswith(".sha256"):
            raise NetworkError(url, 503, "Service Unavailable")
        return fake.download_asset(url, dest)

    monkeypatch.setattr(installer, "fetch_latest_release", fake.fetch_latest_release)
    monkeypatch.setattr(installer, "download_asset", flaky_download)

    with pytest.raises(NetworkError):
        installer.install(settings, target=TARGET)
    assert list(settings.install_dir.iterdir()) == []


def test_fresh_cache_avoids_metadata_request(settings, host) -> None:
    now = [1_700_000_000.0]
    cache = ReleaseCache(settings.cache_path, clock=lambda: now[0])
    cache.set(ReleaseMetadata.from_payload(host.payload))

    now[0] += 23 * 3600
    installer.install(settings, target=TARGET, cache=cache)

    assert host.metadata_calls == 0
    assert len(host.downloads) == 2


def test_expired_cache_triggers_live_fetch_and_rewrites(settings, host) -> None:
    now = [1_700_000_000.0]
    cache = ReleaseCache(settings.cache_path, clock=lambda: now[0])
    cache.set(ReleaseMetadata(tag_name="v0.0.1", assets=()))

    now[0] += 24 * 3600
    result = installer.install(settings, target=TARGET, cache=cache)

    assert host.metadata_calls == 1
    assert result.tag_name == "v1.4.0"
    assert cache.get().tag_name == "v1.4.0"


def test_force_refetches_and_replaces(settings, host) -> None:
    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"old build")
    ReleaseCache(settings.cache_path).set(ReleaseMetadata(tag_name="v0.0.1", assets=()))

    result = installer.install(settings, target=TARGET, force=True)

    assert result.status is InstallStatus.INSTALLED
    assert host.metadata_calls == 1
    assert binary.read_bytes() == BINARY


def test_failed_force_keeps_existing_binary(settings, monkeypatch) -> None:
    _use(monkeypatch, FakeReleaseHost(_payload("kirha-mcp-installer-darwin-arm64"), {}))
    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"old build")

    with pytest.raises(AssetNotFound):
        installer.install(settings, target=TARGET, force=True)
    assert binary.read_bytes() == b"old build"


def test_unsupported_platform_never_touches_network(settings, host, monkeypatch) -> None:
    def unsupported() -> PlatformTarget:
        raise UnsupportedPlatform("Plan9", "mips")

    monkeypatch.setattr(installer, "current_target", unsupported)

    with pytest.raises(UnsupportedPlatform):
        installer.install(settings)
    assert host.network_calls == 0
    assert not settings.cache_path.exists()


def test_binary_status_reports_manifest(settings, host) -> None:
    missing = installer.binary_status(settings, TARGET)
    assert missing["exists"] is False
    assert missing["manifest"] is None

    installer.install(settings, target=TARGET)
    status = installer.binary_status(settings, TARGET)
    assert status["exists"] is True
    assert status["executable"] is True
    assert status["manifest"]["tag_name"] == "v1.4.0"


def test_binary_not_visible_until_verified(settings, monkeypatch) -> None:
    fake = _host()
    seen_during_verify: list[bool] = []

    def recording_download(url: str, dest: Path, timeout_s: float = 180.0, max_redirects: int = 5) -> Path:
        if url.endswith(".sha256"):
            seen_during_verify.append(installer.binary_status(settings, TARGET)["exists"])
        return fake.download_asset(url, dest)

    monkeypatch.setattr(installer, "fetch_latest_release", fake.fetch_latest_release)
    monkeypatch.setattr(installer, "download_asset", recording_download)

    result = installer.install(settings, target=TARGET)

    assert seen_during_verify == [False]
    assert result.binary_path.read_bytes() == BINARY
    assert sorted(p.name for p in settings.install_dir.iterdir()) == [
        "kirha-mcp-installer-linux-amd64",
        "kirha-mcp-installer-linux-amd64.manifest.json",
    ]


def test_mismatch_during_force_keeps_existing_binary(settings, monkeypatch) -> None:
    _use(monkeypatch, _host(checksum="0" * 64))
    binary = settings.install_dir / "kirha-mcp-installer-linux-amd64"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"old build")

    with pytest.raises(ChecksumMismatch):
        installer.install(settings, target=TARGET, force=True)
    assert binary.read_bytes() == b"old build"
    assert sorted(p.name for p in settings.install_dir.iterdir()) == ["kirha-mcp-installer-linux-amd64"]


def test_undecodable_sidecar_raises_checksum_mismatch(settings, monkeypatch) -> None:
    fake = _use(monkeypatch, _host())
    fake.files["https://dl/kirha-mcp-installer-linux-amd64.sha256"] = b"\xff\xfe\x00garbage"

    with pytest.raises(ChecksumMismatch) as excinfo:
        installer.install(settings, target=TARGET)
    assert excinfo.value.actual == DIGEST
    assert list(settings.install_dir.iterdir()) == []
