"""Bootstrap settings schema and environment loading helpers."""

from __future__ import annotations

import os
import platform
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping


DEFAULT_REPO = "kirha-ai/kirha-mcp-installer"
CACHE_TTL_S = 24 * 60 * 60

_FALSE_VALUES = ("0", "false", "no", "off")


def default_cache_path() -> Path:
    return Path(tempfile.gettempdir()) / "kirha-mcp-installer" / "latest-release.json"


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "Kirha"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "Kirha"
    return Path.home() / ".config" / "kirha"


def release_api_url(repo: str) -> str:
    return f"https://api.github.com/repos/{repo}/releases/latest"


def releases_page_url(repo: str) -> str:
    return f"https://github.com/{repo}/releases"


@dataclass(frozen=True)
class BootstrapSettings:
    repo: str = DEFAULT_REPO
    api_url: str = release_api_url(DEFAULT_REPO)
    # None means the bin/ directory inside the bootstrap package tree.
    install_dir: Path | None = None
    cache_path: Path = field(default_factory=default_cache_path)
    cache_ttl_s: float = CACHE_TTL_S
    verify_checksum: bool = True
    metadata_timeout_s: float = 30.0
    download_timeout_s: float = 180.0
    max_redirects: int = 5
    log_dir: Path = field(default_factory=lambda: config_root() / "logs")
    log_to_file: bool = True

    @property
    def releases_page(self) -> str:
        return releases_page_url(self.repo)

    def with_repo(self, repo: str) -> "BootstrapSettings":
        return replace(self, repo=repo, api_url=release_api_url(repo))


def parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in _FALSE_VALUES


def _parse_float(raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _normalize(settings: BootstrapSettings) -> BootstrapSettings:
    return replace(
        settings,
        cache_ttl_s=max(0.0, float(settings.cache_ttl_s)),
        metadata_timeout_s=max(1.0, float(settings.metadata_timeout_s)),
        download_timeout_s=max(1.0, float(settings.download_timeout_s)),
        max_redirects=max(1, min(20, int(settings.max_redirects))),
    )


def load_settings(environ: Mapping[str, str] | None = None) -> BootstrapSettings:
    env = os.environ if environ is None else environ
    defaults = BootstrapSettings()

    repo = env.get("KIRHA_REPO", "").strip() or defaults.repo
    api_url = env.get("KIRHA_RELEASE_API_URL", "").strip() or release_api_url(repo)

    install_dir = env.get("KIRHA_INSTALL_DIR", "").strip()
    cache_path = env.get("KIRHA_CACHE_PATH", "").strip()
    log_dir = env.get("KIRHA_LOG_DIR", "").strip()

    # VERIFY_CHECKSUM is the documented switch; the prefixed name wins when both are set.
    verify = parse_bool(env.get("VERIFY_CHECKSUM"), defaults.verify_checksum)
    verify = parse_bool(env.get("KIRHA_VERIFY_CHECKSUM"), verify)

    settings = BootstrapSettings(
        repo=repo,
        api_url=api_url,
        install_dir=Path(install_dir).expanduser() if install_dir else None,
        cache_path=Path(cache_path).expanduser() if cache_path else defaults.cache_path,
        cache_ttl_s=_parse_float(env.get("KIRHA_CACHE_TTL_S"), defaults.cache_ttl_s),
        verify_checksum=verify,
        metadata_timeout_s=_parse_float(env.get("KIRHA_METADATA_TIMEOUT_S"), defaults.metadata_timeout_s),
        download_timeout_s=_parse_float(env.get("KIRHA_DOWNLOAD_TIMEOUT_S"), defaults.download_timeout_s),
        max_redirects=_parse_int(env.get("KIRHA_MAX_REDIRECTS"), defaults.max_redirects),
        log_dir=Path(log_dir).expanduser() if log_dir else defaults.log_dir,
        log_to_file=parse_bool(env.get("KIRHA_LOG_FILE"), defaults.log_to_file),
    )
    return _normalize(settings)
