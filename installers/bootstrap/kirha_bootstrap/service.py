"""Release index and asset download over HTTPS."""

from __future__ import annotations

import http.client
import json
import os
import ssl
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urljoin

from kirha_core.logging_setup import get_logger

from .errors import DownloadError, MetadataParseError, NetworkError
from .models import ReleaseMetadata

try:
    import certifi
except Exception:  # pragma: no cover - fallback when optional dependency unavailable
    certifi = None


LOGGER = get_logger("bootstrap.service")

USER_AGENT = "kirha-mcp-installer-python-installer (+https://github.com/kirha-ai/kirha-mcp-installer)"
REDIRECT_CODES = (301, 302, 303, 307, 308)
CHUNK_SIZE = 1024 * 1024


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Surface 3xx responses as HTTPError so callers follow them explicitly."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def _build_ssl_context() -> ssl.SSLContext:
    """Create TLS context for release downloads with explicit CA handling."""
    if os.environ.get("KIRHA_ALLOW_INSECURE_TLS", "").strip() == "1":
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("KIRHA_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    if certifi is not None:
        return ssl.create_default_context(cafile=certifi.where())

    return ssl.create_default_context()


def _urlopen(url: str, timeout: float, accept: str = "*/*"):
    request = urllib.request.Request(
        url,
        headers={
            "User-Agent": USER_AGENT,
            "Accept": accept,
        },
    )
    opener = urllib.request.build_opener(
        _NoRedirect(),
        urllib.request.HTTPSHandler(context=_build_ssl_context()),
    )
    return opener.open(request, timeout=timeout)


def _reason(exc: BaseException) -> str:
    return str(getattr(exc, "reason", None) or exc)


def fetch_latest_release(api_url: str, timeout_s: float = 30.0) -> ReleaseMetadata:
    try:
        with _urlopen(api_url, timeout=timeout_s, accept="application/vnd.github+json") as response:
            status = getattr(response, "status", 200)
            reason = getattr(response, "reason", "")
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise NetworkError(api_url, exc.code, str(exc.reason)) from exc
    except (OSError, http.client.HTTPException) as exc:
        raise NetworkError(api_url, None, _reason(exc)) from exc

    if status != 200:
        raise NetworkError(api_url, status, reason or "")

    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError as exc:
        raise MetadataParseError(f"Failed to parse release index response: {exc}") from exc

    return ReleaseMetadata.from_payload(payload)


def _content_length(response) -> int | None:
    headers = getattr(response, "headers", None)
    raw = headers.get("Content-Length") if headers is not None else None
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _stream_to_file(response, dest: Path, url: str) -> None:
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".part", dir=str(dest.parent))
    except OSError as exc:
        raise DownloadError(url, None, f"cannot write to {dest.parent}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        written = 0
        with os.fdopen(fd, "wb") as fh:
            while True:
                chunk = response.read(CHUNK_SIZE)
                if not chunk:
                    break
                fh.write(chunk)
                written += len(chunk)
        # http.client returns b"" on an early close instead of raising.
        expected = _content_length(response)
        if expected is not None and written < expected:
            raise DownloadError(url, None, f"incomplete transfer: got {written} of {expected} bytes")
        os.replace(tmp_path, dest)
    except (OSError, http.client.HTTPException) as exc:
        raise DownloadError(url, None, f"transfer interrupted: {exc}") from exc
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def download_asset(url: str, dest: Path, timeout_s: float = 180.0, max_redirects: int = 5) -> Path:
    """Stream ``url`` into ``dest``, following at most ``max_redirects`` redirects.

    The body lands in a temp file next to ``dest`` and is renamed into place, so
    ``dest`` is either absent or complete.
    """
    current = url
    for _ in range(max_redirects + 1):
        LOGGER.info(f"Downloading {current}")
        try:
            response = _urlopen(current, timeout=timeout_s)
        except urllib.error.HTTPError as exc:
            if exc.code not in REDIRECT_CODES:
                raise DownloadError(current, exc.code, str(exc.reason)) from exc
            location = exc.headers.get("Location") if exc.headers is not None else None
            exc.close()
            if not location:
                raise DownloadError(current, exc.code, "redirect without Location header") from exc
            current = urljoin(current, location)
            continue
        except (OSError, http.client.HTTPException) as exc:
            raise DownloadError(current, None, _reason(exc)) from exc

        with response:
            status = getattr(response, "status", 200)
            if status != 200:
                raise DownloadError(current, status, getattr(response, "reason", "") or "")
            _stream_to_file(response, dest, current)
        return dest

    raise DownloadError(url, None, f"too many redirects (limit {max_redirects})")
