"""CLI installer that downloads, verifies and stages the native binary."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from kirha_core.config import BootstrapSettings, load_settings
from kirha_core.logging_setup import configure_logging, get_logger

from .errors import AssetNotFound, BootstrapError, UnsupportedPlatform
from .installer import binary_status, install
from .resolver import binary_path, current_target


LOGGER = get_logger("bootstrap.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kirha-mcp-install", description="kirha-mcp-installer binary bootstrap")
    parser.add_argument("--repo", default=None, help="GitHub owner/repo to take the latest release from")
    parser.add_argument("--install-dir", default=None, help="Directory that holds the platform binary")
    parser.add_argument("--force", action="store_true", help="Replace an existing binary with the latest release")
    parser.add_argument("--skip-verify", action="store_true", help="Do not download or check the .sha256 sidecar")
    parser.add_argument("--status", action="store_true", help="Report the installed binary without touching the network")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    return parser


def _apply_args(settings: BootstrapSettings, args: argparse.Namespace) -> BootstrapSettings:
    if args.repo:
        settings = settings.with_repo(args.repo)
    if args.install_dir:
        settings = replace(settings, install_dir=Path(args.install_dir).expanduser().resolve())
    if args.skip_verify:
        settings = replace(settings, verify_checksum=False)
    return settings


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _print_troubleshooting(settings: BootstrapSettings) -> None:
    try:
        expected = str(binary_path(current_target(), settings.install_dir))
    except UnsupportedPlatform:
        expected = str(settings.install_dir or "the bin/ directory of this package")
    lines = [
        "",
        "Troubleshooting:",
        "1. Check your internet connection",
        "2. Verify the GitHub repository exists and has releases",
        "3. Try installing again later",
        f"4. Download manually from: {settings.releases_page}",
        f"5. Place the binary manually in: {expected}",
    ]
    print("\n".join(lines), file=sys.stderr)


def cmd_status(settings: BootstrapSettings, as_json: bool) -> int:
    status = binary_status(settings, current_target())
    usable = status["exists"] and status["executable"]
    if as_json:
        _print_json(status)
    elif usable:
        tag = (status["manifest"] or {}).get("tag_name")
        suffix = f" ({tag})" if tag else ""
        print(f"kirha-mcp-installer{suffix} ready for {status['target_os']}/{status['target_arch']}: {status['path']}")
    elif status["exists"]:
        print(f"Binary exists but is not executable: {status['path']}", file=sys.stderr)
    else:
        print(f"Binary not found at {status['path']}", file=sys.stderr)
        print("This may indicate an incomplete installation.", file=sys.stderr)
    return 0 if usable else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _apply_args(load_settings(), args)
    configure_logging(
        log_dir=settings.log_dir if settings.log_to_file else None,
        console_level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        if args.status:
            return cmd_status(settings, args.json)
        result = install(settings, force=args.force)
    except (UnsupportedPlatform, AssetNotFound) as exc:
        # Structural mismatch: retrying or reconnecting cannot help.
        LOGGER.error(str(exc), extra={"event": "install_failed"})
        if isinstance(exc, AssetNotFound):
            LOGGER.error("Available binaries:")
            for name in exc.available:
                LOGGER.error(f"  - {name}")
        return 1
    except (BootstrapError, OSError) as exc:
        LOGGER.error(f"Installation failed: {exc}", extra={"event": "install_failed"})
        _print_troubleshooting(settings)
        return 1

    if args.json:
        _print_json(result.to_dict())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
