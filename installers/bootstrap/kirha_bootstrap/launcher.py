"""Delegate an invocation to the installed binary, forwarding signals and exit code."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from types import FrameType
from typing import Sequence

from kirha_core.config import BootstrapSettings, load_settings
from kirha_core.logging_setup import configure_logging, get_logger

from .errors import BinaryNotFound, BootstrapError, SpawnError, UnsupportedPlatform
from .resolver import binary_path, current_target


LOGGER = get_logger("bootstrap.launcher")

EXIT_FAILURE = 1
FORWARDED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class SignalForwarder:
    """Relay termination signals to a child for as long as the context is open.

    Handlers go in before the child is spawned; anything received before
    ``attach`` is queued and delivered once the child exists. Previous handlers
    are restored on exit.
    """

    def __init__(self, signals: Sequence[int] = FORWARDED_SIGNALS) -> None:
        self._signals = tuple(signals)
        self._previous: dict[int, object] = {}
        self._process: subprocess.Popen | None = None
        self._pending: list[int] = []

    def __enter__(self) -> "SignalForwarder":
        for signum in self._signals:
            try:
                self._previous[signum] = signal.signal(signum, self._handle)
            except (OSError, ValueError):
                # Not the main thread, or the platform refuses this signal.
                continue
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        for signum, previous in self._previous.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
        self._process = None
        return False

    def attach(self, process: subprocess.Popen) -> None:
        self._process = process
        queued, self._pending = self._pending, []
        for signum in queued:
            self._forward(signum)

    def _handle(self, signum: int, _frame: FrameType | None) -> None:
        if self._process is None:
            self._pending.append(signum)
            return
        self._forward(signum)

    def _forward(self, signum: int) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        LOGGER.debug(f"forwarding signal {signum} to pid {process.pid}", extra={"event": "signal_forwarded"})
        if os.name == "nt":
            # Ctrl-C already reaches every process attached to the console.
            if signum != signal.SIGINT:
                process.terminate()
            return
        try:
            process.send_signal(signum)
        except ProcessLookupError:
            pass


def exit_code_from(returncode: int) -> int:
    # Popen reports death-by-signal as -N; shells report it as 128 + N.
    if returncode < 0:
        return 128 - returncode
    return returncode


def _report(exc: BootstrapError) -> None:
    LOGGER.error(str(exc), extra={"event": "launch_failed"})
    if isinstance(exc, BinaryNotFound):
        LOGGER.error("Make sure the binary is installed for your platform: run kirha-mcp-install")


def run(args: Sequence[str], settings: BootstrapSettings | None = None) -> int:
    settings = settings or load_settings()
    try:
        target = current_target()
    except UnsupportedPlatform as exc:
        _report(exc)
        return EXIT_FAILURE

    path = binary_path(target, settings.install_dir)
    if not path.is_file():
        _report(BinaryNotFound(path, target.label))
        return EXIT_FAILURE

    with SignalForwarder() as forwarder:
        try:
            # stdin/stdout/stderr, environment and cwd are inherited.
            process = subprocess.Popen([str(path), *args])
        except FileNotFoundError:
            _report(BinaryNotFound(path, target.label))
            return EXIT_FAILURE
        except OSError as exc:
            _report(SpawnError(path, exc.strerror or str(exc)))
            return EXIT_FAILURE

        LOGGER.debug(f"spawned {path.name} pid={process.pid}", extra={"event": "child_spawned"})
        forwarder.attach(process)
        returncode = process.wait()

    return exit_code_from(returncode)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    settings = load_settings()
    configure_logging(
        log_dir=settings.log_dir if settings.log_to_file else None,
        console_level=logging.WARNING,
    )
    return run(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
