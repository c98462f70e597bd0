from __future__ import annotations

try:
    # Normal package import path.
    from .launcher import main
except ImportError:
    # Script/frozen entrypoint path.
    from kirha_bootstrap.launcher import main


if __name__ == "__main__":
    raise SystemExit(main())
