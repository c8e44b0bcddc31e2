from __future__ import annotations

from apnspusher.apps.cli import run


if __name__ == "__main__":
    raise SystemExit(run())
