from __future__ import annotations

import sys
from pathlib import Path


def _prepend_path(path: Path) -> None:
    if not path.exists():
        return
    p = str(path)
    if p not in sys.path:
        sys.path.insert(0, p)


def main() -> int:
    _prepend_path(Path(__file__).resolve().parent / "src")

    from buildbump.cli import main as bump_main

    return int(bump_main())


if __name__ == "__main__":
    raise SystemExit(main())
