from __future__ import annotations

import logging
import re
from pathlib import Path


log = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)", re.ASCII)


def parse_version_counter(text: str) -> int:
    """Parse VERSION file content into a non-negative build number.

    Leading digits are honored and trailing content is ignored, so ``"12\\n"``
    and ``"12abc"`` both read as 12. Content without leading digits or with a
    negative value is rejected.
    """
    match = _LEADING_INT.match(text)
    if match is None:
        raise ValueError(f"VERSION content is not a number: {text.strip()[:40]!r}")
    value = int(match.group(1))
    if value < 0:
        raise ValueError(f"VERSION counter cannot be negative: {value}")
    trailing = text[match.end():].strip()
    if trailing:
        log.warning("Ignoring trailing content after VERSION counter %d: %r", value, trailing[:40])
    return value


def read_version_counter(version_file: Path) -> int:
    if not version_file.exists():
        raise FileNotFoundError(f"VERSION file not found: {version_file}")

    # Accept optional UTF-8 BOM left behind by Windows editors.
    with version_file.open("r", encoding="utf-8-sig") as fh:
        text = fh.read()
    return parse_version_counter(text)


def stage_version_counter(version_file: Path, value: int) -> Path:
    if value < 0:
        raise ValueError(f"VERSION counter cannot be negative: {value}")
    tmp = version_file.with_name(version_file.name + ".tmp")
    tmp.write_text(str(value), encoding="utf-8")
    return tmp


def write_version_counter(version_file: Path, value: int) -> None:
    tmp = stage_version_counter(version_file, value)
    tmp.replace(version_file)
