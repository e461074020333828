"""Helpers for test setup: find test files, write input fixtures."""

import logging
import re
from pathlib import Path
from typing import Optional

from decouple import config as env_config

from .errors import TesttxtFixtureError

logger = logging.getLogger(__name__)

TEST_FILE_SUFFIX = env_config("TESTTXT_SUFFIX", default=".t", cast=str)

# Marks start of a file: a line of dashes followed by a filename.
FILE_MARKER_PATTERN = re.compile(r"^-+[ ]*\S+[ ]*\n", re.MULTILINE)


def get_files(data_dir: str | Path, suffix: Optional[str] = None) -> list[Path]:
    """Sorted test files in data_dir."""
    suffix = suffix or TEST_FILE_SUFFIX
    return sorted(
        p for p in Path(data_dir).iterdir() if p.is_file() and p.name.endswith(suffix)
    )


def _write(path: Path, data: str):
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data, encoding="utf-8")
    except OSError as exc:
        raise TesttxtFixtureError(f"can't write '{path}': {exc}") from exc
    logger.debug(f"Wrote {len(data)} characters to {path}")


def prepare_in_dir(in_dir: str | Path, single: str, text: str) -> Path:
    """Create in_dir and fill it with files from text.

    Parts of text are introduced by single lines of dashes followed by a
    filename, e.g. ``--- sub/a.txt``. Without any marker the whole text
    goes to a file named ``single``. The text ``NONE`` stands for empty
    input.

    Returns:
        Path of ``single`` if it was used, otherwise in_dir
    """
    in_dir = Path(in_dir)
    if text == "NONE":
        text = ""
    markers = list(FILE_MARKER_PATTERN.finditer(text))

    if not markers:
        path = in_dir / single
        _write(path, text)
        return path
    if markers[0].start() != 0:
        raise TesttxtFixtureError("missing file marker in first line")

    for i, m in enumerate(markers):
        name = m.group(0).strip().strip("- ")
        end = markers[i + 1].start() if i + 1 < len(markers) else len(text)
        _write(in_dir / name, text[m.end() : end])
    return in_dir
