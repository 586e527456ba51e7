"""Unique temporary file allocation."""

from __future__ import annotations

import os
from pathlib import Path
import random
import tempfile

from metaharvest.harvest.errors import TempFileError

DEFAULT_ATTEMPTS = 100


def allocate_temp_path(
    prefix: str,
    suffix: str,
    temp_dir: str | Path | None = None,
    *,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Path:
    """Create an empty file named ``<prefix><pid><random><suffix>`` and return its path."""

    directory = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
    candidate = directory
    for _ in range(max(attempts, 1)):
        candidate = directory / f"{prefix}{os.getpid()}{random.randint(0, 2**31 - 1)}{suffix}"
        try:
            with candidate.open("x"):
                pass
        except FileExistsError:
            continue
        return candidate
    raise TempFileError(path=candidate, message=f"Could not create temp file after {attempts} attempts")
