"""File helpers for the gate runner."""

from __future__ import annotations

import os
from pathlib import Path


def atomic_write_text(path: Path | str, text: str) -> Path:
    """Write *text* to *path* so readers never see a half-written file.

    The content goes to a sibling ``.tmp`` file first and is renamed over
    the target once flushed.  Missing parent directories are created.

    Returns:
        The resolved target path.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_name(target.name + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return target.resolve()
