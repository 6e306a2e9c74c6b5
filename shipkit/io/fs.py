"""shipkit.io.fs

Atomic, stable filesystem writers.

Run manifests, the LATEST pointer and the run counter are all read back by
later runs. An interrupted write must never leave a half-written file behind,
so every writer here goes through a sibling temp file and ``os.replace``.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``text``; readers see the old or the new file, never a mix."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def dumps_stable(data: Any, *, indent: int = 2) -> str:
    """JSON with sorted keys and a trailing newline, so reruns diff cleanly."""
    return json.dumps(data, indent=indent, sort_keys=True, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, data: Any, *, indent: int = 2) -> None:
    write_text_atomic(path, dumps_stable(data, indent=indent))


def read_json(path: Path, *, encoding: str = "utf-8") -> Any:
    return json.loads(Path(path).read_text(encoding=encoding))
