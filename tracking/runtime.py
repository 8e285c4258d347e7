"""Runtime helpers for tracking how often functions execute."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Dict, Optional

_LOCK = threading.RLock()
_COUNTS: Dict[str, int] = {}


def _tracking_file() -> Optional[Path]:
    raw = os.getenv("FUNCTION_TRACKING_FILE")
    if not raw:
        return None
    return Path(raw)


def _load_counts() -> None:
    path = _tracking_file()
    if path is None or not path.exists():
        return

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError, TypeError):
        return

    if not isinstance(data, dict):
        return

    for name, raw_count in data.items():
        if not name:
            continue
        try:
            count = int(raw_count)
        except (TypeError, ValueError):
            continue
        _COUNTS[str(name)] = max(count, 0)


def t(func_name: str) -> None:
    """Record the provided function name each time it runs."""
    if not func_name:
        return

    with _LOCK:
        _COUNTS[func_name] = _COUNTS.get(func_name, 0) + 1


def counts() -> Dict[str, int]:
    """Return a copy of the call counts recorded so far."""
    with _LOCK:
        return dict(_COUNTS)


def reset() -> None:
    with _LOCK:
        _COUNTS.clear()


def flush(path: Optional[Path] = None) -> Optional[Path]:
    """Persist the in-memory counts atomically.

    Writes to ``path`` or to ``FUNCTION_TRACKING_FILE``; returns the file
    written, or ``None`` when no destination is configured.
    """
    target = path or _tracking_file()
    if target is None:
        return None

    with _LOCK:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Optional[Path] = None
        try:
            with NamedTemporaryFile(
                "w", encoding="utf-8", dir=target.parent, delete=False
            ) as handle:
                json.dump(_COUNTS, handle, sort_keys=True)
                handle.write("\n")
                handle.flush()
                tmp_path = Path(handle.name)

            tmp_path.replace(target)
        except OSError:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            raise
    return target


_load_counts()
