"""Process health reporting."""

from __future__ import annotations

import os
import resource
import sys
import time
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .config import ServiceConfig

_STATM = Path("/proc/self/statm")


def memory_usage() -> Dict[str, int]:
    """Return the resident set size of the current process in bytes."""

    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform != "darwin":
        # ru_maxrss is reported in kilobytes everywhere except macOS.
        max_rss *= 1024

    rss = max_rss
    with suppress(OSError, ValueError, IndexError):
        pages = int(_STATM.read_text(encoding="ascii").split()[1])
        rss = pages * os.sysconf("SC_PAGE_SIZE")
    return {"rss": rss, "maxRss": max_rss}


def build_health_report(
    config: ServiceConfig,
    started_at: float,
    *,
    now: Optional[float] = None,
) -> Dict[str, object]:
    """Assemble the payload served from ``/health``.

    ``started_at`` and ``now`` are :func:`time.monotonic` readings.
    """

    current = time.monotonic() if now is None else now
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": max(0.0, current - started_at),
        "environment": config.environment,
        "version": config.version,
        "memory": memory_usage(),
    }


__all__ = ["build_health_report", "memory_usage"]
