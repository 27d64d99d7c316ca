from __future__ import annotations

from lexagent.core.concurrency import CancellationToken

__all__ = ["CancellationToken"]
