"""Snapshot Assembler."""

from __future__ import annotations

import time
from typing import Optional

from cogload.protocols import RawMeasurements, ScoreResult, Snapshot


def now_millis() -> int:
    """Wall-clock time in milliseconds."""
    return time.time_ns() // 1_000_000


def assemble_snapshot(
    measurements: RawMeasurements,
    score: ScoreResult,
    source_url: str,
    captured_at_millis: Optional[int] = None,
) -> Snapshot:
    """Bundle one recomputation's results into an immutable snapshot."""
    return Snapshot(
        measurements=measurements,
        score=score,
        source_url=source_url,
        captured_at_millis=now_millis() if captured_at_millis is None else captured_at_millis,
    )
