"""
Lap matching by duration similarity.

Two loggers running on the same car see the same sequence of lap times, but
one may have started recording a lap or two later. Sliding one duration
sequence over the other finds that shift.
"""

import logging
from typing import List, Sequence

from lapsync import config
from lapsync.data.models import LapDuration, LapMatch, LapMatchResult, LapRecord

logger = logging.getLogger('lapsync.alignment.lap_matching')


def lap_durations(laps: Sequence[LapRecord]) -> List[LapDuration]:
    """Duration of each lap taken from its final time sample (0 when empty)."""
    return [LapDuration(lap.lap_number, lap.time[-1] if lap.time else 0.0) for lap in laps]


def _pairs(primary: Sequence[LapDuration], secondary: Sequence[LapDuration],
           shift: int, tolerance: float):
    """(i, j, diff) for every pair within tolerance at a shift."""
    for i in range(len(primary)):
        j = i - shift
        if j < 0 or j >= len(secondary):
            continue
        diff = abs(primary[i].duration - secondary[j].duration)
        if diff <= tolerance:
            yield i, j, diff


def match_laps_by_duration(primary: Sequence[LapDuration],
                           secondary: Sequence[LapDuration],
                           tolerance_seconds: float = config.DURATION_TOLERANCE_S) -> LapMatchResult:
    """
    Match secondary laps to primary laps by duration.

    Every shift k in [-(nS-1), nP-1] pairs primary lap i with secondary lap
    i - k. The winning shift has the most pairs within tolerance, then the
    lowest summed squared error, then the smallest |k| (positive first).

    Args:
        primary: Primary lap durations, in session order
        secondary: Secondary lap durations, in session order
        tolerance_seconds: Max duration difference for a pair

    Returns:
        LapMatchResult. Shift is 0 when no pair is within tolerance.
    """
    n_primary, n_secondary = len(primary), len(secondary)

    best_shift = 0
    best_key = (0, 0.0, 0, False)
    for shift in range(-(n_secondary - 1), n_primary):
        diffs = [diff for _, _, diff in _pairs(primary, secondary, shift, tolerance_seconds)]
        if not diffs:
            continue
        key = (-len(diffs), sum(d * d for d in diffs), abs(shift), shift < 0)
        if best_key[0] == 0 or key < best_key:
            best_key = key
            best_shift = shift

    matches = [
        LapMatch(
            primary_lap_index=i,
            secondary_lap_index=j,
            primary_lap_number=primary[i].lap_number,
            secondary_lap_number=secondary[j].lap_number,
            primary_duration=primary[i].duration,
            secondary_duration=secondary[j].duration,
            duration_diff=diff,
        )
        for i, j, diff in _pairs(primary, secondary, best_shift, tolerance_seconds)
    ] if best_key[0] else []

    matched_primary = {m.primary_lap_index for m in matches}
    matched_secondary = {m.secondary_lap_index for m in matches}

    logger.info("Lap matching: %d matched, shift=%d", len(matches), best_shift)
    for m in matches:
        logger.debug("  P%d (%.1fs) <-> S%d (%.1fs) diff=%.3fs",
                     m.primary_lap_number, m.primary_duration,
                     m.secondary_lap_number, m.secondary_duration, m.duration_diff)

    return LapMatchResult(
        matches=matches,
        unmatched_primary=[i for i in range(n_primary) if i not in matched_primary],
        unmatched_secondary=[j for j in range(n_secondary) if j not in matched_secondary],
        shift=best_shift,
    )
