"""
Merge planning: line up a secondary capture with a primary session.

Strategies, tried in order:
    1. Lap duration matching
    2. Virtual laps from the secondary's lap timer, with per-lap offsets
    3. Global speed cross-correlation over the first lap
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from lapsync import config
from lapsync.alignment.correlation import find_time_offset
from lapsync.alignment.lap_matching import lap_durations, match_laps_by_duration
from lapsync.alignment.virtual_laps import build_virtual_laps
from lapsync.data.models import (
    AlignmentPlan,
    AlignmentStrategy,
    Channel,
    LapDuration,
    LapMatch,
    LapMatchResult,
    LapRecord,
    ParsedSession,
)
from lapsync.utils.geometry import path_distance
from lapsync.utils.sampling import resample, resample_array

logger = logging.getLogger('lapsync.alignment.merge')

STRUCTURAL_CHANNELS = (Channel.TIME.value, Channel.DISTANCE.value)


def derive_speed(time: Sequence[float], distance: Sequence[float]) -> List[float]:
    """
    Speed in km/h from distance over time.

    Samples with no time step repeat the previous speed. Returns [] when
    there are fewer than two samples or the lengths differ.
    """
    if len(time) < 2 or len(distance) != len(time):
        return []

    speed = [0.0]
    for i in range(1, len(time)):
        dt = time[i] - time[i - 1]
        dd = distance[i] - distance[i - 1]
        speed.append(dd / dt * 3.6 if dt > 0 else speed[-1])
    return speed


def lap_speed(lap: LapRecord) -> List[float]:
    """
    Recorded speed, or speed derived from distance when missing or all zero.

    Laps without a distance channel fall back to the distance along their
    GPS path.
    """
    speed = lap.get(Channel.SPEED)
    if speed and len(speed) == lap.sample_count and any(speed):
        return speed

    distance = lap.distance
    lat = lap.get(Channel.LAT)
    lng = lap.get(Channel.LONG)
    if not distance and lat and lng and len(lat) == len(lng) == lap.sample_count:
        distance = path_distance(lat, lng)
    return derive_speed(lap.time, distance)



def _uniform_speed(lap: LapRecord, step: float, duration: float) -> Optional[np.ndarray]:
    speed = lap_speed(lap)
    if not speed:
        return None
    grid = np.arange(max(1, int(math.floor(duration / step)))) * step
    return resample_array(lap.time, speed, grid)


def _no_alignment(result: LapMatchResult, secondary_laps: List[LapRecord]) -> AlignmentPlan:
    return AlignmentPlan(
        strategy=AlignmentStrategy.NONE,
        match_result=result,
        secondary_laps=secondary_laps,
    )


def _pair(primary_index: int, primary: LapRecord,
          secondary_index: int, secondary: LapRecord) -> LapMatch:
    p_duration = primary.time[-1] if primary.time else 0.0
    s_duration = secondary.time[-1] if secondary.time else 0.0
    return LapMatch(
        primary_lap_index=primary_index,
        secondary_lap_index=secondary_index,
        primary_lap_number=primary.lap_number,
        secondary_lap_number=secondary.lap_number,
        primary_duration=p_duration,
        secondary_duration=s_duration,
        duration_diff=abs(p_duration - s_duration),
    )


def _plan_virtual_laps(primary_laps: Sequence[LapRecord], virtual: List[LapRecord]) -> AlignmentPlan:
    """Match virtual laps by declared duration and refine each pair's offset."""
    durations = [LapDuration(v.lap_number, v.duration) for v in virtual]
    result = match_laps_by_duration(lap_durations(primary_laps), durations,
                                    config.VIRTUAL_LAP_TOLERANCE_S)

    step = config.PER_LAP_RESAMPLE_STEP_S
    offsets: Dict[int, float] = {}
    for match in result.matches:
        primary = primary_laps[match.primary_lap_index]
        lap = virtual[match.secondary_lap_index]
        if not primary.time or not lap.time:
            continue

        p_speed = _uniform_speed(primary, step, primary.time[-1])
        v_speed = _uniform_speed(lap, step, lap.time[-1])
        if p_speed is None or v_speed is None:
            logger.warning("No speed for primary lap %d, skipping offset", match.primary_lap_number)
            continue

        offset = find_time_offset(p_speed, v_speed, 1.0 / step, lap.time[-1],
                                  config.PER_LAP_MIN_OVERLAP)
        offsets[match.primary_lap_number] = offset.offset_seconds
        logger.debug("Per-lap offset (virtual) P%d: %.3fs", match.primary_lap_number,
                     offset.offset_seconds)

    return AlignmentPlan(
        strategy=AlignmentStrategy.VIRTUAL_LAPS,
        match_result=result,
        secondary_laps=virtual,
        per_lap_offsets=offsets,
    )


def _lap_starts(primary_laps: Sequence[LapRecord], origin_index: int) -> Dict[int, float]:
    """Start of each primary lap relative to the origin lap, summing lap end times."""
    elapsed = 0.0
    starts = {}
    for lap in primary_laps:
        starts[lap.lap_number] = elapsed
        if lap.time:
            elapsed += lap.time[-1]
    origin = starts[primary_laps[origin_index].lap_number]
    return {number: start - origin for number, start in starts.items()}


def _plan_global(primary_laps: Sequence[LapRecord], primary_index: int,
                 secondary_laps: List[LapRecord], secondary_index: int,
                 empty: LapMatchResult) -> AlignmentPlan:
    """Correlate the first laps' speed and apply one offset to the pairing."""
    primary = primary_laps[primary_index]
    secondary = secondary_laps[secondary_index]

    step = config.GLOBAL_RESAMPLE_STEP_S
    overlap = min(primary.time[-1], secondary.time[-1])
    points = int(math.floor(overlap / step))
    p_speed = lap_speed(primary)
    s_speed = secondary.get(Channel.SPEED)

    if points <= config.GLOBAL_MIN_COMMON_SAMPLES or not p_speed:
        logger.warning("Fallback skipped: insufficient overlap points (%d)", points)
        return _no_alignment(empty, secondary_laps)

    grid = np.arange(points) * step
    p_res = resample_array(primary.time, p_speed, grid)
    s_res = resample_array(secondary.time, s_speed, grid)
    offset = find_time_offset(p_res, s_res, 1.0 / step, config.GLOBAL_MAX_OFFSET_S,
                              config.GLOBAL_MIN_OVERLAP).offset_seconds
    logger.info("Fallback cross-correlation offset %.3fs", offset)

    lap_starts: Dict[int, float] = {}
    if len(secondary_laps) == 1 and len(primary_laps) > 1:
        # One long secondary capture covers every primary lap
        matches = [_pair(i, lap, secondary_index, secondary) for i, lap in enumerate(primary_laps)]
        unmatched_primary = []
        lap_starts = _lap_starts(primary_laps, primary_index)
    else:
        matches = [_pair(primary_index, primary, secondary_index, secondary)]
        unmatched_primary = [i for i in range(len(primary_laps)) if i != primary_index]

    result = LapMatchResult(
        matches=matches,
        unmatched_primary=unmatched_primary,
        unmatched_secondary=[j for j in range(len(secondary_laps)) if j != secondary_index],
        shift=0,
    )
    return AlignmentPlan(
        strategy=AlignmentStrategy.GLOBAL_CORRELATION,
        match_result=result,
        secondary_laps=secondary_laps,
        global_offset_seconds=offset,
        lap_start_seconds=lap_starts,
    )


def plan_alignment(primary_laps: Sequence[LapRecord], secondary: ParsedSession,
                   tolerance_seconds: float = config.DURATION_TOLERANCE_S,
                   laptime_channel: str = 'laptime') -> AlignmentPlan:
    """
    Decide how secondary laps line up with the primary session.

    Args:
        primary_laps: Laps of the session being enriched, in order
        secondary: Freshly parsed secondary export
        tolerance_seconds: Duration matching tolerance
        laptime_channel: Secondary lap timer channel used for virtual laps

    Returns:
        AlignmentPlan; strategy NONE with no matches when nothing lines up
    """
    secondary_laps = list(secondary.laps)
    result = match_laps_by_duration(lap_durations(primary_laps), lap_durations(secondary_laps),
                                    tolerance_seconds)
    if result.matches:
        return AlignmentPlan(
            strategy=AlignmentStrategy.DURATION,
            match_result=result,
            secondary_laps=secondary_laps,
        )

    primary_index = next((i for i, lap in enumerate(primary_laps) if lap.time), None)
    secondary_index = next((j for j, lap in enumerate(secondary_laps)
                            if lap.time and lap.get(Channel.SPEED)), None)
    if primary_index is None or secondary_index is None:
        logger.warning("No laps with time and speed to correlate")
        return _no_alignment(result, secondary_laps)

    if len(secondary_laps) == 1:
        virtual = build_virtual_laps(secondary_laps[secondary_index], laptime_channel)
        if virtual:
            logger.info("Matching %d virtual laps from '%s'", len(virtual), laptime_channel)
            return _plan_virtual_laps(primary_laps, virtual)

    return _plan_global(primary_laps, primary_index, secondary_laps, secondary_index, result)


def available_channels(laps: Sequence[LapRecord]) -> List[str]:
    """Importable channel names of a session (everything but time and distance)."""
    if not laps:
        return []
    return [name for name in laps[0].channel_names() if name not in STRUCTURAL_CHANNELS]


def project_channels(plan: AlignmentPlan, primary_laps: Sequence[LapRecord],
                     channels: Optional[Sequence[str]] = None) -> Dict[int, Dict[str, List[float]]]:
    """
    Resample secondary channels onto each matched primary lap's timestamps.

    The secondary time base is shifted by the lap's offset, plus the lap's
    start when one secondary capture spans several laps, before resampling.
    Values are held at the boundaries.

    Args:
        plan: Result of plan_alignment
        primary_laps: The primary laps plan_alignment was given
        channels: Channel names to import (default: every available channel)

    Returns:
        Primary lap number -> channel name -> values at the primary timestamps
    """
    if channels is None:
        channels = available_channels(plan.secondary_laps)

    projected: Dict[int, Dict[str, List[float]]] = {}
    for match in plan.match_result.matches:
        if match.secondary_lap_index >= len(plan.secondary_laps):
            logger.warning("Invalid secondary lap index %d, skipping", match.secondary_lap_index)
            continue

        primary = primary_laps[match.primary_lap_index]
        secondary = plan.secondary_laps[match.secondary_lap_index]
        if not primary.time or not secondary.time:
            continue

        shift = plan.secondary_shift(match.primary_lap_number)
        shifted = [t - shift for t in secondary.time]

        lap_channels = {}
        for name in channels:
            values = secondary.get(name)
            if not values or len(values) != len(shifted):
                continue
            lap_channels[name] = resample(shifted, values, primary.time)
        projected[match.primary_lap_number] = lap_channels

    logger.info("Projected %d channels onto %d laps", len(channels), len(projected))
    return projected
