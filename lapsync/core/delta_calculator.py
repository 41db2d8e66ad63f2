"""
Delta calculator - lap time comparison against a reference lap.

Compares a target lap against a reference lap at equal track distance and
produces derived channels for plotting.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from lapsync import config
from lapsync.data.models import LapRecord
from lapsync.exceptions import InvalidInputError

logger = logging.getLogger('lapsync.core.delta_calculator')


def value_at_distance(dist: float, distance: Sequence[float], values: Sequence[float],
                      hint: int = 0) -> Tuple[float, int]:
    """
    Value of a channel at a track distance.

    Searches forward from hint, so walking a lap in distance order visits
    each reference sample once.

    Args:
        dist: Track distance (meters)
        distance: Reference distance channel (non-decreasing)
        values: Reference channel to read
        hint: Index to start searching from

    Returns:
        (interpolated value, bracket index to use as the next hint)
    """
    i = hint
    while i < len(distance) - 1 and distance[i + 1] < dist:
        i += 1

    if dist <= distance[0]:
        return values[0], 0
    if i >= len(distance) - 1:
        return values[-1], len(distance) - 1

    d0, d1 = distance[i], distance[i + 1]
    if d1 - d0 < config.DEGENERATE_EPSILON:
        return values[i], i
    fraction = (dist - d0) / (d1 - d0)
    return values[i] + fraction * (values[i + 1] - values[i]), i


class DeltaCalculator:
    """Calculate time delta vs a reference lap at equal distance."""

    def __init__(self):
        self.reference_lap: Optional[LapRecord] = None

    def set_reference_lap(self, lap: Optional[LapRecord]):
        """
        Set reference lap for delta calculations.

        Args:
            lap: Reference lap with time and distance channels, or None to clear
        """
        if lap is not None and (not lap.time or not lap.distance):
            raise InvalidInputError("Reference lap must have time and distance")
        if lap is not None and len(lap.time) != len(lap.distance):
            raise InvalidInputError("Reference lap time and distance lengths differ")
        self.reference_lap = lap

    def variance(self, target: LapRecord) -> List[float]:
        """
        Time lost (positive) or gained (negative) at each target sample.

        Returns zeros when no reference is set.
        """
        time, distance = target.time, target.distance
        count = min(len(time), len(distance))
        if self.reference_lap is None:
            return [0.0] * count

        ref_time = self.reference_lap.time
        ref_distance = self.reference_lap.distance

        variance = []
        hint = 0
        for i in range(count):
            ref_elapsed, hint = value_at_distance(distance[i], ref_distance, ref_time, hint)
            variance.append(time[i] - ref_elapsed)
        return variance


def calculate_derived_channels(target: LapRecord,
                               reference: Optional[LapRecord] = None) -> Dict[str, List[float]]:
    """
    Derived channels of a lap relative to a reference lap.

    Args:
        target: Lap to analyse
        reference: Lap to compare against, None for no comparison

    Returns:
        {'variance': [...]}, or {} when the target has no time or distance
    """
    if not target.time or not target.distance:
        return {}

    if reference is not None and (not reference.time or not reference.distance):
        logger.debug("Reference lap %d has no time/distance, variance is zero", reference.lap_number)
        reference = None

    calculator = DeltaCalculator()
    calculator.set_reference_lap(reference)
    return {'variance': calculator.variance(target)}
