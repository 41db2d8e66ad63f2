"""
Resampling and decimation primitives shared by every other component.

Linear interpolation onto a new time base, sample rate estimation, and
Largest-Triangle-Three-Buckets (LTTB) decimation for plotting.
"""

import math
from bisect import bisect_left
from typing import List, Optional, Sequence, TypeVar

import numpy as np

from lapsync import config
from lapsync.exceptions import InvalidInputError

P = TypeVar('P')


def _check_series(time_base: Sequence[float], series: Sequence[float]):
    if len(time_base) == 0 or len(series) == 0:
        raise InvalidInputError("Time base and series cannot be empty")
    if len(time_base) != len(series):
        raise InvalidInputError(
            f"Time base length {len(time_base)} does not match series length {len(series)}"
        )


def interpolate_at(series: Sequence[float], time_base: Sequence[float], t: float) -> float:
    """
    Value of a series at time t by linear interpolation.

    Args:
        series: Sample values
        time_base: Sorted sample times, same length as series
        t: Query time

    Returns:
        Boundary value outside the time base (no extrapolation), otherwise
        the linearly interpolated value.
    """
    _check_series(time_base, series)

    if t <= time_base[0]:
        return float(series[0])
    if t >= time_base[-1]:
        return float(series[-1])

    # time_base[left] < t <= time_base[right]
    right = bisect_left(time_base, t)
    left = right - 1

    t0, t1 = time_base[left], time_base[right]
    v0, v1 = series[left], series[right]
    if t1 - t0 < config.DEGENERATE_EPSILON:
        return float(v0)

    fraction = (t - t0) / (t1 - t0)
    return float(v0 + fraction * (v1 - v0))


def resample_array(time_base, series, new_time_base, fill: Optional[float] = None) -> np.ndarray:
    """
    Vectorised interpolate_at over every new time.

    Args:
        time_base: Sorted sample times
        series: Sample values
        new_time_base: Times to evaluate
        fill: Value returned outside the time base. None holds the
            boundary values instead.

    Returns:
        numpy array with one value per entry of new_time_base
    """
    _check_series(time_base, series)

    t = np.asarray(time_base, dtype=float)
    v = np.asarray(series, dtype=float)
    query = np.asarray(new_time_base, dtype=float)

    if len(t) == 1:
        result = np.full(query.shape, v[0])
    else:
        right = np.clip(np.searchsorted(t, query, side='left'), 1, len(t) - 1)
        left = right - 1
        t0, t1 = t[left], t[right]
        v0, v1 = v[left], v[right]
        width = t1 - t0
        degenerate = width < config.DEGENERATE_EPSILON
        fraction = np.where(degenerate, 0.0, (query - t0) / np.where(degenerate, 1.0, width))
        result = v0 + fraction * (v1 - v0)

    below = query <= t[0]
    above = query >= t[-1]
    if fill is None:
        result = np.where(below, v[0], result)
        result = np.where(above, v[-1], result)
    else:
        # Exact endpoints are inside the range
        result = np.where(query < t[0], fill, np.where(below, v[0], result))
        result = np.where(query > t[-1], fill, np.where(above, v[-1], result))
    return result


def resample(time_base: Sequence[float], series: Sequence[float],
             new_time_base: Sequence[float], fill: Optional[float] = None) -> List[float]:
    """
    Resample a series onto a new time base.

    Used to put differently sampled channels on a common grid before
    correlation, and to project a secondary channel onto a primary lap's
    timestamps.

    Returns:
        List of floats, one per entry of new_time_base
    """
    if len(new_time_base) == 0:
        return []
    return resample_array(time_base, series, new_time_base, fill).tolist()


def estimate_sample_rate(time: Sequence[float],
                         max_deltas: int = config.SAMPLE_RATE_ESTIMATE_DELTAS) -> float:
    """
    Estimate sample rate (Hz) from the mean of the first positive time deltas.

    Falls back to DEFAULT_SAMPLE_RATE_HZ when fewer than two samples or no
    positive delta is available.
    """
    if len(time) < 2:
        return config.DEFAULT_SAMPLE_RATE_HZ

    deltas = np.diff(np.asarray(time[:max_deltas + 1], dtype=float))
    deltas = deltas[deltas > 0]
    if len(deltas) == 0:
        return config.DEFAULT_SAMPLE_RATE_HZ

    return 1.0 / float(deltas.mean())


def lttb_indices(x: Sequence[float], y: Sequence[float], threshold: int) -> List[int]:
    """
    Largest-Triangle-Three-Buckets decimation.

    Based on the reference algorithm by Sveinn Steinarsson. Preserves the
    visual shape of a series while reducing it to threshold points. The
    first and last points are always kept.

    Args:
        x: Sample x values (e.g. time or distance)
        y: Sample y values
        threshold: Number of points to keep

    Returns:
        Indices of the selected points in ascending order
    """
    if len(x) != len(y):
        raise InvalidInputError("x and y must have the same length")
    if threshold < 0:
        raise InvalidInputError(f"Threshold must be >= 0, got {threshold}")

    n = len(x)
    if threshold >= n or threshold == 0:
        return list(range(n))
    if threshold < 3:
        return [0, n - 1]

    # Bucket size. Leave room for the first and last points
    every = (n - 2) / (threshold - 2)

    selected = [0]
    a = 0

    for i in range(threshold - 2):
        # Centroid of the next bucket
        avg_start = math.floor((i + 1) * every) + 1
        avg_end = min(math.floor((i + 2) * every) + 1, n)
        count = avg_end - avg_start
        avg_x = sum(x[avg_start:avg_end]) / count
        avg_y = sum(y[avg_start:avg_end]) / count

        # Current bucket
        range_start = math.floor(i * every) + 1
        range_end = math.floor((i + 1) * every) + 1

        ax, ay = x[a], y[a]
        max_area = -1.0
        next_a = range_start

        for j in range(range_start, range_end):
            area = abs((ax - avg_x) * (y[j] - ay) - (ax - x[j]) * (avg_y - ay)) * 0.5
            if area > max_area:
                max_area = area
                next_a = j

        selected.append(next_a)
        a = next_a

    selected.append(n - 1)
    return selected


def lttb(points: Sequence[P], threshold: int) -> List[P]:
    """
    LTTB-decimate a sequence of points.

    Points are indexable with x at [0] and y at [1], e.g. (x, y) tuples or
    longer rows carrying extra columns. The selected points are returned
    unchanged; the input is returned as-is when no decimation is needed.
    """
    if threshold >= len(points) or threshold == 0:
        return list(points)
    x = [p[0] for p in points]
    y = [p[1] for p in points]
    return [points[i] for i in lttb_indices(x, y, threshold)]
