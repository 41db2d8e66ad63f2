"""
Cross-correlation time alignment between two independently captured signals.

Signals are put on a common grid and every lag in the search window is
scored by the Pearson coefficient over the samples both signals cover at
that lag. The per-lag sums come from scipy.signal.correlate so long
captures stay fast.
"""

import logging
import math
from typing import Sequence

import numpy as np
from scipy import signal as sp_signal

from lapsync import config
from lapsync.data.models import CorrelationResult
from lapsync.exceptions import InvalidInputError
from lapsync.utils.sampling import estimate_sample_rate, resample_array

logger = logging.getLogger('lapsync.alignment.correlation')

SCORE_TOLERANCE = 1e-9


def normalize_signal(values) -> np.ndarray:
    """
    Z-score normalise over non-zero samples.

    Zero marks "no data" on the correlation grid and stays zero. A signal
    with no spread normalises to all zeros.
    """
    x = np.asarray(values, dtype=float)
    mask = x != 0
    if not mask.any():
        return np.zeros_like(x)

    valid = x[mask]
    std = valid.std()
    if std < config.DEGENERATE_EPSILON:
        return np.zeros_like(x)

    out = np.zeros_like(x)
    out[mask] = (valid - valid.mean()) / std
    return out


def _lag_products(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """sum_i x[i + m] * y[i] for every m, indexed m + len(y) - 1."""
    return sp_signal.correlate(x, y, mode='full', method='auto')


def _overlap_pearson(x: np.ndarray, y: np.ndarray, mask_x: np.ndarray, mask_y: np.ndarray,
                     index: np.ndarray, min_count: int):
    """
    Pearson coefficient of x[i + m] against y[i] over positions where both are valid.

    Every sum is one full correlation, so all lags come out of a handful of
    FFTs. x and y must already be zero wherever their mask is zero.

    Returns:
        (scores, scored): scores is -1 wherever scored is False, that is
        where the overlap is below min_count or either side has no spread.
    """
    count = np.rint(_lag_products(mask_x, mask_y))[index]
    sum_x = _lag_products(x, mask_y)[index]
    sum_y = _lag_products(mask_x, y)[index]
    sum_xx = _lag_products(x * x, mask_y)[index]
    sum_yy = _lag_products(mask_x, y * y)[index]
    sum_xy = _lag_products(x, y)[index]

    safe = np.maximum(count, 1.0)
    cov = sum_xy - sum_x * sum_y / safe
    var_x = sum_xx - sum_x * sum_x / safe
    var_y = sum_yy - sum_y * sum_y / safe

    floor = config.DEGENERATE_EPSILON * safe
    scored = (count >= min_count) & (var_x > floor) & (var_y > floor)

    scores = np.full(len(index), -1.0)
    scores[scored] = cov[scored] / np.sqrt(var_x[scored] * var_y[scored])
    return np.clip(scores, -1.0, 1.0), scored


def _pick_lag(lags: np.ndarray, scores: np.ndarray) -> int:
    """
    Best-scoring lag with a deterministic tie-break.

    Near-equal scores prefer the smallest |lag|, and +lag over -lag.
    """
    best = scores.max()
    tied = lags[np.isclose(scores, best, rtol=0.0, atol=SCORE_TOLERANCE * max(1.0, abs(best)))]
    return int(min(tied, key=lambda lag: (abs(lag), lag < 0)))


def _check_signal(values: Sequence[float], time: Sequence[float], name: str):
    if len(values) == 0 or len(time) == 0:
        raise InvalidInputError(f"Signal {name} is empty")
    if len(values) != len(time):
        raise InvalidInputError(
            f"Signal {name} has {len(values)} values but {len(time)} timestamps"
        )


def cross_correlate(signal_a: Sequence[float], signal_b: Sequence[float],
                    time_a: Sequence[float], time_b: Sequence[float],
                    max_offset_seconds: float = config.CORRELATION_MAX_OFFSET_S) -> CorrelationResult:
    """
    Find the time offset between two signals on their own time bases.

    Both signals are resampled onto a shared grid at the higher of their
    sample rates, spanning both signals plus the search window on each
    side. Grid points outside a signal's range are treated as missing.
    Each lag needs CORRELATION_MIN_VALID overlapping samples and at least
    CORRELATION_MIN_OVERLAP_FRACTION of the shorter signal. Near-equal
    scores resolve to the smallest |lag|, positive first.

    Args:
        signal_a: Reference signal values
        signal_b: Signal to align
        time_a: Timestamps of signal_a (seconds)
        time_b: Timestamps of signal_b (seconds)
        max_offset_seconds: Search window (±seconds)

    Returns:
        CorrelationResult with A(t) ~= B(t + offset_seconds). Confidence is
        the best lag's overlap Pearson coefficient clamped to [0, 1].

    Raises:
        InvalidInputError: Empty signals or values/timestamps length mismatch
    """
    _check_signal(signal_a, time_a, 'A')
    _check_signal(signal_b, time_b, 'B')

    rate = max(estimate_sample_rate(time_a), estimate_sample_rate(time_b))
    period = 1.0 / rate

    start = min(time_a[0], time_b[0]) - max_offset_seconds
    end = max(time_a[-1], time_b[-1]) + max_offset_seconds
    n = int(math.ceil((end - start) / period)) + 1
    grid = start + np.arange(n) * period

    raw_a = resample_array(time_a, signal_a, grid, fill=0.0)
    raw_b = resample_array(time_b, signal_b, grid, fill=0.0)
    mask_a = (raw_a != 0).astype(float)
    mask_b = (raw_b != 0).astype(float)

    max_lag = min(int(math.ceil(max_offset_seconds * rate)), n - 1)
    lags = np.arange(-max_lag, max_lag + 1)

    min_count = max(
        config.CORRELATION_MIN_VALID,
        math.ceil(config.CORRELATION_MIN_OVERLAP_FRACTION * min(mask_a.sum(), mask_b.sum())),
    )
    scores, scored = _overlap_pearson(normalize_signal(raw_a), normalize_signal(raw_b),
                                      mask_a, mask_b, lags + n - 1, min_count)
    if not scored.any():
        logger.warning("No lag had %d overlapping samples with spread", min_count)
        return CorrelationResult(offset_seconds=0.0, confidence=0.0, lag_samples=0)

    lag = _pick_lag(lags, scores)
    best = float(scores[lag + max_lag])
    confidence = min(max(best, 0.0), 1.0)

    logger.debug("Best lag %d of ±%d at %.1f Hz, score %.3f", lag, max_lag, rate, best)
    return CorrelationResult(offset_seconds=-lag / rate, confidence=confidence, lag_samples=lag)


def find_time_offset(signal_a: Sequence[float], signal_b: Sequence[float],
                     sample_rate: float = config.DEFAULT_SAMPLE_RATE_HZ,
                     max_offset_seconds: float = config.LEGACY_MAX_OFFSET_S,
                     min_overlap_points: int = config.LEGACY_MIN_OVERLAP) -> CorrelationResult:
    """
    Offset between two signals already sampled on the same uniform grid.

    Mean-centred arrays are compared index against index; B[i + lag] pairs
    with A[i]. Summed covariance (not mean) is maximised so larger overlaps
    win. Lags whose overlap is shorter than min_overlap_points are skipped.

    Args:
        signal_a: Reference samples
        signal_b: Samples to align
        sample_rate: Grid rate of both signals (Hz)
        max_offset_seconds: Search window (±seconds)
        min_overlap_points: Minimum overlapping samples per lag

    Returns:
        CorrelationResult; positive offset_seconds means B lags A.
        Confidence is the Pearson coefficient over the overlap at the best
        lag, clamped to [0, 1].
    """
    if len(signal_a) == 0 or len(signal_b) == 0:
        raise InvalidInputError("Signals cannot be empty")

    raw_a = np.asarray(signal_a, dtype=float)
    raw_b = np.asarray(signal_b, dtype=float)
    a = raw_a - raw_a.mean()
    b = raw_b - raw_b.mean()
    n, m = len(a), len(b)

    max_lag = int(math.floor(max_offset_seconds * sample_rate))
    lags = np.arange(-max_lag, max_lag + 1)
    overlap = np.minimum(n, m - lags) - np.maximum(0, -lags)
    valid = overlap >= max(min_overlap_points, 1)
    if not valid.any():
        logger.warning("No lag within ±%d samples overlaps by %d points", max_lag, min_overlap_points)
        return CorrelationResult(offset_seconds=0.0, confidence=0.0, lag_samples=0)

    lags = lags[valid]
    # sum_i B[i + lag] * A[i]; lags beyond the arrays never reach here
    scores = _lag_products(b, a)[lags + n - 1]

    lag = _pick_lag(lags, scores)
    start = max(0, -lag)
    stop = min(n, m - lag)
    confidence = _pearson(raw_a[start:stop], raw_b[start + lag:stop + lag])

    return CorrelationResult(offset_seconds=lag / sample_rate, confidence=confidence, lag_samples=lag)


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson coefficient clamped to [0, 1], 0 for constant input."""
    if len(x) < 2:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denom = math.sqrt(float((dx * dx).sum()) * float((dy * dy).sum()))
    if denom < config.DEGENERATE_EPSILON:
        return 0.0
    return min(max(float((dx * dy).sum()) / denom, 0.0), 1.0)
