"""
Virtual laps recovered from a logger's own lap timer channel.

Loggers without lap markers still record a running lap time. Each reset of
that timer starts a new lap, which lets a single long capture be matched
lap by lap against a primary session.
"""

import logging
from typing import Dict, List, Optional, Tuple

from lapsync import config
from lapsync.data.models import Channel, LapRecord

logger = logging.getLogger('lapsync.alignment.virtual_laps')


def _segments(laptime: List[float], time: List[float]) -> List[Tuple[int, int, float]]:
    """(start, end, declared duration) for each run between timer resets."""
    segments = []
    start = 0

    def close(end: int):
        duration = laptime[end] if laptime[end] > 0 else time[end] - time[start]
        segments.append((start, end, duration))

    for i in range(1, len(laptime)):
        if laptime[i] < laptime[i - 1] - config.LAPTIME_RESET_DROP_S or laptime[i] < 0:
            close(i - 1)
            start = i
    close(len(laptime) - 1)
    return segments


def _slice(series: Dict, start: int, end: int, length: int) -> Dict:
    return {name: values[start:end + 1] for name, values in series.items() if len(values) == length}


def build_virtual_laps(lap: LapRecord, laptime_channel: str = 'laptime') -> Optional[List[LapRecord]]:
    """
    Split a single long lap at lap timer resets.

    A reset is a drop of more than LAPTIME_RESET_DROP_S or a negative
    timer value. Each virtual lap's duration is the timer's final value,
    or the elapsed time when that is not positive. Segments without a
    positive duration are dropped.

    Args:
        lap: Lap carrying the timer channel
        laptime_channel: Name of the lap timer channel

    Returns:
        Virtual laps numbered from 1 with time and distance re-zeroed, or
        None when the channel is missing or not aligned with time
    """
    laptime = lap.get(laptime_channel)
    time = lap.time
    if laptime is None or not time or len(laptime) != len(time):
        return None

    length = len(time)
    virtual = []
    for start, end, duration in _segments(laptime, time):
        if duration <= 0:
            continue

        channels = _slice(lap.channels, start, end, length)
        for channel in (Channel.TIME, Channel.DISTANCE):
            series = channels.get(channel)
            if series:
                first = series[0]
                channels[channel] = [v - first for v in series]
        channels.setdefault(Channel.DISTANCE, [])

        virtual.append(LapRecord(
            lap_number=len(virtual) + 1,
            duration=duration,
            channels=channels,
            aux_channels=_slice(lap.aux_channels, start, end, length),
        ))

    logger.debug("Built %d virtual laps from '%s'", len(virtual), laptime_channel)
    return virtual
