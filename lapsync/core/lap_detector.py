"""
Finish-line lap detection over a complete GPS stream.

Splits a continuous telemetry stream into laps and sectors from the
configured track lines, and rebuilds a session's laps when the lines change.
"""

import logging
from typing import Dict, List, Mapping, Sequence

from lapsync import config
from lapsync.data.models import Channel, DetectedLap, LapRecord, TrackConfig
from lapsync.utils.geometry import find_line_crossings
from lapsync.utils.sampling import estimate_sample_rate

logger = logging.getLogger('lapsync.core.lap_detector')

Telemetry = Mapping[str, Sequence[float]]


def _whole_stream(time: Sequence[float]) -> List[DetectedLap]:
    end_idx = max(len(time) - 1, 0)
    return [DetectedLap(
        lap_number=1,
        start_idx=0,
        end_idx=end_idx,
        time_seconds=time[-1] if len(time) else 0.0,
    )]


def split_into_laps(telemetry: Telemetry, track_config: TrackConfig) -> List[DetectedLap]:
    """
    Split telemetry into laps at finish-line crossings.

    Args:
        telemetry: Channel name -> series; needs 'time', 'lat' and 'long'
        track_config: Finish line and optional sector lines

    Returns:
        One DetectedLap per pair of consecutive finish crossings. With no
        finish line, no GPS, or fewer than two crossings, the whole stream
        is returned as a single lap.
    """
    time = telemetry['time']
    lat = telemetry.get('lat')
    lng = telemetry.get('long')

    if track_config.finish_line is None or lat is None or lng is None or len(lat) == 0:
        return _whole_stream(time)

    finish_crossings = find_line_crossings(lat, lng, track_config.finish_line)
    if len(finish_crossings) < 2:
        logger.info("Found %d finish crossings, keeping stream as one lap", len(finish_crossings))
        return _whole_stream(time)

    s1_crossings = find_line_crossings(lat, lng, track_config.sector1)
    s2_crossings = find_line_crossings(lat, lng, track_config.sector2)

    laps = []
    for i in range(len(finish_crossings) - 1):
        start_idx = finish_crossings[i]
        end_idx = finish_crossings[i + 1]
        start_time = time[start_idx]
        end_time = time[end_idx]

        s1 = s2 = s3 = None
        s1_idx = next((idx for idx in s1_crossings if start_idx < idx < end_idx), None)
        if s1_idx is not None:
            s1 = time[s1_idx] - start_time
            s2_idx = next((idx for idx in s2_crossings if s1_idx < idx < end_idx), None)
            if s2_idx is not None:
                s2 = time[s2_idx] - time[s1_idx]
                s3 = end_time - time[s2_idx]

        laps.append(DetectedLap(
            lap_number=i + 1,
            start_idx=start_idx,
            end_idx=end_idx,
            time_seconds=end_time - start_time,
            s1=s1,
            s2=s2,
            s3=s3,
        ))

    return laps


def extract_lap_telemetry(telemetry: Telemetry, start_idx: int, end_idx: int,
                          lap_number: int = 1) -> LapRecord:
    """
    Slice every channel to [start_idx, end_idx] inclusive.

    Time is re-zeroed to the lap start. Distance is left as-is for the
    caller to re-zero. Names that are not well-known channels land in the
    record's auxiliary channels.
    """
    start_time = telemetry['time'][start_idx] if len(telemetry['time']) else 0.0

    channels: Dict[Channel, List[float]] = {}
    aux_channels: Dict[str, List[float]] = {}
    for name, series in telemetry.items():
        sliced = list(series[start_idx:end_idx + 1])
        channel = Channel.lookup(name)
        if channel is Channel.TIME:
            sliced = [t - start_time for t in sliced]
        if channel is None:
            aux_channels[name.lower()] = sliced
        else:
            channels[channel] = sliced

    channels.setdefault(Channel.DISTANCE, [])
    time = channels.get(Channel.TIME, [])
    return LapRecord(
        lap_number=lap_number,
        duration=time[-1] if time else 0.0,
        channels=channels,
        aux_channels=aux_channels,
    )


def stitch_laps(laps: Sequence[LapRecord]) -> Dict[str, List[float]]:
    """
    Join lap records back into one continuous stream.

    Each lap's time is offset to continue one sample period after the
    previous lap, and distance accumulates across laps. Auxiliary channels
    are carried only when every lap has them at full length.
    """
    stream: Dict[str, List[float]] = {}
    if not laps:
        return stream

    well_known = set(laps[0].channels)
    for lap in laps[1:]:
        well_known &= set(lap.channels)
    aux_names = [name for name in laps[0].aux_channels
                 if all(len(lap.aux_channels.get(name, ())) == lap.sample_count for lap in laps)]

    for channel in well_known:
        stream[channel.value] = []
    for name in aux_names:
        stream[name] = []

    time_offset = 0.0
    distance_offset = 0.0
    for lap in laps:
        period = 1.0 / estimate_sample_rate(lap.time)
        for channel in well_known:
            series = lap.channels[channel]
            if channel is Channel.TIME:
                series = [t + time_offset for t in series]
            elif channel is Channel.DISTANCE:
                series = [d + distance_offset for d in series]
            stream[channel.value].extend(series)
        for name in aux_names:
            stream[name].extend(lap.aux_channels[name])

        if lap.time:
            time_offset += lap.time[-1] + period
        if lap.distance:
            distance_offset += lap.distance[-1]

    return stream


def recalculate_laps(laps: Sequence[LapRecord], track_config: TrackConfig) -> List[LapRecord]:
    """
    Re-split a session's laps with a new track configuration.

    Laps are stitched into a continuous stream, split at the finish line,
    and re-extracted with time and distance re-zeroed. Sector times are
    attached, the out-lap and slow outliers are marked invalid.

    Args:
        laps: Existing lap records of one session, in order
        track_config: Track lines to split on

    Returns:
        New list of LapRecords numbered from 1
    """
    stream = stitch_laps(laps)
    if not stream.get('time'):
        logger.warning("No telemetry to recalculate")
        return []

    logger.info("Reconstructed %d samples from %d laps", len(stream['time']), len(laps))

    _correct_inverted_longitude(stream, track_config)

    detected = split_into_laps(stream, track_config)
    logger.info("Detected %d laps", len(detected))

    median = median_lap_time([lap.time_seconds for lap in detected])
    outlier_limit = median * config.OUTLIER_RATIO

    result = []
    for lap in detected:
        record = extract_lap_telemetry(stream, lap.start_idx, lap.end_idx, lap.lap_number)
        distance = record.distance
        if distance:
            start_distance = distance[0]
            record.channels[Channel.DISTANCE] = [d - start_distance for d in distance]

        is_outlap = lap.lap_number == 1
        is_outlier = median > 0 and lap.time_seconds > outlier_limit
        result.append(LapRecord(
            lap_number=lap.lap_number,
            duration=lap.time_seconds,
            channels=record.channels,
            aux_channels=record.aux_channels,
            sectors=(lap.s1, lap.s2, lap.s3),
            is_valid=not is_outlap and not is_outlier,
        ))

    return result


def _correct_inverted_longitude(stream: Dict[str, List[float]], track_config: TrackConfig):
    """Flip stored longitudes west when they sit in the wrong hemisphere for the finish line."""
    longs = stream.get('long')
    finish = track_config.finish_line
    if not longs or finish is None:
        return

    sample = longs[len(longs) // 2]
    if finish.lng < 0 < sample and abs(finish.lng - sample) > 100:
        logger.warning("Longitude inverted relative to finish line, correcting")
        stream['long'] = [-abs(v) for v in longs]


def median_lap_time(durations: Sequence[float]) -> float:
    """
    Median of the plausible lap durations, 0.0 when there are none.

    Durations outside VALID_LAP_MIN_S..VALID_LAP_MAX_S are ignored. With an
    even count the upper of the two middle values is used.
    """
    plausible = sorted(d for d in durations
                       if config.VALID_LAP_MIN_S < d < config.VALID_LAP_MAX_S)
    return plausible[len(plausible) // 2] if plausible else 0.0
