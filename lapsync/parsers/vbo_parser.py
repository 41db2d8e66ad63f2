"""
VBO file parser for RaceLogic VBOX data.

Reads the text of a .vbo export and converts it to per-lap channel records.

Sections used:
    [header]        channel descriptions (and the file creation date)
    [column names]  short column names, one per data field
    [laptiming]     start/finish line as "Start lon1 lat1 lon2 lat2"
    [data]          whitespace separated samples
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from lapsync import config
from lapsync.data.channels import VBO_ROLE_CHANNELS, LapBuilder, resolve_vbo_roles
from lapsync.data.models import Channel, LapRecord, ParsedSession, SessionMetadata
from lapsync.utils.coordinates import normalize_coordinate, parse_packed_time
from lapsync.utils.geometry import segments_intersect

logger = logging.getLogger('lapsync.parsers.vbo')

DATE_PATTERN = re.compile(r'File created on\s+(\d{2}/\d{2}/\d{4})')

LatLng = Tuple[float, float]


class VBOParser:
    """Parser for RaceLogic .vbo GPS log files."""

    def __init__(self, content: str):
        self.columns: List[str] = []
        self.metadata: Dict[str, str] = {}
        self.date: Optional[str] = None
        self.rows: List[List[float]] = []
        self._raw_start: Optional[List[float]] = None
        self._scan(content)

        self.roles = resolve_vbo_roles(self.columns)

    def _scan(self, content: str):
        """Single pass over the file collecting sections."""
        section = ''
        malformed = 0

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            if line.startswith('['):
                section = line.lower()
                continue

            if section == '[data]':
                try:
                    values = [float(v) for v in line.split()]
                except ValueError:
                    malformed += 1
                    continue
                if len(values) >= len(self.columns):
                    self.rows.append(values)
                else:
                    malformed += 1
            elif section == '[column names]':
                self.columns.extend(line.split())
            elif section == '[laptiming]':
                if line.startswith('Start'):
                    parts = line[len('Start'):].split()
                    try:
                        start = [float(p) for p in parts[:4]]
                    except ValueError:
                        continue
                    if len(start) == 4:
                        self._raw_start = start
            else:
                date_match = DATE_PATTERN.search(line)
                if date_match:
                    d, m, y = date_match.group(1).split('/')
                    self.date = f"{y}-{m}-{d}"
                elif section != '[header]':
                    # Metadata like "circuit Donington National"
                    parts = line.split(maxsplit=1)
                    if len(parts) == 2:
                        self.metadata[parts[0].lower()] = parts[1]

        if malformed:
            logger.debug("Skipped %d malformed data rows", malformed)

    def get_metadata(self) -> Dict[str, str]:
        """Return circuit/session metadata."""
        return self.metadata

    def start_line(self) -> Optional[Tuple[LatLng, LatLng]]:
        """
        Start/finish line endpoints in decimal degrees.

        The [laptiming] values use the same units as the data columns, so
        they are normalised the same way.
        """
        if self._raw_start is None:
            return None

        lon1, lat1, lon2, lat2 = self._raw_start
        p1 = (normalize_coordinate(lat1, True), normalize_coordinate(lon1, False))
        p2 = (normalize_coordinate(lat2, True), normalize_coordinate(lon2, False))
        if None in p1 or None in p2:
            logger.warning("Start line coordinates out of range, ignoring")
            return None
        return p1, p2

    def _trim_range(self) -> Tuple[int, int]:
        """Rows between the first and last moving sample, padded."""
        start, end = 0, len(self.rows) - 1
        velocity = self.roles.get('velocity')
        if velocity is None:
            return start, end

        padding = config.TRIM_PADDING_SAMPLES
        threshold = config.TRIM_SPEED_THRESHOLD_KMH
        for i, row in enumerate(self.rows):
            if row[velocity] > threshold:
                start = max(0, i - padding)
                break
        for i in range(len(self.rows) - 1, -1, -1):
            if self.rows[i][velocity] > threshold:
                end = min(len(self.rows) - 1, i + padding)
                break
        return start, end

    def _gps_track(self, rows: List[List[float]]) -> Tuple[List[Optional[LatLng]], Optional[List[LatLng]]]:
        """
        Normalise every sample's coordinates.

        Returns:
            (raw fixes with None for invalid samples, held track or None
            when there is no valid fix at all)
        """
        lat_idx = self.roles.get('lat')
        long_idx = self.roles.get('long')
        if lat_idx is None or long_idx is None:
            return [None] * len(rows), None

        fixes: List[Optional[LatLng]] = []
        for row in rows:
            lat = normalize_coordinate(row[lat_idx], True)
            lng = normalize_coordinate(row[long_idx], False)
            fixes.append((lat, lng) if lat is not None and lng is not None else None)

        valid = sum(1 for f in fixes if f is not None)
        if not valid:
            logger.warning("No valid GPS fix in %d samples", len(rows))
            return fixes, None

        invalid = len(fixes) - valid
        if invalid:
            logger.warning("GPS validation: %d valid, %d invalid (%.1f%% valid)",
                           valid, invalid, 100.0 * valid / len(fixes))

        # Invalid samples hold the last valid fix; leading ones take the first
        held = []
        last = next(f for f in fixes if f is not None)
        for fix in fixes:
            if fix is not None:
                last = fix
            held.append(last)
        return fixes, held

    def _time_at(self, rows: List[List[float]], i: int) -> float:
        time_idx = self.roles.get('time')
        if time_idx is None:
            return i * config.VBO_DEFAULT_SAMPLE_PERIOD
        return parse_packed_time(rows[i][time_idx])

    def parse(self) -> ParsedSession:
        """
        Convert the data section to lap records.

        Returns:
            ParsedSession; no laps when the file has no data rows
        """
        metadata = SessionMetadata(
            track=self.get_metadata().get('circuit', 'Unknown (VBOX)'),
            session_type='Log',
            date=self.date,
            columns=list(self.columns),
            channel_mapping=self._channel_mapping(),
        )

        if not self.rows:
            logger.warning("VBOX export has no data rows")
            return ParsedSession(metadata=metadata, laps=[])

        start, end = self._trim_range()
        rows = self.rows[start:end + 1]
        logger.debug("Trimmed to rows %d-%d of %d", start, end, len(self.rows))

        fixes, held = self._gps_track(rows)
        lap_idx = self.roles.get('lap')
        velocity_idx = self.roles.get('velocity')
        gate = self.start_line()
        use_geometric = lap_idx is None and gate is not None and held is not None

        claimed = {idx for role, idx in self.roles.items() if role != 'lap'}
        aux_columns = [(idx, name.lower()) for idx, name in enumerate(self.columns)
                       if idx not in claimed]

        channels = [Channel.SPEED, Channel.RPM, Channel.THROTTLE, Channel.BRAKE,
                    Channel.STEERING, Channel.GEAR, Channel.AVITIME]
        if held is not None:
            channels += [Channel.LAT, Channel.LONG]
        builder = LapBuilder(channels, [name for _, name in aux_columns])

        laps: List[LapRecord] = []
        initial_time = self._time_at(rows, 0)
        last_lap_num = 1.0
        distance = 0.0

        for i, row in enumerate(rows):
            abs_time = self._time_at(rows, i)

            new_lap = False
            if lap_idx is not None:
                if row[lap_idx] != last_lap_num:
                    new_lap = True
                    last_lap_num = row[lap_idx]
            elif use_geometric and i > 0:
                prev_fix, fix = fixes[i - 1], fixes[i]
                if (prev_fix is not None and fix is not None
                        and segments_intersect(prev_fix, fix, gate[0], gate[1])
                        and builder.elapsed() > config.GEOMETRIC_MIN_LAP_SECONDS):
                    new_lap = True

            if new_lap and len(builder):
                laps.append(builder.finalize(len(laps) + 1))
                builder = builder.fresh()

            speed = row[velocity_idx] if velocity_idx is not None else 0.0
            dt = abs_time - self._time_at(rows, i - 1) if i > 0 else 0.0
            distance += speed / 3.6 * max(0.0, dt)

            sample = {channel: row[self.roles[role]]
                      for role, channel in VBO_ROLE_CHANNELS.items() if role in self.roles}
            sample[Channel.TIME] = abs_time - initial_time
            sample[Channel.DISTANCE] = distance
            if held is not None:
                sample[Channel.LAT], sample[Channel.LONG] = held[i]

            builder.append(sample, {name: row[idx] for idx, name in aux_columns})

        if len(builder):
            laps.append(builder.finalize(len(laps) + 1))

        logger.info("VBOX export parsed: %d laps (%s splitting)", len(laps),
                    'lap column' if lap_idx is not None else
                    'start line' if use_geometric else 'no')
        return ParsedSession(metadata=metadata, laps=laps)

    def _channel_mapping(self) -> Dict[str, str]:
        mapping = {}
        for role in ('time', 'lat', 'long'):
            if role in self.roles:
                mapping[role] = self.columns[self.roles[role]]
        for role, channel in VBO_ROLE_CHANNELS.items():
            if role in self.roles:
                mapping[channel.value] = self.columns[self.roles[role]]
        return mapping


def parse_vbo_export(content: str) -> ParsedSession:
    """Parse the text of a RaceLogic .vbo export."""
    return VBOParser(content).parse()
