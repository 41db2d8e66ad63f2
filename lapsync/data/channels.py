"""
Channel role tables and per-lap accumulation for the format parsers.

Role resolution is kept in explicit, ordered tables so it can be audited
and unit tested independently of the parsers.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from lapsync.data.models import Channel, LapRecord


# Bosch export: first header whose name starts with the prefix (case-sensitive)
BOSCH_CHANNEL_PREFIXES: Tuple[Tuple[Channel, str], ...] = (
    (Channel.TIME, 'laptime'),
    (Channel.DISTANCE, 'xdist'),
    (Channel.SPEED, 'speed'),
    (Channel.RPM, 'nmot'),
    (Channel.THROTTLE, 'aps'),
    (Channel.BRAKE, 'pbrake_f'),
    (Channel.GEAR, 'gear'),
    (Channel.STEERING, 'SteeringAngle'),
)

# Bosch GPS columns are matched exactly (a 'lat' prefix would catch 'latacc')
BOSCH_GPS_CANDIDATES: Tuple[Tuple[Channel, Tuple[str, ...]], ...] = (
    (Channel.LAT, ('lat', 'latitude', 'gps_lat', 'gps_latitude')),
    (Channel.LONG, ('long', 'lon', 'lng', 'longitude', 'gps_long', 'gps_lon', 'gps_longitude')),
)

# VBOX export: role -> accepted lower-cased column names
VBO_COLUMN_ROLES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('time', ('time', 't')),
    ('lat', ('lat', 'latitude', 'poslat')),
    ('long', ('long', 'lng', 'longitude', 'poslong')),
    ('velocity', ('velocity', 'speed', 'gps_speed', 'v', 'gpsspeed')),
    ('rpm', ('rpm', 'engine_speed', 'enginespeed', 'revs', 'nmot', 'engine_rpm',
             'enginespd', 'eng_spd', 'enspd', 'ecurpm', 'engine', 'nengine')),
    ('throttle', ('throttle', 'throttle_position', 'throttleposition', 'pedal_position',
                  'pedalposition', 'pps', 'aps', 'accel_pedal', 'accelerator', 'thrpos',
                  'tp', 'thr', 'pedal', 'acc', 'accel', 'racceleratorpedal')),
    ('brake', ('brake', 'brake_position', 'brakeposition', 'brake_pressure', 'brakepressure',
               'bpres', 'b_pres', 'b_pressure', 'pbrake_f', 'pbrake', 'brkpos', 'bp', 'brk',
               'brakepress')),
    ('steer', ('steer', 'steering', 'steer_angle', 'steerangle', 'steering_angle',
               'steeringangle', 'swa', 'handwheel_angle', 'wheel_angle', 'sw_angle', 'sa',
               'str', 'steer_ang')),
    ('lap', ('lap-number', 'lap_number', 'lap')),
    ('gear', ('gear', 'current_gear', 'selected_gear', 'gear_no', 'ngear')),
    ('avitime', ('avitime', 'avi_time', 'video_time', 'videotime', 'synctime', 'avisynctime')),
)

# VBOX roles that feed a well-known channel directly
VBO_ROLE_CHANNELS: Dict[str, Channel] = {
    'velocity': Channel.SPEED,
    'rpm': Channel.RPM,
    'throttle': Channel.THROTTLE,
    'brake': Channel.BRAKE,
    'steer': Channel.STEERING,
    'gear': Channel.GEAR,
    'avitime': Channel.AVITIME,
}


def find_prefix_column(headers: Sequence[str], prefix: str) -> Optional[int]:
    """Index of the first header starting with prefix, or None."""
    for idx, name in enumerate(headers):
        if name.startswith(prefix):
            return idx
    return None


def find_candidate_column(headers: Sequence[str], candidates: Iterable[str]) -> Optional[int]:
    """Index of the first header (in header order) whose lower-cased name is a candidate."""
    accepted = set(candidates)
    for idx, name in enumerate(headers):
        if name.lower() in accepted:
            return idx
    return None


def resolve_bosch_channels(headers: Sequence[str]) -> Dict[Channel, int]:
    """Map well-known channels to Bosch header indices (missing channels omitted)."""
    mapping = {}
    for channel, prefix in BOSCH_CHANNEL_PREFIXES:
        idx = find_prefix_column(headers, prefix)
        if idx is not None:
            mapping[channel] = idx
    for channel, candidates in BOSCH_GPS_CANDIDATES:
        idx = find_candidate_column(headers, candidates)
        if idx is not None:
            mapping[channel] = idx
    return mapping


def resolve_vbo_roles(columns: Sequence[str]) -> Dict[str, int]:
    """Map VBOX roles to column indices (missing roles omitted)."""
    mapping = {}
    for role, candidates in VBO_COLUMN_ROLES:
        idx = find_candidate_column(columns, candidates)
        if idx is not None:
            mapping[role] = idx
    return mapping


class LapBuilder:
    """
    Accumulates samples for one lap until the parser cuts it.

    A builder is finalized exactly once; its buffers become the emitted
    LapRecord and the parser continues with a fresh builder, so the current
    lap never shares storage with a lap that has already been handed out.
    """

    def __init__(self, channels: Iterable[Channel], aux_names: Iterable[str] = ()):
        self._channels: Dict[Channel, List[float]] = {c: [] for c in channels}
        self._channels.setdefault(Channel.TIME, [])
        self._channels.setdefault(Channel.DISTANCE, [])
        self._aux: Dict[str, List[float]] = {name: [] for name in aux_names}
        self._finalized = False

    def __len__(self) -> int:
        return len(self._channels[Channel.TIME])

    def fresh(self) -> 'LapBuilder':
        """Empty builder with the same channel layout."""
        return LapBuilder(self._channels.keys(), self._aux.keys())

    def append(self, values: Dict[Channel, float], aux: Optional[Dict[str, float]] = None):
        """Add one sample; channels missing from values are zero-filled."""
        if self._finalized:
            raise RuntimeError("LapBuilder already finalized")
        for channel, series in self._channels.items():
            series.append(values.get(channel, 0.0))
        aux = aux or {}
        for name, series in self._aux.items():
            series.append(aux.get(name, 0.0))

    def elapsed(self) -> float:
        """Time covered by the samples collected so far."""
        time = self._channels[Channel.TIME]
        return time[-1] - time[0] if time else 0.0

    def finalize(self, lap_number: int, duration: Optional[float] = None) -> LapRecord:
        """
        Freeze the collected samples into a LapRecord.

        Time and distance are re-zeroed to the first sample. Duration
        defaults to the elapsed time.
        """
        if self._finalized:
            raise RuntimeError("LapBuilder already finalized")
        self._finalized = True

        if duration is None:
            duration = self.elapsed()

        for channel in (Channel.TIME, Channel.DISTANCE):
            series = self._channels[channel]
            if series:
                start = series[0]
                self._channels[channel] = [v - start for v in series]

        return LapRecord(
            lap_number=lap_number,
            duration=duration,
            channels=self._channels,
            aux_channels=self._aux,
        )
