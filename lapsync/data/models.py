"""
Core data structures for the lapsync telemetry core.

Unit Conventions
----------------
All measurements in this module use these units unless otherwise noted:

- Time: seconds (float, lap-relative unless stated)
- Distance: metres
- Speed: kilometres per hour (km/h), as recorded by the loggers
- Angles: degrees (0-360 for bearings, 0=North, 90=East)
- Coordinates: decimal degrees (WGS84)

Channel arrays are plain Python lists of floats so records can be handed to
a storage layer without conversion.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Channel(Enum):
    """Well-known channel names shared by both logger formats."""
    TIME = "time"
    DISTANCE = "distance"
    LAT = "lat"
    LONG = "long"
    SPEED = "speed"
    RPM = "rpm"
    THROTTLE = "throttle"
    BRAKE = "brake"
    GEAR = "gear"
    STEERING = "steering"
    AVITIME = "avitime"

    @classmethod
    def lookup(cls, name: str) -> Optional['Channel']:
        """Return the channel for a name, or None for auxiliary names."""
        try:
            return cls(name.lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class TrackLine:
    """
    Finish or sector line definition.

    A point on track plus the direction of travel. A gate segment
    perpendicular to the bearing is synthesised around the point for
    crossing detection.

    Attributes:
        lat: Latitude of the line point in decimal degrees.
        lng: Longitude of the line point in decimal degrees.
        bearing: Direction of travel at the point in degrees (0=North).
    """
    lat: float
    lng: float
    bearing: float


@dataclass(frozen=True)
class TrackConfig:
    """Finish line plus optional sector lines for a track."""
    finish_line: Optional[TrackLine] = None
    sector1: Optional[TrackLine] = None
    sector2: Optional[TrackLine] = None


@dataclass(frozen=True)
class DetectedLap:
    """
    Lap boundaries found by finish-line crossing detection.

    Attributes:
        lap_number: Sequential lap number (1-based).
        start_idx: Sample index of the lap start (first sample after crossing).
        end_idx: Sample index of the lap end (first sample after next crossing).
        time_seconds: Lap time in seconds.
        s1, s2, s3: Sector times in seconds, None when a sector crossing
            was not found (later sectors are then None as well).
    """
    lap_number: int
    start_idx: int
    end_idx: int
    time_seconds: float
    s1: Optional[float] = None
    s2: Optional[float] = None
    s3: Optional[float] = None


@dataclass(frozen=True)
class LapRecord:
    """
    One lap of per-channel telemetry.

    Attributes:
        lap_number: Sequential lap number (1-based) within the session.
        duration: Lap time in seconds.
        channels: Well-known channels. ``time`` and ``distance`` are always
            present and re-zeroed at the lap start.
        aux_channels: Additional channels keyed by lower-cased source column
            name. May be shorter than the well-known channels.
        sectors: (s1, s2, s3) sector times when computed from track lines.
        is_valid: False for out-laps and outliers in recalculated sessions.
    """
    lap_number: int
    duration: float
    channels: Dict[Channel, List[float]]
    aux_channels: Dict[str, List[float]] = field(default_factory=dict)
    sectors: Optional[Tuple[Optional[float], Optional[float], Optional[float]]] = None
    is_valid: bool = True

    @property
    def time(self) -> List[float]:
        return self.channels.get(Channel.TIME, [])

    @property
    def distance(self) -> List[float]:
        return self.channels.get(Channel.DISTANCE, [])

    @property
    def sample_count(self) -> int:
        return len(self.time)

    def get(self, name) -> Optional[List[float]]:
        """
        Look up a channel by Channel member or name.

        Well-known names resolve to ``channels``, anything else to
        ``aux_channels`` (case-insensitive).
        """
        if isinstance(name, Channel):
            return self.channels.get(name)
        channel = Channel.lookup(name)
        if channel is not None and channel in self.channels:
            return self.channels[channel]
        return self.aux_channels.get(name.lower())

    def channel_names(self) -> List[str]:
        """All channel names, well-known first then auxiliary."""
        names = [channel.value for channel in self.channels]
        names.extend(name for name in self.aux_channels if name not in names)
        return names


@dataclass(frozen=True)
class SessionMetadata:
    """
    Descriptive data recovered from an export header.

    Attributes:
        track: Track name ("Unknown" when not recorded).
        session_type: Session type, e.g. "Race", "Qualifying", "Log".
        date: ISO date (YYYY-MM-DD) or None when the file carries none.
        columns: Raw column names in file order.
        channel_mapping: Well-known channel name -> source column name.
    """
    track: str = 'Unknown'
    session_type: str = 'Unknown'
    date: Optional[str] = None
    columns: List[str] = field(default_factory=list)
    channel_mapping: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedSession:
    """Metadata plus per-lap records produced by a single parse call."""
    metadata: SessionMetadata
    laps: List[LapRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CorrelationResult:
    """
    Outcome of a time-offset search between two signals.

    Attributes:
        offset_seconds: Positive when signal B is delayed relative to A,
            i.e. A(t) ~= B(t + offset).
        confidence: Pearson-style coefficient at the best lag, clamped to
            [0, 1]. 0 when no lag had enough overlapping data.
        lag_samples: Winning lag in samples of the comparison grid.
    """
    offset_seconds: float
    confidence: float
    lag_samples: int


@dataclass(frozen=True)
class LapDuration:
    """Lap number and duration pair used for duration matching."""
    lap_number: int
    duration: float


@dataclass(frozen=True)
class LapMatch:
    """A primary lap paired with a secondary lap by duration."""
    primary_lap_index: int
    secondary_lap_index: int
    primary_lap_number: int
    secondary_lap_number: int
    primary_duration: float
    secondary_duration: float
    duration_diff: float


@dataclass(frozen=True)
class LapMatchResult:
    """
    Result of duration-shift matching.

    Attributes:
        matches: Paired laps for the winning shift.
        unmatched_primary: Primary lap indices without a partner.
        unmatched_secondary: Secondary lap indices without a partner.
        shift: Winning shift k (primary i pairs with secondary i - k).
    """
    matches: List[LapMatch]
    unmatched_primary: List[int]
    unmatched_secondary: List[int]
    shift: int


class AlignmentStrategy(Enum):
    """How a secondary capture was lined up with the primary session."""
    DURATION = "duration"
    VIRTUAL_LAPS = "virtual_laps"
    GLOBAL_CORRELATION = "global_correlation"
    NONE = "none"


@dataclass(frozen=True)
class AlignmentPlan:
    """
    Everything a merge workflow needs to import secondary channels.

    Attributes:
        strategy: Strategy that produced the matches.
        match_result: Lap pairing between primary and secondary laps.
        secondary_laps: Secondary laps the match indices refer to (virtual
            laps when the VIRTUAL_LAPS strategy was used).
        global_offset_seconds: Offset applied to every pair without a
            per-lap offset.
        per_lap_offsets: Primary lap number -> offset in seconds.
        lap_start_seconds: Primary lap number -> where that lap starts on a
            single secondary capture spanning several primary laps, before
            the offset is applied.
    """
    strategy: AlignmentStrategy
    match_result: LapMatchResult
    secondary_laps: List[LapRecord]
    global_offset_seconds: float = 0.0
    per_lap_offsets: Dict[int, float] = field(default_factory=dict)
    lap_start_seconds: Dict[int, float] = field(default_factory=dict)

    def offset_for(self, primary_lap_number: int) -> float:
        """Offset to remove from the secondary time base for a primary lap."""
        return self.per_lap_offsets.get(primary_lap_number, self.global_offset_seconds)

    def secondary_shift(self, primary_lap_number: int) -> float:
        """Secondary time of the primary lap's zero: lap start plus offset."""
        start = self.lap_start_seconds.get(primary_lap_number, 0.0)
        return start + self.offset_for(primary_lap_number)
