"""
lapsync - motorsport data logger parsing, lap detection and signal alignment.

Turns Bosch WinDarab ASCII and RaceLogic VBOX exports into per-lap channel
records, splits GPS streams at track lines, and lines up captures from
independent loggers.
"""

from lapsync.alignment.correlation import cross_correlate, find_time_offset
from lapsync.alignment.lap_matching import lap_durations, match_laps_by_duration
from lapsync.alignment.merge import available_channels, plan_alignment, project_channels
from lapsync.alignment.virtual_laps import build_virtual_laps
from lapsync.core.delta_calculator import calculate_derived_channels
from lapsync.core.lap_detector import extract_lap_telemetry, recalculate_laps, split_into_laps
from lapsync.data.models import (
    AlignmentPlan,
    AlignmentStrategy,
    Channel,
    CorrelationResult,
    DetectedLap,
    LapDuration,
    LapMatch,
    LapMatchResult,
    LapRecord,
    ParsedSession,
    SessionMetadata,
    TrackConfig,
    TrackLine,
)
from lapsync.exceptions import InvalidInputError, LapSyncError, UnsupportedFormatError
from lapsync.parsers import parse_bosch_export, parse_export, parse_vbo_export
from lapsync.utils.geometry import find_line_crossings
from lapsync.utils.sampling import interpolate_at, lttb, lttb_indices, resample

__version__ = '0.1.0'

__all__ = [
    'AlignmentPlan',
    'AlignmentStrategy',
    'Channel',
    'CorrelationResult',
    'DetectedLap',
    'InvalidInputError',
    'LapDuration',
    'LapMatch',
    'LapMatchResult',
    'LapRecord',
    'LapSyncError',
    'ParsedSession',
    'SessionMetadata',
    'TrackConfig',
    'TrackLine',
    'UnsupportedFormatError',
    'available_channels',
    'build_virtual_laps',
    'calculate_derived_channels',
    'cross_correlate',
    'extract_lap_telemetry',
    'find_line_crossings',
    'find_time_offset',
    'interpolate_at',
    'lap_durations',
    'lttb',
    'lttb_indices',
    'match_laps_by_duration',
    'parse_bosch_export',
    'parse_export',
    'parse_vbo_export',
    'plan_alignment',
    'project_channels',
    'recalculate_laps',
    'resample',
    'split_into_laps',
]
