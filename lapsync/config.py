"""
Configuration file for the lapsync telemetry core.

Contains defaults for GPS gates, format parsing, lap matching and signal
alignment. Every public function takes these as keyword defaults, so callers
can override them per call.
"""

# =============================================================================
# Geometry Settings
# =============================================================================

EARTH_RADIUS_M = 6371000.0       # Mean Earth radius (meters)

GATE_HALF_WIDTH_M = 50.0         # Gate extends this far each side of the line point
                                 # 50 m each side = 100 m virtual gate

TRACK_BEARING_LOOKAROUND = 5     # Samples before/after used to estimate track bearing

METERS_PER_DEGREE = 111000.0     # Rough equirectangular scale for nearest-point search


# =============================================================================
# Bosch (WinDarab ASCII) Export Settings
# =============================================================================

BOSCH_HEADER_SENTINEL = 'xtime'  # Header row starts with this column name

BOSCH_LAPTIME_RESET_DROP = 1.0   # Lap timer must fall by more than this (s)
BOSCH_LAPTIME_RESET_MIN = 10.0   # ...having previously exceeded this (s)
                                 # Ignores jitter at the very start of a lap


# =============================================================================
# VBOX (.vbo) Export Settings
# =============================================================================

VBO_PACKED_TIME_THRESHOLD = 2400.0  # Raw time above this is HHMMSS.ss packed

VBO_DEFAULT_SAMPLE_PERIOD = 0.1     # Seconds between rows when no time column

TRIM_SPEED_THRESHOLD_KMH = 10.0     # Vehicle counts as moving above this speed
TRIM_PADDING_SAMPLES = 20           # Rows kept either side of the moving window

GEOMETRIC_MIN_LAP_SECONDS = 20.0    # Minimum lap length when splitting on the
                                     # start line (prevents GPS-noise micro laps)


# =============================================================================
# Lap Matching Settings
# =============================================================================

DURATION_TOLERANCE_S = 3.0          # Max lap duration difference to pair laps
VIRTUAL_LAP_TOLERANCE_S = 5.0       # Looser tolerance for laptime-derived laps

LAPTIME_RESET_DROP_S = 1.0          # Virtual lap cut when laptime falls by more

# Lap validity (recalculated sessions)
VALID_LAP_MIN_S = 20.0              # Plausible lap window used for the median
VALID_LAP_MAX_S = 600.0
OUTLIER_RATIO = 1.15                # Laps slower than median * ratio are invalid


# =============================================================================
# Signal Alignment Settings
# =============================================================================

DEFAULT_SAMPLE_RATE_HZ = 10.0       # Fallback when rate cannot be estimated
SAMPLE_RATE_ESTIMATE_DELTAS = 100   # Time deltas averaged to estimate the rate

CORRELATION_MAX_OFFSET_S = 60.0     # Search window for cross_correlate (±s)
CORRELATION_MIN_VALID = 2           # Fewer overlapping samples scores -1
CORRELATION_MIN_OVERLAP_FRACTION = 0.25  # Lags must also overlap this share of
                                         # the shorter signal's valid samples
DEGENERATE_EPSILON = 1e-10          # Std / bracket width treated as zero

LEGACY_MAX_OFFSET_S = 600.0         # find_time_offset default window (±s)
LEGACY_MIN_OVERLAP = 10             # find_time_offset default overlap guard

PER_LAP_RESAMPLE_STEP_S = 0.2       # Grid for per-lap (virtual lap) refinement
PER_LAP_MIN_OVERLAP = 30

GLOBAL_RESAMPLE_STEP_S = 0.1        # Grid for the global fallback offset
GLOBAL_MAX_OFFSET_S = 1200.0
GLOBAL_MIN_OVERLAP = 50
GLOBAL_MIN_COMMON_SAMPLES = 50      # Skip the fallback below this many samples
