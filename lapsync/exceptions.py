"""Custom exceptions for the lapsync telemetry core."""


class LapSyncError(Exception):
    """Base exception for all lapsync errors."""


class InvalidInputError(LapSyncError, ValueError):
    """Raised when signal or parameter inputs cannot be processed.

    Examples: empty signal arrays, time/value arrays of different lengths,
    a negative decimation threshold.
    """


class UnsupportedFormatError(LapSyncError):
    """Raised when an export cannot be matched to a known logger format."""
