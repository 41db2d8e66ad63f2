"""
Logger value conversions: GPS coordinate normalisation and packed times.

VBOX files store coordinates in minutes, some firmware writes NMEA style
DDDMM.MMMM values, and others already write decimal degrees. Times may be
packed HHMMSS.ss values.
"""

import math
from typing import Optional

from lapsync import config

MAX_LATITUDE = 90.0
MAX_LONGITUDE = 180.0


def normalize_coordinate(value: float, is_lat: bool) -> Optional[float]:
    """
    Convert a raw logger coordinate to decimal degrees.

    Interpretations tried in order:
        1. Already decimal degrees (within the valid range)
        2. Total minutes (value / 60)
        3. Packed degrees-minutes DDDMM.MMMM with minutes < 60

    Args:
        value: Raw coordinate value
        is_lat: True for latitude (±90), False for longitude (±180)

    Returns:
        Decimal degrees, or None when the value is zero, not a number, or
        cannot be mapped into range under any interpretation
    """
    if value is None or math.isnan(value) or value == 0:
        return None

    max_valid = MAX_LATITUDE if is_lat else MAX_LONGITUDE
    magnitude = abs(value)

    if magnitude <= max_valid:
        return value

    as_minutes = value / 60.0
    if abs(as_minutes) <= max_valid:
        return as_minutes

    degrees = math.floor(magnitude / 100)
    minutes = magnitude % 100
    if minutes < 60:
        converted = math.copysign(degrees + minutes / 60.0, value)
        if abs(converted) <= max_valid:
            return converted

    return None


def parse_packed_time(value: float) -> float:
    """
    Unpack an HHMMSS.ss time to seconds of day.

    Values up to VBO_PACKED_TIME_THRESHOLD are taken as plain seconds.
    """
    if value > config.VBO_PACKED_TIME_THRESHOLD:
        hours = math.floor(value / 10000)
        minutes = math.floor((value % 10000) / 100)
        seconds = value % 100
        return hours * 3600 + minutes * 60 + seconds
    return value
