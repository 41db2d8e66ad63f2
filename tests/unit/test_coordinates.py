"""
Unit tests for logger coordinate and time conversions.
"""

import math

import pytest

from lapsync.utils.coordinates import normalize_coordinate, parse_packed_time


class TestNormalizeCoordinate:
    """Tests for decimal / minutes / DDDMM coordinate detection."""

    @pytest.mark.unit
    def test_decimal_degrees_unchanged(self):
        """Test in-range values pass through."""
        assert normalize_coordinate(51.5, True) == 51.5
        assert normalize_coordinate(-0.1278, False) == -0.1278

    @pytest.mark.unit
    def test_total_minutes(self):
        """Test VBOX minute values are divided by 60."""
        assert normalize_coordinate(3090.0, True) == pytest.approx(51.5)
        assert normalize_coordinate(-358.284, False) == pytest.approx(-5.9714)

    @pytest.mark.unit
    def test_packed_degrees_minutes(self):
        """Test NMEA-style DDDMM.MMMM values."""
        # 5130.0 / 60 = 85.5 is a valid latitude, so use a longitude that isn't
        result = normalize_coordinate(17030.0, False)
        assert result == pytest.approx(170.5)

    @pytest.mark.unit
    def test_packed_sign_preserved(self):
        """Test sign survives DDDMM conversion."""
        assert normalize_coordinate(-17030.0, False) == pytest.approx(-170.5)

    @pytest.mark.unit
    def test_packed_minutes_over_sixty_rejected(self):
        """Test DDDMM with minutes >= 60 is not a coordinate."""
        assert normalize_coordinate(17075.0, False) is None

    @pytest.mark.unit
    def test_zero_rejected(self):
        """Test zero is treated as no fix."""
        assert normalize_coordinate(0.0, True) is None

    @pytest.mark.unit
    def test_nan_rejected(self):
        """Test NaN is treated as no fix."""
        assert normalize_coordinate(math.nan, False) is None

    @pytest.mark.unit
    def test_unmappable_rejected(self):
        """Test values out of range under every interpretation."""
        assert normalize_coordinate(99999999.0, True) is None

    @pytest.mark.unit
    def test_latitude_range_stricter(self):
        """Test 120 is a longitude but not a latitude."""
        assert normalize_coordinate(120.0, False) == 120.0
        assert normalize_coordinate(120.0, True) == pytest.approx(2.0)


class TestParsePackedTime:
    """Tests for HHMMSS.ss time unpacking."""

    @pytest.mark.unit
    def test_packed_time(self):
        """Test 14:58:58.8 unpacks to seconds of day."""
        assert parse_packed_time(145858.8) == pytest.approx(14 * 3600 + 58 * 60 + 58.8)

    @pytest.mark.unit
    def test_plain_seconds_unchanged(self):
        """Test values up to the threshold are plain seconds."""
        assert parse_packed_time(123.4) == 123.4
        assert parse_packed_time(2400.0) == 2400.0
