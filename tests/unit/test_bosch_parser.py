"""
Unit tests for the Bosch WinDarab ASCII export parser.
"""

import logging

import pytest

from lapsync.data.models import Channel
from lapsync.parsers.bosch_parser import parse_bosch_export
from tests.fixtures.sample_exports import BOSCH_HEADER, bosch_export


class TestBoschMetadata:
    """Tests for metadata recovered from comment lines."""

    @pytest.mark.unit
    def test_track_type_date(self, bosch_text):
        """Test source file path gives track, session type and date."""
        meta = parse_bosch_export(bosch_text).metadata

        assert meta.track == 'Silverstone'
        assert meta.session_type == 'Race'
        assert meta.date == '2023-05-14'

    @pytest.mark.unit
    def test_columns_drop_units(self, bosch_text):
        """Test bracketed unit tokens are not columns."""
        meta = parse_bosch_export(bosch_text).metadata
        assert meta.columns == ['xtime', 'laptime', 'xdist', 'speed', 'nmot', 'latacc']

    @pytest.mark.unit
    def test_channel_mapping(self, bosch_text):
        """Test well-known channels report their source column."""
        mapping = parse_bosch_export(bosch_text).metadata.channel_mapping
        assert mapping == {'time': 'laptime', 'distance': 'xdist', 'speed': 'speed', 'rpm': 'nmot'}

    @pytest.mark.unit
    def test_defaults_without_source_line(self):
        """Test unknown track and no date without a source comment."""
        text = "\n".join([BOSCH_HEADER, "0.0 0.0 0.0 0.0 0 0.0"])
        meta = parse_bosch_export(text).metadata
        assert meta.track == 'Unknown'
        assert meta.session_type == 'Unknown'
        assert meta.date is None


class TestBoschLaps:
    """Tests for lap splitting on lap timer resets."""

    @pytest.mark.unit
    def test_lap_count_and_durations(self, bosch_text):
        """Test each timer reset ends a lap with its final timer value."""
        laps = parse_bosch_export(bosch_text).laps

        assert [lap.lap_number for lap in laps] == [1, 2, 3]
        assert [lap.duration for lap in laps] == pytest.approx([30.0, 31.0, 5.0])
        assert [lap.sample_count for lap in laps] == [61, 63, 11]

    @pytest.mark.unit
    def test_time_and_distance_rezeroed(self, bosch_text):
        """Test each lap starts at zero time and distance."""
        lap = parse_bosch_export(bosch_text).laps[1]

        assert lap.time[0] == 0.0
        assert lap.time[-1] == pytest.approx(31.0)
        assert lap.distance[0] == 0.0
        assert lap.distance[1] == pytest.approx(25.0)

    @pytest.mark.unit
    def test_only_present_channels(self, bosch_text):
        """Test only channels found in the header appear on the lap."""
        lap = parse_bosch_export(bosch_text).laps[0]

        assert lap.get(Channel.RPM) == [7000.0] * 61
        assert lap.get(Channel.THROTTLE) is None
        assert lap.get(Channel.LAT) is None

    @pytest.mark.unit
    def test_raw_columns_as_aux(self, bosch_text):
        """Test every header column is also kept lower-cased."""
        lap = parse_bosch_export(bosch_text).laps[0]

        assert set(lap.aux_channels) == {'xtime', 'laptime', 'xdist', 'speed', 'nmot', 'latacc'}
        assert lap.get('latacc') == [1.2] * 61
        assert len(lap.aux_channels['xtime']) == lap.sample_count

    @pytest.mark.unit
    def test_small_timer_drop_ignored(self):
        """Test timer jitter under a second does not cut a lap."""
        rows = [BOSCH_HEADER]
        for i, laptime in enumerate([10.0, 11.0, 12.0, 11.5, 12.5, 13.0]):
            rows.append(f"{i:.1f} {laptime:.1f} {i * 10.0:.1f} 100 5000 0.5")
        laps = parse_bosch_export("\n".join(rows)).laps
        assert len(laps) == 1

    @pytest.mark.unit
    def test_reset_before_ten_seconds_ignored(self):
        """Test a reset early in a lap is not a new lap."""
        rows = [BOSCH_HEADER]
        for i, laptime in enumerate([0.0, 4.0, 8.0, 0.0, 4.0]):
            rows.append(f"{i:.1f} {laptime:.1f} {i * 10.0:.1f} 100 5000 0.5")
        laps = parse_bosch_export("\n".join(rows)).laps
        assert len(laps) == 1

    @pytest.mark.unit
    def test_gps_columns(self):
        """Test latitude and longitude columns are captured exactly."""
        rows = ["xtime laptime lat long latacc"]
        for i in range(5):
            rows.append(f"{i:.1f} {i:.1f} 52.07{i} -1.01{i} 0.3")
        lap = parse_bosch_export("\n".join(rows)).laps[0]

        assert lap.get(Channel.LAT)[0] == pytest.approx(52.070)
        assert lap.get(Channel.LONG)[-1] == pytest.approx(-1.014)


class TestBoschMalformedInput:
    """Tests for tolerance of damaged exports."""

    @pytest.mark.unit
    def test_bad_rows(self):
        """Test short rows and bad lap times are skipped, other bad values zeroed."""
        text = bosch_export(extra_rows=[
            "1.0 2.0",
            "40.0 abc 2000.0 100 5000 1.0",
            "40.5 5.5 2025.0 100 5000 x",
        ])
        last = parse_bosch_export(text).laps[-1]

        assert last.sample_count == 12
        assert last.duration == pytest.approx(5.5)
        assert last.get('latacc')[-1] == 0.0

    @pytest.mark.unit
    def test_empty_file(self, caplog):
        """Test empty content gives no laps and a warning."""
        with caplog.at_level(logging.WARNING, logger='lapsync.parsers.bosch'):
            session = parse_bosch_export("")
        assert session.laps == []
        assert "header" in caplog.text

    @pytest.mark.unit
    def test_no_header(self):
        """Test data without an xtime header is ignored."""
        session = parse_bosch_export("# comment\n1.0 2.0 3.0\n4.0 5.0 6.0\n")
        assert session.laps == []
        assert session.metadata.columns == []
