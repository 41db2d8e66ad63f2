"""
Unit tests for virtual laps built from a lap timer channel.
"""

import pytest

from lapsync.alignment.virtual_laps import build_virtual_laps
from lapsync.data.models import Channel
from tests.fixtures.sample_exports import make_lap


def _timer_lap(laptime, rate=1.0):
    time = [i / rate for i in range(len(laptime))]
    return make_lap(1, time, distance=[t * 10.0 for t in time],
                    speed=[36.0] * len(time), laptime=laptime)


class TestBuildVirtualLaps:
    """Tests for splitting on lap timer resets."""

    @pytest.mark.unit
    def test_split_on_reset(self):
        """Test each timer reset starts a new lap with re-zeroed time and distance."""
        laptime = [0, 1, 2, 3, 4, 0, 1, 2, 3, 0, 1]
        virtual = build_virtual_laps(_timer_lap(laptime))

        assert [lap.lap_number for lap in virtual] == [1, 2, 3]
        assert [lap.sample_count for lap in virtual] == [5, 4, 2]
        assert virtual[1].time == [0.0, 1.0, 2.0, 3.0]
        assert virtual[1].distance == [0.0, 10.0, 20.0, 30.0]
        assert virtual[1].get(Channel.SPEED) == [36.0] * 4
        assert virtual[1].get('laptime') == [0, 1, 2, 3]

    @pytest.mark.unit
    def test_duration_from_timer(self):
        """Test the declared duration is the timer's final value."""
        laptime = [0.5, 1.5, 2.5, 3.5, 0.2, 1.2]
        virtual = build_virtual_laps(_timer_lap(laptime))

        assert virtual[0].duration == 3.5
        assert virtual[1].duration == 1.2

    @pytest.mark.unit
    def test_small_drop_not_a_reset(self):
        """Test a timer drop of a second or less is jitter."""
        virtual = build_virtual_laps(_timer_lap([5.0, 6.0, 5.5, 6.5, 7.5]))
        assert len(virtual) == 1

    @pytest.mark.unit
    def test_negative_timer_is_reset(self):
        """Test a negative timer value starts a new lap."""
        virtual = build_virtual_laps(_timer_lap([1.0, 2.0, 3.0, -1.0, 0.0, 1.0, 2.0]))

        assert len(virtual) == 2
        assert virtual[0].duration == 3.0
        assert virtual[1].duration == 2.0

    @pytest.mark.unit
    def test_elapsed_time_when_timer_not_positive(self):
        """Test elapsed time is used when the final timer value is zero or less."""
        virtual = build_virtual_laps(_timer_lap([2.0, 3.0, 4.0, 0.0, 0.0, 0.0]))

        assert virtual[1].duration == 2.0

    @pytest.mark.unit
    def test_zero_duration_dropped(self):
        """Test a one-sample segment without a positive timer is dropped."""
        virtual = build_virtual_laps(_timer_lap([2.0, 3.0, 4.0, 0.0, -5.0, 1.0, 2.0]))

        assert [lap.sample_count for lap in virtual] == [3, 3]
        assert [lap.lap_number for lap in virtual] == [1, 2]

    @pytest.mark.unit
    def test_missing_channel(self):
        """Test None when the timer channel is absent."""
        lap = make_lap(1, [0.0, 1.0], distance=[0.0, 1.0])
        assert build_virtual_laps(lap) is None

    @pytest.mark.unit
    def test_misaligned_channel(self):
        """Test None when the timer channel is not aligned with time."""
        lap = make_lap(1, [0.0, 1.0, 2.0], distance=[0.0, 1.0, 2.0], laptime=[0.0, 1.0])
        assert build_virtual_laps(lap) is None

    @pytest.mark.unit
    def test_custom_channel_name(self):
        """Test another channel can act as the timer."""
        lap = make_lap(1, [0.0, 1.0, 2.0, 3.0], distance=[0.0] * 4, lt=[11.0, 12.0, 0.5, 1.5])
        virtual = build_virtual_laps(lap, laptime_channel='lt')

        assert [lap.duration for lap in virtual] == [12.0, 1.5]
