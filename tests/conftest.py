"""
Shared pytest fixtures for lapsync tests.
"""

import os
import sys
import pytest

# Add project root to path for imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from lapsync.data.models import TrackConfig  # noqa: E402
from tests.fixtures.sample_exports import (  # noqa: E402
    bosch_export,
    circuit_line,
    circuit_telemetry,
)


@pytest.fixture
def circuit_stream():
    """Three laps plus lead-in and tail around the test circuit."""
    return circuit_telemetry(laps=3)


@pytest.fixture
def finish_only_config():
    """Finish line at circuit angle 0, no sectors."""
    return TrackConfig(finish_line=circuit_line(0.0))


@pytest.fixture
def sectored_config():
    """Finish line plus sector lines at a third and two thirds of the lap."""
    return TrackConfig(
        finish_line=circuit_line(0.0),
        sector1=circuit_line(120.0),
        sector2=circuit_line(240.0),
    )


@pytest.fixture
def bosch_text():
    """Bosch export with laps of 30 s, 31 s and a 5 s partial lap."""
    return bosch_export()


@pytest.fixture
def sample_lttb_points():
    """Sawtooth with a single spike, easy to reason about after decimation."""
    points = [(float(i), float(i % 10)) for i in range(100)]
    points[55] = (55.0, 100.0)
    return points
