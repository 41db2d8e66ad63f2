"""
Synthetic telemetry and logger export fixtures.

A circular test circuit gives exact, predictable line crossings; the text
builders produce small Bosch and VBOX exports around it.
"""

import math

from lapsync.data.models import Channel, LapRecord, TrackLine
from lapsync.utils.geometry import build_gate, offset_point

# Circuit centre chosen so VBOX minute values are out of decimal range
CIRCUIT_CENTRE = (50.4372, 5.9714)
CIRCUIT_RADIUS = 200.0   # metres
LAP_TIME = 60.0          # seconds per lap
SAMPLE_RATE = 10.0       # Hz


def circuit_point(angle_deg, centre=CIRCUIT_CENTRE, radius=CIRCUIT_RADIUS):
    """Point on the circuit at a bearing from its centre."""
    return offset_point(centre[0], centre[1], angle_deg % 360, radius)


def circuit_line(angle_deg, centre=CIRCUIT_CENTRE, radius=CIRCUIT_RADIUS):
    """Track line at a circuit angle, oriented with clockwise travel."""
    lat, lng = circuit_point(angle_deg, centre, radius)
    return TrackLine(lat=lat, lng=lng, bearing=(angle_deg + 90) % 360)


def circuit_telemetry(laps=3, lap_time=LAP_TIME, rate=SAMPLE_RATE, start_angle=-30.0,
                      tail=10.0, centre=CIRCUIT_CENTRE, radius=CIRCUIT_RADIUS):
    """
    Continuous stream driving clockwise around the circuit at constant speed.

    Angles are offset by half a sample so no sample sits exactly on a line.
    With the default start angle the car reaches angle 0 at t = 4.95 s.
    """
    n = int(round((laps * lap_time + tail) * rate))
    speed_ms = 2 * math.pi * radius / lap_time

    telemetry = {'time': [], 'lat': [], 'long': [], 'distance': [], 'speed': []}
    for i in range(n):
        t = i / rate
        angle = start_angle + 360.0 * (t + 0.5 / rate) / lap_time
        lat, lng = circuit_point(angle, centre, radius)
        telemetry['time'].append(t)
        telemetry['lat'].append(lat)
        telemetry['long'].append(lng)
        telemetry['distance'].append(speed_ms * t)
        telemetry['speed'].append(speed_ms * 3.6)
    return telemetry


def aperiodic_signal(t):
    """Speed-like trace (km/h) with incommensurate components, so no lag repeats."""
    return (120.0
            + 30.0 * math.sin(0.37 * t)
            + 20.0 * math.sin(1.13 * t + 0.5)
            + 10.0 * math.sin(2.71 * t + 1.3))


def make_lap(lap_number, time, **channels):
    """LapRecord from plain lists; unknown channel names become aux channels."""
    known = {Channel.TIME: list(time)}
    aux = {}
    for name, values in channels.items():
        channel = Channel.lookup(name)
        if channel is None:
            aux[name] = list(values)
        else:
            known[channel] = list(values)
    known.setdefault(Channel.DISTANCE, [])
    return LapRecord(
        lap_number=lap_number,
        duration=time[-1] if len(time) else 0.0,
        channels=known,
        aux_channels=aux,
    )


# =============================================================================
# Bosch WinDarab ASCII
# =============================================================================

BOSCH_SOURCE_LINE = (
    r"# Source file : C:\Data\datafiles\12\Silverstone\Race\car7_20230514_001.bin"
)
BOSCH_HEADER = "xtime [s] laptime [s] xdist [m] speed [km/h] nmot [1/min] latacc [g]"


def bosch_export(lap_durations=(30.0, 31.0, 5.0), rate=2.0, extra_rows=()):
    """
    Bosch export text with the lap timer resetting after each lap.

    Every lap timer runs from 0 to its duration in 1/rate steps. The car
    covers 50 m per second.
    """
    lines = [
        "# WinDarab ASCII export",
        BOSCH_SOURCE_LINE,
        "#",
        BOSCH_HEADER,
    ]
    xtime = 0.0
    step = 1.0 / rate
    for duration in lap_durations:
        steps = int(round(duration * rate))
        for k in range(steps + 1):
            laptime = k * step
            lines.append(f"{xtime:.2f} {laptime:.2f} {xtime * 50.0:.1f} 180.0 7000 1.2")
            xtime += step
    lines.extend(extra_rows)
    return "\n".join(lines) + "\n"


# =============================================================================
# RaceLogic VBOX
# =============================================================================

def pack_time(seconds_of_day):
    """Seconds of day -> VBOX HHMMSS.ss"""
    hours = int(seconds_of_day // 3600)
    minutes = int((seconds_of_day % 3600) // 60)
    seconds = seconds_of_day - hours * 3600 - minutes * 60
    return hours * 10000 + minutes * 100 + seconds


def vbo_export(columns, rows, start_line=None, circuit=None, created='14/05/2023'):
    """
    VBOX export text.

    Args:
        columns: Column names
        rows: Sequence of value sequences (formatted with repr-like precision)
        start_line: Optional (lon1, lat1, lon2, lat2) in file units
        circuit: Optional circuit name
    """
    lines = [f"File created on {created} at 10:00:00", "", "[header]"]
    lines.extend(columns)
    lines.append("")
    if circuit:
        lines.extend(["[session data]", f"circuit {circuit}", ""])
    if start_line:
        lon1, lat1, lon2, lat2 = start_line
        lines.extend(["[laptiming]", f"Start   {lon1:+.6f} {lat1:+.6f} {lon2:+.6f} {lat2:+.6f}", ""])
    lines.extend(["[column names]", " ".join(columns), "", "[data]"])
    for row in rows:
        lines.append(" ".join(f"{v:.6f}" for v in row))
    return "\n".join(lines) + "\n"


def circuit_vbo(laps=3, start_angle=-150.0, base_seconds=36000.0):
    """
    VBOX export of the test circuit without a lap column.

    Coordinates are stored in minutes and the start line is the gate at
    circuit angle 0, so laps are split geometrically.
    """
    telemetry = circuit_telemetry(laps=laps, start_angle=start_angle)
    rows = []
    for i, t in enumerate(telemetry['time']):
        rows.append((
            9,
            pack_time(base_seconds + t),
            telemetry['lat'][i] * 60.0,
            telemetry['long'][i] * 60.0,
            telemetry['speed'][i],
        ))

    (lat1, lng1), (lat2, lng2) = build_gate(circuit_line(0.0))
    start = (lng1 * 60.0, lat1 * 60.0, lng2 * 60.0, lat2 * 60.0)
    return vbo_export(['sats', 'time', 'lat', 'long', 'velocity'], rows,
                      start_line=start, circuit='Spa Test Circuit')


def lap_column_vbo(lap_lengths=(30, 40, 25), speed=72.0, base_seconds=36000.0):
    """VBOX export with a lap number column, 10 Hz, constant speed."""
    rows = []
    i = 0
    for lap_number, count in enumerate(lap_lengths, start=1):
        for _ in range(count):
            t = i / SAMPLE_RATE
            rows.append((9, pack_time(base_seconds + t), 3026.232, 358.284, speed, lap_number, 1.5))
            i += 1
    return vbo_export(['sats', 'time', 'lat', 'long', 'velocity', 'lap', 'latacc'], rows)
