"""
Command line entry point for inspecting logger exports.

    lapsync parse FILE
    lapsync align PRIMARY SECONDARY
    lapsync laps FILE --finish LAT,LNG [--sector1 LAT,LNG] [--sector2 LAT,LNG]
"""

import argparse
import logging
import sys

from lapsync import config
from lapsync.alignment.merge import available_channels, plan_alignment
from lapsync.core.lap_detector import median_lap_time, recalculate_laps, stitch_laps
from lapsync.data.models import ParsedSession, TrackConfig
from lapsync.exceptions import LapSyncError
from lapsync.parsers import parse_export
from lapsync.utils.geometry import find_closest_track_point, track_line_at_index

logger = logging.getLogger('lapsync.cli')


def _load(path: str) -> ParsedSession:
    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        content = f.read()
    return parse_export(content, filename=path)


def _format_sectors(sectors) -> str:
    if not sectors:
        return ''
    return ' '.join('-' if s is None else f"{s:.3f}" for s in sectors)


def cmd_parse(args) -> int:
    session = _load(args.file)
    meta = session.metadata
    print(f"Track:    {meta.track}")
    print(f"Type:     {meta.session_type}")
    print(f"Date:     {meta.date or '-'}")
    print(f"Columns:  {len(meta.columns)}")
    print(f"Laps:     {len(session.laps)}")
    print()
    print(f"{'Lap':>4} {'Time (s)':>10} {'Samples':>8} {'Dist (m)':>10}  Sectors")
    for lap in session.laps:
        distance = lap.distance[-1] if lap.distance else 0.0
        print(f"{lap.lap_number:>4} {lap.duration:>10.3f} {lap.sample_count:>8} "
              f"{distance:>10.1f}  {_format_sectors(lap.sectors)}")
    return 0


def cmd_align(args) -> int:
    primary = _load(args.primary)
    secondary = _load(args.secondary)
    plan = plan_alignment(primary.laps, secondary, tolerance_seconds=args.tolerance)

    result = plan.match_result
    print(f"Strategy: {plan.strategy.value}")
    print(f"Shift:    {result.shift}")
    print(f"Offset:   {plan.global_offset_seconds:.3f}s")
    print(f"Matched:  {len(result.matches)}/{len(primary.laps)} primary laps")
    for m in result.matches:
        offset = plan.offset_for(m.primary_lap_number)
        print(f"  P{m.primary_lap_number} ({m.primary_duration:.1f}s) <-> "
              f"S{m.secondary_lap_number} ({m.secondary_duration:.1f}s) "
              f"diff={m.duration_diff:.3f}s offset={offset:.3f}s")
    print(f"Channels: {', '.join(available_channels(plan.secondary_laps)) or '-'}")
    return 0


def cmd_laps(args) -> int:
    session = _load(args.file)
    stream = stitch_laps(session.laps)
    lat = stream.get('lat')
    lng = stream.get('long')
    if not lat or not lng:
        logger.error("%s has no GPS path to place track lines on", args.file)
        return 1

    lines = {}
    for name in ('finish', 'sector1', 'sector2'):
        point = getattr(args, name)
        if point is None:
            continue
        idx, dist = find_closest_track_point(lat, lng, *point)
        if dist > config.GATE_HALF_WIDTH_M:
            logger.warning("%s point is %.0fm from the driven line", name, dist)
        lines[name] = track_line_at_index(lat, lng, idx)
        logger.info("%s line at sample %d, bearing %.1f", name, idx, lines[name].bearing)

    track_config = TrackConfig(
        finish_line=lines.get('finish'),
        sector1=lines.get('sector1'),
        sector2=lines.get('sector2'),
    )
    laps = recalculate_laps(session.laps, track_config)

    print(f"Laps:     {len(laps)}")
    print(f"Median:   {median_lap_time([lap.duration for lap in laps]):.3f}s")
    print()
    print(f"{'Lap':>4} {'Time (s)':>10} {'Valid':>6}  Sectors")
    for lap in laps:
        valid = 'yes' if lap.is_valid else 'no'
        print(f"{lap.lap_number:>4} {lap.duration:>10.3f} {valid:>6}  "
              f"{_format_sectors(lap.sectors)}")
    return 0


def _lat_lng(text: str):
    """Parse a "LAT,LNG" argument."""
    try:
        lat, lng = (float(part) for part in text.split(','))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LNG, got {text!r}")
    return lat, lng


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="lapsync - motorsport logger export parsing and alignment"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Show metadata and laps of an export")
    parse_cmd.add_argument("file", help="Bosch ASCII or VBOX .vbo export")
    parse_cmd.set_defaults(func=cmd_parse)

    align_cmd = subparsers.add_parser("align", help="Plan alignment of a secondary export")
    align_cmd.add_argument("primary", help="Primary session export")
    align_cmd.add_argument("secondary", help="Secondary export to align")
    align_cmd.add_argument(
        "--tolerance",
        type=float,
        default=3.0,
        help="Lap duration matching tolerance in seconds (default: 3.0)",
    )
    align_cmd.set_defaults(func=cmd_align)

    laps_cmd = subparsers.add_parser("laps", help="Re-split an export at track lines")
    laps_cmd.add_argument("file", help="Export with a GPS path")
    laps_cmd.add_argument(
        "--finish",
        type=_lat_lng,
        required=True,
        metavar="LAT,LNG",
        help="Finish line position, snapped to the nearest driven point",
    )
    laps_cmd.add_argument("--sector1", type=_lat_lng, metavar="LAT,LNG",
                          help="Sector 1 line position")
    laps_cmd.add_argument("--sector2", type=_lat_lng, metavar="LAT,LNG",
                          help="Sector 2 line position")
    laps_cmd.set_defaults(func=cmd_laps)


    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    try:
        return args.func(args)
    except (LapSyncError, OSError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
