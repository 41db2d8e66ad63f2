"""
Bosch WinDarab ASCII export parser.

Export layout:
    # comment lines, one of which names the source file
    xtime [s] laptime [s] xdist [m] speed [km/h] ...
    0.00 0.00 0.0 120.5 ...

Laps are cut where the in-file lap timer resets.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from lapsync import config
from lapsync.data.channels import LapBuilder, resolve_bosch_channels
from lapsync.data.models import Channel, LapRecord, ParsedSession, SessionMetadata

logger = logging.getLogger('lapsync.parsers.bosch')

SOURCE_FILE_PATTERN = re.compile(r'datafiles\\\d+\\(.+?)\\(.+?)\\', re.IGNORECASE)
DATE_PATTERN = re.compile(r'_(\d{8})_')


def _parse_source_file(line: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Extract (track, session type, ISO date) from a 'Source file' comment."""
    track = session_type = date = None

    match = SOURCE_FILE_PATTERN.search(line)
    if match:
        track, session_type = match.group(1), match.group(2)

    date_match = DATE_PATTERN.search(line)
    if date_match:
        d = date_match.group(1)
        date = f"{d[0:4]}-{d[4:6]}-{d[6:8]}"

    return track, session_type, date


def _parse_header(line: str) -> List[str]:
    # Unit tokens like [s] or [km/h] sit between the channel names
    return [h for h in line.split() if not h.startswith('[') and not h.endswith(']')]


def _to_float(token: str) -> Optional[float]:
    try:
        return float(token)
    except ValueError:
        return None


def parse_bosch_export(content: str) -> ParsedSession:
    """
    Parse a Bosch WinDarab ASCII export.

    Args:
        content: Full text of the export

    Returns:
        ParsedSession with one LapRecord per lap timer cycle. An empty file
        or a file without an ``xtime`` header yields no laps.
    """
    track = 'Unknown'
    session_type = 'Unknown'
    date = None

    headers: List[str] = []
    mapping: Dict[Channel, int] = {}
    builder: Optional[LapBuilder] = None

    laps: List[LapRecord] = []
    last_laptime = 0.0
    skipped_rows = 0

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith('#'):
            if 'Source file' in line:
                found_track, found_type, found_date = _parse_source_file(line)
                if found_track is not None:
                    track, session_type = found_track, found_type
                if found_date is not None:
                    date = found_date
            continue

        if builder is None:
            if line.startswith(config.BOSCH_HEADER_SENTINEL):
                headers = _parse_header(line)
                mapping = resolve_bosch_channels(headers)
                builder = LapBuilder(mapping.keys(), [h.lower() for h in headers])
                logger.debug("Header with %d columns, mapped %s",
                             len(headers), sorted(c.value for c in mapping))
            continue

        values = line.split()
        if len(values) < len(headers):
            skipped_rows += 1
            continue

        if Channel.TIME in mapping:
            laptime = _to_float(values[mapping[Channel.TIME]])
            if laptime is None:
                skipped_rows += 1
                continue
        else:
            laptime = 0.0

        if (laptime < last_laptime - config.BOSCH_LAPTIME_RESET_DROP
                and last_laptime > config.BOSCH_LAPTIME_RESET_MIN):
            laps.append(builder.finalize(len(laps) + 1, duration=last_laptime))
            builder = builder.fresh()
        last_laptime = laptime

        row = [_to_float(v) for v in values[:len(headers)]]
        row = [0.0 if v is None else v for v in row]

        sample = {channel: row[idx] for channel, idx in mapping.items()}
        sample[Channel.TIME] = laptime
        aux = {h.lower(): row[idx] for idx, h in enumerate(headers)}
        builder.append(sample, aux)

    if builder is None:
        logger.warning("No '%s' header found, returning empty session", config.BOSCH_HEADER_SENTINEL)
    elif len(builder):
        laps.append(builder.finalize(len(laps) + 1, duration=last_laptime))

    if skipped_rows:
        logger.debug("Skipped %d malformed rows", skipped_rows)
    logger.info("Bosch export parsed: %d laps, track=%s", len(laps), track)

    metadata = SessionMetadata(
        track=track,
        session_type=session_type,
        date=date,
        columns=headers,
        channel_mapping={channel.value: headers[idx] for channel, idx in mapping.items()},
    )
    return ParsedSession(metadata=metadata, laps=laps)
