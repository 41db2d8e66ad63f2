"""
Logger export parsers.

parse_export picks the parser from the file extension or the content.
"""

import logging
import os
from typing import Optional

from lapsync.exceptions import UnsupportedFormatError
from lapsync.data.models import ParsedSession
from lapsync.parsers.bosch_parser import parse_bosch_export
from lapsync.parsers.vbo_parser import parse_vbo_export

logger = logging.getLogger('lapsync.parsers')


def parse_export(content: str, filename: Optional[str] = None) -> ParsedSession:
    """
    Parse a Bosch or VBOX export.

    Args:
        content: Full text of the export
        filename: Original file name, used for the .vbo extension check

    Raises:
        UnsupportedFormatError: Neither format could be recognised
    """
    if filename and os.path.splitext(filename)[1].lower() == '.vbo':
        return parse_vbo_export(content)

    lowered = content.lower()
    if '[column names]' in lowered:
        logger.debug("Detected VBOX export from content")
        return parse_vbo_export(content)

    for line in content.splitlines():
        if line.strip().startswith('xtime'):
            logger.debug("Detected Bosch export from content")
            return parse_bosch_export(content)

    raise UnsupportedFormatError(f"Unrecognised export format: {filename or '<content>'}")


__all__ = [
    'parse_export',
    'parse_bosch_export',
    'parse_vbo_export',
]
