"""
netpipe Utils Module
Time formatting and caller capture helpers for the log pipeline.
"""

import os
import sys
from datetime import datetime
from typing import Optional


def format_timestamp(moment: datetime) -> str:
    """Format a moment as YYYY-MM-DD HH:MM:SS.mmm."""
    return f"{moment:%Y-%m-%d %H:%M:%S}.{moment.microsecond // 1000:03d}"


def date_stamp(moment: datetime) -> str:
    """Format a moment as the YYYYMMDD stamp used in log file names."""
    return f"{moment:%Y%m%d}"


def parse_date_stamp(stamp: str) -> Optional[datetime]:
    """Parse a YYYYMMDD stamp, returning None if it is not a valid date."""
    try:
        return datetime.strptime(stamp, "%Y%m%d")
    except ValueError:
        return None


def caller_location(skip: int = 1) -> Optional[str]:
    """
    Describe a frame further up the stack as "file.py:line".

    Args:
        skip: How many frames above the function calling caller_location()
              to look. 1 is that function's own caller.

    Returns:
        Basename and line number, or None if the stack is not that deep
    """
    frame = sys._getframe(1)
    for _ in range(skip):
        if frame is None:
            return None
        frame = frame.f_back

    if frame is None:
        return None

    return f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"
