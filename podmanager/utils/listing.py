"""
Parser for `ls -la` output captured from a pod.

Expected line shape (long-iso time style):

    drwxr-xr-x 2 root root 4096 2024-01-01 10:00 name with spaces
    lrwxrwxrwx 1 root root    7 2024-01-01 10:00 link -> target

Malformed lines are skipped; a bad date or size never fails the listing.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..schemas import FileInfo

logger = logging.getLogger(__name__)

# Number of fields before the name: mode, links, owner, group, size, date, time
_NAME_FIELD = 7

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
)


def _parse_timestamp(date_part: str, time_part: str) -> Optional[datetime]:
    # full-iso output carries nanoseconds, strptime only takes microseconds
    if "." in time_part:
        whole, fraction = time_part.split(".", 1)
        time_part = f"{whole}.{fraction[:6]}"

    value = f"{date_part} {time_part}"
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_listing(raw_text: str) -> List[FileInfo]:
    """
    Turn `ls -la` text into FileInfo entries.

    Args:
        raw_text: Complete stdout of the listing command

    Returns:
        Entries in listing order, without "." and ".."
    """
    entries: List[FileInfo] = []

    for line in (raw_text or "").splitlines():
        if line.startswith("total "):
            continue

        parts = line.split()
        if len(parts) < _NAME_FIELD + 1:
            continue

        name = " ".join(parts[_NAME_FIELD:])
        if " -> " in name:
            name = name.split(" -> ", 1)[0]

        if name in (".", ".."):
            continue

        try:
            size = int(parts[4])
        except ValueError:
            size = 0

        entries.append(FileInfo(
            name=name,
            size=max(size, 0),
            is_directory=parts[0].startswith("d"),
            modified_at=_parse_timestamp(parts[5], parts[6]),
        ))

    logger.debug(f"Parsed {len(entries)} entries from listing")
    return entries
