import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from prune import CandidateFile, sort_files


def gfs_name(day: int, hour: int) -> str:
    return f"file_created_2023-07-{day:02d}_{hour:02d}-00-00.txt"


def gfs_timestamp_ms(day: int, hour: int) -> int:
    return int(datetime(2023, 7, day, hour, tzinfo=timezone.utc).timestamp()) * 1000


def gfs_schedule() -> list[tuple[str, int]]:
    """One file every 4 hours from 2023-07-15 to 2023-07-28 (UTC): 6 files per day, 84 files."""
    return [(gfs_name(day, hour), gfs_timestamp_ms(day, hour)) for day in range(15, 29) for hour in range(0, 21, 4)]


@pytest.fixture
def gfs_files() -> list[CandidateFile]:
    return sort_files(CandidateFile(Path(name), name, timestamp_ms) for name, timestamp_ms in gfs_schedule())


@pytest.fixture
def gfs_directory(tmp_path: Path) -> Path:
    """The 84 file schedule on disk, atime and mtime set to the scheduled time."""
    for name, timestamp_ms in gfs_schedule():
        file = tmp_path / name
        file.write_text(name)
        os.utime(file, (timestamp_ms / 1000, timestamp_ms / 1000))
    return tmp_path
