# artledger/storage.py
"""
Durable JSON index files.

Every store keeps a single JSON index. Writes go to a temporary file in the
same directory which is flushed, fsync'd and then renamed over the index, so
a reader sees either the old or the new file and a successful return means
the data reached the disk.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    """
    Write data as JSON to path, durably.

    Raises:
        OSError: if any step of the write fails (the old file is untouched)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    _fsync_dir(path.parent)


def _fsync_dir(directory: Path) -> None:
    """Flush a directory entry so the rename itself is durable."""
    try:
        dir_fd = os.open(directory, os.O_RDONLY)
    except OSError:
        # Not supported on every platform (e.g. Windows)
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


def read_json(path: Path) -> Optional[Dict[str, Any]]:
    """Read a JSON index, or None if it does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path) as f:
        return json.load(f)


def file_version(path: Path) -> Optional[Tuple[int, int, int]]:
    """
    Version stamp of a file, or None if it does not exist.

    Every atomic write renames a new inode into place, so the inode number
    changes even when two writes land within one mtime tick.
    """
    try:
        st = Path(path).stat()
        return (st.st_ino, st.st_mtime_ns, st.st_size)
    except FileNotFoundError:
        return None
