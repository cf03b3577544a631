"""On-disk fingerprints for loaded source files."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fingerprint:
    """Comparable snapshot of a file's stat metadata.

    Two fingerprints differ when the file may have changed. Detection is
    only as fine as the filesystem's timestamp resolution: an edit that keeps
    the same inode and size within one mtime tick goes unnoticed.
    """

    device: int | None = None
    inode: int | None = None
    size: int | None = None
    mtime_ns: int | None = None

    @property
    def seen(self) -> bool:
        return self != UNSEEN

    @classmethod
    def of(cls, path: str | Path | None) -> "Fingerprint":
        """Fingerprint ``path``, or return UNSEEN if it cannot be stat'ed."""
        if path is None:
            return UNSEEN
        try:
            st = os.stat(path)
        except OSError as e:
            logger.debug(f"Cannot stat {path}: {e}")
            return UNSEEN
        return cls(
            device=st.st_dev,
            inode=st.st_ino,
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
        )


# Not yet observed on disk
UNSEEN = Fingerprint()
