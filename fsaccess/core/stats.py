"""
fsaccess Core: File Statistics Snapshots.

``FileStats`` is an immutable point-in-time copy of an ``os.stat_result``.
Two snapshots are never synchronized; compare the raw timestamp fields.
"""
import os
import stat
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional


class FileType(Enum):
    """File type classification derived from mode bits."""

    REGULAR = "regular"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    BLOCK_DEVICE = "block"
    CHARACTER_DEVICE = "char"
    FIFO = "fifo"
    SOCKET = "socket"
    UNKNOWN = "unknown"

    @classmethod
    def from_mode(cls, mode: int) -> "FileType":
        """Determine file type from mode."""
        if stat.S_ISREG(mode):
            return cls.REGULAR
        elif stat.S_ISDIR(mode):
            return cls.DIRECTORY
        elif stat.S_ISLNK(mode):
            return cls.SYMLINK
        elif stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        elif stat.S_ISCHR(mode):
            return cls.CHARACTER_DEVICE
        elif stat.S_ISFIFO(mode):
            return cls.FIFO
        elif stat.S_ISSOCK(mode):
            return cls.SOCKET
        else:
            return cls.UNKNOWN


@dataclass(frozen=True)
class FileStats:
    """Metadata snapshot matching the ``os.stat_result`` structure."""

    dev: int  # Device ID
    ino: int  # Inode number
    mode: int  # File type and permission bits
    nlink: int  # Number of hard links
    uid: int  # Owner user ID
    gid: int  # Owner group ID
    rdev: int  # Device ID for special files
    size: int  # Size in bytes
    blksize: int  # Preferred I/O block size
    blocks: int  # Allocated 512-byte blocks
    atime: float  # Access time (seconds)
    mtime: float  # Modification time (seconds)
    ctime: float  # Status change time (seconds)
    atime_ns: int = 0
    mtime_ns: int = 0
    ctime_ns: int = 0
    birthtime: Optional[float] = None  # Creation time where the platform reports one

    @classmethod
    def from_stat_result(cls, st: os.stat_result) -> "FileStats":
        """Build a snapshot from ``os.stat``/``os.lstat``/``os.fstat`` output."""
        return cls(
            dev=st.st_dev,
            ino=st.st_ino,
            mode=st.st_mode,
            nlink=st.st_nlink,
            uid=st.st_uid,
            gid=st.st_gid,
            rdev=getattr(st, "st_rdev", 0),
            size=st.st_size,
            blksize=getattr(st, "st_blksize", 0),
            blocks=getattr(st, "st_blocks", 0),
            atime=st.st_atime,
            mtime=st.st_mtime,
            ctime=st.st_ctime,
            atime_ns=st.st_atime_ns,
            mtime_ns=st.st_mtime_ns,
            ctime_ns=st.st_ctime_ns,
            birthtime=getattr(st, "st_birthtime", None),
        )

    @classmethod
    def zero(cls) -> "FileStats":
        """Snapshot with every field zero, reported for a vanished path."""
        return cls(
            dev=0,
            ino=0,
            mode=0,
            nlink=0,
            uid=0,
            gid=0,
            rdev=0,
            size=0,
            blksize=0,
            blocks=0,
            atime=0.0,
            mtime=0.0,
            ctime=0.0,
            birthtime=0.0,
        )

    def is_zero(self) -> bool:
        return all(not getattr(self, f.name) for f in fields(self))

    @property
    def file_type(self) -> FileType:
        return FileType.from_mode(self.mode)

    @property
    def permissions(self) -> int:
        """Permission bits without the file type."""
        return stat.S_IMODE(self.mode)

    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    def is_directory(self) -> bool:
        return stat.S_ISDIR(self.mode)

    def is_symbolic_link(self) -> bool:
        return stat.S_ISLNK(self.mode)

    def is_fifo(self) -> bool:
        return stat.S_ISFIFO(self.mode)

    def is_socket(self) -> bool:
        return stat.S_ISSOCK(self.mode)

    def is_block_device(self) -> bool:
        return stat.S_ISBLK(self.mode)

    def is_character_device(self) -> bool:
        return stat.S_ISCHR(self.mode)

    def changed_from(self, other: "FileStats") -> bool:
        """True if any field a poller compares differs from ``other``."""
        return (
            self.mtime_ns != other.mtime_ns
            or self.ctime_ns != other.ctime_ns
            or self.size != other.size
            or self.ino != other.ino
            or self.dev != other.dev
            or self.mode != other.mode
            or self.nlink != other.nlink
            or self.uid != other.uid
            or self.gid != other.gid
        )
