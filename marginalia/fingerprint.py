"""
Source fingerprints: (size, mtime, sha256) of a file's bytes.

Used to seed a document at first import, to detect real content changes on
re-import, and persisted per revision as history.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path

_READ_CHUNK = 1 << 20


@dataclass(frozen=True)
class SourceFingerprint:
    """Content identity of a source file at capture time."""
    size: int
    mtime: int  # milliseconds since the epoch, truncated
    sha256: str

    def same_content(self, other: "SourceFingerprint") -> bool:
        """True if both fingerprints hash the same bytes (mtime ignored)."""
        return self.size == other.size and self.sha256 == other.sha256


def capture_fingerprint(source_path: Path) -> SourceFingerprint:
    """Read size, modification time and SHA-256 of a file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(source_path)
    stat = path.stat()
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_READ_CHUNK), b""):
            digest.update(chunk)
    return SourceFingerprint(
        size=stat.st_size,
        mtime=stat.st_mtime_ns // 1_000_000,
        sha256=digest.hexdigest(),
    )
