import os
from collections.abc import Iterable
from pathlib import Path

from ..core.logging import log

TMP_SUFFIX = ".tmp"


class AtomicWriter:
    """Write-to-temp-then-rename for each output path.

    Each path flips from old to new content in one ``os.replace``; sibling
    paths of one target are swapped one after another, so they can briefly
    disagree.
    """

    def __init__(self, encoding: str = "utf-8", fsync: bool = True):
        self.encoding = encoding
        self.fsync = fsync

    def write(self, paths: Iterable[Path], content: str) -> list[Path]:
        data = content.encode(self.encoding)
        written = []
        for path in sorted(paths):
            self._write_one(Path(path), data)
            written.append(path)
            log.info("writer.generated", path=str(path), bytes=len(data))
        return written

    def _write_one(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + TMP_SUFFIX)
        try:
            with open(tmp, "wb") as f:
                f.write(data)
                if self.fsync:
                    f.flush()
                    os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
