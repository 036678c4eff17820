"""Local Artifact Storage — filesystem implementation of the ArtifactStorage protocol.

Invariants:
    - Paths are relative keys resolved under `root`; a key escaping root is refused
    - write_bytes is atomic: bytes land in a temp file and are renamed into place,
      so a reader never sees a half-written artifact
    - Blocking file IO runs in a worker thread (asyncio.to_thread)
    - OSError is mapped to StorageError
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from stockroom.core.errors import StorageError

logger = logging.getLogger(__name__)


class LocalArtifactStorage:
    """Stores artifacts as files below a root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise StorageError("path escapes storage root", path)
        return target

    async def write_bytes(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(_atomic_write, target, data)
        except OSError as e:
            raise StorageError(str(e), path)
        logger.debug("Artifact written", extra={"path": path})

    async def read_bytes(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(str(e), path)

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).is_file)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(str(e), path)


def _atomic_write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
