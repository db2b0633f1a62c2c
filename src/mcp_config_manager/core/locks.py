"""Per-file write serialization."""

import asyncio
import os
from pathlib import Path
from typing import Dict, Union


class PathLocks:
    """
    One asyncio.Lock per resolved file path.

    Backup + write sequences run while holding the lock of their target so
    two saves to the same file are linearized. Different files do not
    contend.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    @staticmethod
    def key(path: Union[str, Path]) -> str:
        return os.path.normcase(str(Path(path).expanduser().resolve()))

    def for_path(self, path: Union[str, Path]) -> asyncio.Lock:
        key = self.key(path)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
