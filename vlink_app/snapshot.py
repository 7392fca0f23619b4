# vlink_app/snapshot.py
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from .enums import EntryKind

log = logging.getLogger(__name__)


class DestinationSnapshot:
    """
    Name -> kind map of the direct children of the destination directory.

    Read once at run start and grown with `record()` after every creation, so
    later collision checks in the same run see earlier creations.
    """

    def __init__(self, root: Optional[Path] = None, entries: Optional[Dict[str, EntryKind]] = None):
        self.root = root
        self._entries: Dict[str, EntryKind] = dict(entries or {})

    @classmethod
    def load(cls, destination: Optional[Path]) -> 'DestinationSnapshot':
        if destination is None:
            log.debug("No destination given, using empty snapshot.")
            return cls()

        entries: Dict[str, EntryKind] = {}
        with os.scandir(destination) as it:
            for entry in it:
                entries[entry.name] = EntryKind.DIR if entry.is_dir() else EntryKind.FILE
        log.debug(f"Snapshot of '{destination}': {len(entries)} entries.")
        return cls(destination, entries)

    def contains(self, name: str) -> Optional[EntryKind]:
        return self._entries.get(name)

    def record(self, name: str, kind: EntryKind) -> None:
        self._entries[name] = kind

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
