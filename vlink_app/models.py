# models.py
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Optional, List, Union

@dataclass(frozen=True)
class FileEntry:
    """A discovered source file."""
    source: Path # absolute path
    relative: PurePath # path relative to the source root

    @property
    def name(self) -> str:
        return self.source.name

@dataclass(frozen=True)
class DirEntry:
    """A discovered directory, always exactly one level below the source root."""
    source: Path

    @property
    def name(self) -> str:
        return self.source.name

@dataclass
class DiscoveryResult:
    source_root: Path
    files: List[FileEntry] = field(default_factory=list)
    dirs: List[DirEntry] = field(default_factory=list)

@dataclass
class SequenceState:
    """Current season/episode plus zero-padding widths and optional inclusive ceiling."""
    season: int = 1
    episode: int = 1
    season_digits: int = 2
    episode_digits: int = 2
    range_end: Optional[int] = None # inclusive episode ceiling for the locked season


# --- Collision protocol decisions ---

@dataclass(frozen=True)
class Accept:
    """Use `name`. `overwrite` is set when an existing entry of that name must be replaced."""
    name: str
    overwrite: bool = False

@dataclass(frozen=True)
class Rename:
    """Operator typed a replacement name; it still has to be checked against the destination."""
    name: str

@dataclass(frozen=True)
class Skip:
    pass

@dataclass(frozen=True)
class AbortAll:
    pass

@dataclass(frozen=True)
class Reanchor:
    """Operator typed a sequence token: reset the counter instead of renaming."""
    season: int
    episode: int
    season_digits: int
    episode_digits: int

@dataclass(frozen=True)
class Invalid:
    """Answer not acceptable in this context; ask again."""
    reason: str

Decision = Union[Accept, Rename, Skip, AbortAll, Reanchor, Invalid]


@dataclass
class RunSummary:
    """Counters for one LinkPlanner run."""
    created: int = 0
    skipped: int = 0
    failed: int = 0
    aborted: bool = False # end keyword entered
    ceiling_reached: bool = False
    messages: List[str] = field(default_factory=list)

@dataclass
class UndoReport:
    removed_files: int = 0
    removed_dirs: int = 0
    missing: int = 0
    failed: int = 0
