# vlink_app/discovery.py
import logging
import os
import re
from pathlib import Path, PurePath
from typing import Iterable, List, Optional, Pattern, Sequence

from .enums import LinkMode
from .exceptions import ValidationError
from .models import DirEntry, DiscoveryResult, FileEntry

log = logging.getLogger(__name__)

DEFAULT_VIDEO_EXTENSIONS = (".mp4", ".mkv")


def compile_filter(filter_regex: Optional[str]) -> Optional[Pattern[str]]:
    if not filter_regex:
        return None
    try:
        return re.compile(filter_regex)
    except re.error as e:
        raise ValidationError(f"Invalid filter regex '{filter_regex}': {e}") from e


class FileMatcher:
    """
    Decides whether a file base name is selected.

    With a filter regex the regex (searched anywhere in the name) is the only
    criterion; otherwise non-recursive modes keep only video extensions and
    recursive mode keeps every file.
    """

    def __init__(self, mode: LinkMode, video_extensions: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS,
                 filter_pattern: Optional[Pattern[str]] = None):
        self.mode = mode
        self.extensions = {ext.lower() if ext.startswith('.') else f".{ext.lower()}" for ext in video_extensions}
        self.filter_pattern = filter_pattern

    def __call__(self, name: str) -> bool:
        if self.filter_pattern is not None:
            return self.filter_pattern.search(name) is not None
        if self.mode is LinkMode.RECURSIVE:
            return True
        return os.path.splitext(name)[1].lower() in self.extensions


def _top_level_dirs(source: Path) -> List[DirEntry]:
    with os.scandir(source) as it:
        return [DirEntry(Path(e.path)) for e in it if e.is_dir()]


def discover(source: Path, mode: LinkMode, video_extensions: Sequence[str] = DEFAULT_VIDEO_EXTENSIONS,
             filter_regex: Optional[str] = None) -> DiscoveryResult:
    """
    Collects the files and top-level directories a run works on, each list
    sorted by path.
    """
    source = Path(source).resolve()
    matcher = FileMatcher(mode, video_extensions, compile_filter(filter_regex))

    files: List[FileEntry] = []
    if source.is_file():
        # an explicitly named file is taken regardless of extension
        if matcher.filter_pattern is None or matcher.filter_pattern.search(source.name):
            files.append(FileEntry(source, PurePath(source.name)))
        log.debug(f"Source is a single file: {source}")
        return DiscoveryResult(source_root=source.parent, files=files, dirs=[])

    if mode is LinkMode.RECURSIVE:
        for dirpath, dirnames, filenames in os.walk(source):
            for fname in filenames:
                full = Path(dirpath) / fname
                if full.is_file() and matcher(fname):
                    files.append(FileEntry(full, full.relative_to(source)))
    else:
        with os.scandir(source) as it:
            for e in it:
                if e.is_file() and matcher(e.name):
                    files.append(FileEntry(Path(e.path), PurePath(e.name)))

    dirs = _top_level_dirs(source)
    files.sort(key=lambda f: str(f.source))
    dirs.sort(key=lambda d: str(d.source))
    log.info(f"Discovered {len(files)} file(s) and {len(dirs)} top-level director(y/ies) in '{source}' ({mode}).")
    return DiscoveryResult(source_root=source, files=files, dirs=dirs)


def count_files_in_dir(directory: Path, mode: LinkMode, video_extensions: Sequence[str] = DEFAULT_VIDEO_EXTENSIONS,
                       filter_regex: Optional[str] = None) -> int:
    """Number of files inside `directory` that a run in `mode` would pick up."""
    matcher = FileMatcher(mode, video_extensions, compile_filter(filter_regex))
    if mode is LinkMode.RECURSIVE:
        return sum(1 for dirpath, _, filenames in os.walk(directory)
                   for f in filenames if (Path(dirpath) / f).is_file() and matcher(f))
    with os.scandir(directory) as it:
        return sum(1 for e in it if e.is_file() and matcher(e.name))
