# vlink_app/ledger.py
import logging
import os
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import platformdirs

from .exceptions import StateError
from .file_system_ops import remove_path
from .models import UndoReport
from .ui_utils import ConsoleClass, TableClass, make_console, path_text, safe_markup

log = logging.getLogger(__name__)
APP_NAME = "vlink"
DEFAULT_LEDGER_FILENAME = "vlink_last_run.log"
LEDGER_SEPARATOR = b"\n"


def resolve_ledger_path(configured: Optional[str] = None) -> Path:
    """
    Configured path, else the fixed log file beside the program. When the
    program directory is not writable (a regular site-packages install) the
    per-user state directory is used instead.
    """
    if configured:
        return Path(configured).expanduser().resolve()
    program_dir = Path(__file__).parent.parent.resolve()
    if os.access(program_dir, os.W_OK):
        return program_dir / DEFAULT_LEDGER_FILENAME
    state_dir = Path(platformdirs.user_state_dir(APP_NAME, ensure_exists=False))
    log.debug(f"Program directory '{program_dir}' is read-only, keeping the ledger in '{state_dir}'.")
    return (state_dir / DEFAULT_LEDGER_FILENAME).resolve()


def can_record(path: Path) -> bool:
    """False for paths the one-path-per-line ledger cannot hold."""
    return LEDGER_SEPARATOR not in os.fsencode(path)


class ActionLedger:
    """
    Append-only, creation-ordered list of every path created in this run.

    Only one generation is kept on disk: `persist()` overwrites the previous
    run's log, so undo always targets the last run. Paths are stored as raw
    filesystem bytes, so names that are not valid UTF-8 survive the round trip.
    """

    def __init__(self):
        self._entries: List[Path] = []
        self._persisted_to: Optional[Path] = None

    def append(self, path: Path) -> None:
        if not can_record(path):
            raise ValueError(f"Path contains a line break and cannot be recorded: {path!r}")
        self._entries.append(Path(path))
        log.debug(f"Ledger +{path}")

    @property
    def entries(self) -> List[Path]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Path]:
        return iter(list(self._entries))

    @property
    def is_persisted(self) -> bool:
        return self._persisted_to is not None

    def persist(self, log_path: Path) -> None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        content = b"".join(os.fsencode(p) + LEDGER_SEPARATOR for p in self._entries)
        log_path.write_bytes(content)
        self._persisted_to = log_path
        log.info(f"Wrote {len(self._entries)} created item(s) to '{log_path}'")

    @contextmanager
    def persist_on_exit(self, log_path: Path):
        """
        Flushes the ledger to `log_path` exactly once when the block exits,
        whether it returns, stops early, raises, or the process receives
        SIGINT/SIGTERM. SIGTERM is turned into KeyboardInterrupt for the
        duration of the block.
        """
        def _on_sigterm(signum, frame):
            raise KeyboardInterrupt(f"signal {signum}")

        previous_handler = None
        try:
            previous_handler = signal.signal(signal.SIGTERM, _on_sigterm)
        except ValueError:
            # not in the main thread; SIGINT still arrives as KeyboardInterrupt
            log.debug("Cannot install SIGTERM handler outside the main thread.")

        try:
            yield self
        finally:
            try:
                self.persist(log_path)
            except (OSError, ValueError) as e:
                log.error(f"Failed to write ledger to '{log_path}': {e}")
            finally:
                if previous_handler is not None:
                    signal.signal(signal.SIGTERM, previous_handler)


def load_ledger(log_path: Path) -> List[Path]:
    if not log_path.is_file():
        raise StateError(f"No prior run: ledger '{log_path}' not found, nothing to undo.")
    # only the separator splits entries; \r, \x85 or U+2028 belong to the name
    chunks = log_path.read_bytes().split(LEDGER_SEPARATOR)
    return [Path(os.fsdecode(chunk)) for chunk in chunks if chunk]


class UndoExecutor:
    def __init__(self, log_path: Path, console: Optional[ConsoleClass] = None, quiet_mode: bool = False):
        self.log_path = log_path
        self.quiet_mode = quiet_mode
        self.console = console if console is not None else make_console(quiet=quiet_mode)

    def preview(self) -> List[Path]:
        entries = load_ledger(self.log_path)
        table = TableClass(title=f"Undo plan ({len(entries)} entries)", show_header=True, header_style="bold magenta")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Type", width=6)
        table.add_column("Path", style="cyan")
        for idx, p in enumerate(entries, 1):
            if p.is_dir() and not p.is_symlink():
                kind = "dir"
            elif p.exists() or p.is_symlink():
                kind = "file"
            else:
                kind = "[dim]gone[/dim]"
            table.add_row(str(idx), kind, safe_markup(p))
        self.console.print(table)
        return entries

    def run(self) -> UndoReport:
        """
        Removes every path recorded by the last run, then deletes the ledger.

        Directories are removed recursively. Entries that no longer exist are
        ignored, so running undo after a partial manual cleanup is safe.
        """
        entries = load_ledger(self.log_path)
        report = UndoReport()
        self.console.print(f"Undoing {len(entries)} recorded item(s) from {path_text(self.log_path)}")

        for p in entries:
            is_dir = p.is_dir() and not p.is_symlink()
            try:
                if not remove_path(p):
                    report.missing += 1
                    log.debug(f"Already gone: '{p}'")
                    continue
            except OSError as e:
                report.failed += 1
                log.error(f"Could not remove '{p}': {e}")
                self.console.print(f"  [bold red]Failed[/bold red] {path_text(p, None)}: {safe_markup(e)}")
                continue

            if is_dir:
                report.removed_dirs += 1
                log.info(f"Removed directory '{p}'")
                self.console.print(f"  Removed directory {path_text(p)}")
            else:
                report.removed_files += 1
                log.info(f"Removed file '{p}'")
                self.console.print(f"  Removed file {path_text(p)}")

        os.remove(self.log_path)
        log.info(f"Undo complete, ledger '{self.log_path}' deleted. {report}")
        self.console.print(
            f"Undo complete: {report.removed_files} file(s), {report.removed_dirs} dir(s) removed"
            + (f", {report.missing} already gone" if report.missing else "")
            + (f", [red]{report.failed} failed[/red]" if report.failed else "")
            + "."
        )
        return report
