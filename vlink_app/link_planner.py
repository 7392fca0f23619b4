# vlink_app/link_planner.py
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .enums import CollisionPolicy, EntryKind, LinkMode
from .exceptions import LinkError, ValidationError
from .file_system_ops import create_hard_link, make_directories, replace_with_hard_link
from .ledger import ActionLedger, can_record
from .models import (
    Accept, AbortAll, Decision, DiscoveryResult, FileEntry, Reanchor, RunSummary
)
from .resolver import TargetNameResolver
from .sequence import SequenceCounter, sequential_name
from .snapshot import DestinationSnapshot
from .ui_utils import ConsoleClass, make_console, path_text, safe_markup

log = logging.getLogger(__name__)


class LinkPlanner:
    """
    Runs one linking strategy over the discovered items.

    Owns the snapshot and the sequence counter for the duration of the run.
    Every successful creation is appended to the ledger and, when it lands
    directly in the destination root, recorded in the snapshot before the
    next item is resolved.
    """

    def __init__(
        self,
        destination: Path,
        snapshot: DestinationSnapshot,
        resolver: TargetNameResolver,
        ledger: ActionLedger,
        counter: Optional[SequenceCounter] = None,
        *,
        interactive: bool = True,
        console: Optional[ConsoleClass] = None,
        prompt_console: Optional[ConsoleClass] = None,
    ):
        self.destination = destination
        self.snapshot = snapshot
        self.resolver = resolver
        self.ledger = ledger
        self.counter = counter if counter is not None else SequenceCounter()
        self.interactive = interactive
        self.console = console if console is not None else make_console()
        # per-file context for the prompts, shown even when `console` is quiet
        self.prompt_console = prompt_console if prompt_console is not None else self.console

    def run(self, mode: LinkMode, discovery: DiscoveryResult) -> RunSummary:
        log.info(f"Starting {mode} run into '{self.destination}' (interactive={self.interactive}).")
        if mode is LinkMode.VERBATIM:
            summary = self.link_verbatim(discovery.files)
        elif mode is LinkMode.RECURSIVE:
            summary = self.link_recursive(discovery)
        else:
            summary = self.link_sequential(discovery.files)
        log.info(f"Run finished: {summary.created} created, {summary.skipped} skipped, {summary.failed} failed"
                 f"{', ended by operator' if summary.aborted else ''}"
                 f"{', range end reached' if summary.ceiling_reached else ''}.")
        return summary

    # --- primitives -------------------------------------------------------

    def _record(self, parent: Path, name: str, kind: EntryKind, summary: RunSummary) -> Path:
        target = parent / name
        self.ledger.append(target)
        if parent == self.destination:
            self.snapshot.record(name, kind)
        summary.created += 1
        return target

    def _unrecordable(self, target: Path, summary: RunSummary) -> bool:
        if can_record(target):
            return False
        message = f"Refusing to create '{target}': a line break in the name cannot be recorded for undo."
        summary.failed += 1
        summary.messages.append(message)
        log.error(message)
        self.console.print(f"[bold red]Not created:[/bold red] {safe_markup(message)}")
        return True

    def _link(self, entry: FileEntry, parent: Path, name: str, summary: RunSummary, overwrite: bool = False) -> bool:
        target = parent / name
        if self._unrecordable(target, summary):
            return False
        try:
            if overwrite:
                replace_with_hard_link(entry.source, target)
            else:
                create_hard_link(entry.source, target)
        except LinkError as e:
            summary.failed += 1
            summary.messages.append(str(e))
            log.error(str(e))
            self.console.print(f"[bold red]Link failed:[/bold red] {path_text(entry.source, None)}: {safe_markup(e)}")
            return False
        self._record(parent, name, EntryKind.FILE, summary)
        verb = "Replaced" if overwrite else "Linked"
        log.info(f"{verb} '{entry.source}' -> '{target}'")
        self.console.print(f"[green]{verb}:[/green] {path_text(target)}")
        return True

    def _make_dir(self, parent: Path, name: str, summary: RunSummary) -> Optional[Path]:
        target = parent / name
        if self._unrecordable(target, summary):
            return None
        try:
            make_directories(target)
        except LinkError as e:
            summary.failed += 1
            summary.messages.append(str(e))
            log.error(str(e))
            self.console.print(f"[bold red]Directory failed:[/bold red] {safe_markup(e)}")
            return None
        self._record(parent, name, EntryKind.DIR, summary)
        log.info(f"Created directory '{target}'")
        self.console.print(f"[green]Created directory:[/green] {path_text(target)}")
        return target

    def _skip(self, what: str, summary: RunSummary) -> None:
        summary.skipped += 1
        self.console.print(f"[yellow]Skipped[/yellow] {path_text(what, None)}")

    # --- strategies -------------------------------------------------------

    def link_verbatim(self, files: List[FileEntry]) -> RunSummary:
        """Original names, destination root only; existing names are skipped without asking."""
        summary = RunSummary()
        for entry in files:
            decision = self.resolver.resolve(self.destination, entry.name, EntryKind.FILE, CollisionPolicy.SKIP)
            if isinstance(decision, Accept):
                self._link(entry, self.destination, decision.name, summary)
            else:
                summary.skipped += 1
        return summary

    def link_recursive(self, discovery: DiscoveryResult) -> RunSummary:
        summary = RunSummary()
        dir_targets: Dict[Path, Path] = {}

        for d in discovery.dirs:
            decision = self.resolver.resolve(self.destination, d.name, EntryKind.DIR, CollisionPolicy.RENAME_REQUIRED)
            if isinstance(decision, AbortAll):
                summary.aborted = True
                return summary
            if not isinstance(decision, Accept):
                self._skip(f"directory {d.name}", summary)
                continue
            target = self._make_dir(self.destination, decision.name, summary)
            if target is not None:
                dir_targets[d.source] = target

        for entry in discovery.files:
            parts = entry.relative.parts
            if len(parts) == 1:
                parent = self.destination
            else:
                top_target = dir_targets.get(discovery.source_root / parts[0])
                if top_target is None:
                    log.info(f"'{entry.relative}' belongs to a skipped directory, skipping.")
                    summary.skipped += 1
                    continue
                parent = top_target.joinpath(*parts[1:-1])
                if parent != top_target:
                    try:
                        make_directories(parent)
                    except LinkError as e:
                        summary.failed += 1
                        summary.messages.append(str(e))
                        log.error(str(e))
                        continue

            decision = self.resolver.resolve(parent, entry.name, EntryKind.FILE, CollisionPolicy.RENAME_REQUIRED)
            if isinstance(decision, AbortAll):
                summary.aborted = True
                break
            if not isinstance(decision, Accept):
                self._skip(str(entry.relative), summary)
                continue
            self._link(entry, parent, decision.name, summary)

        return summary

    def _resolve_sequential(self, entry: FileEntry, policy: CollisionPolicy) -> Decision:
        while True:
            desired = sequential_name(entry.name, self.counter.format())
            if self.interactive:
                self.prompt_console.print(f"\nSource: {path_text(entry.name)}")
                self.prompt_console.print(f"Default name: {path_text(desired, 'green')}")
            decision = self.resolver.resolve(
                self.destination, desired, EntryKind.FILE, policy,
                confirm_default=self.interactive, allow_reanchor=self.interactive,
            )
            if not isinstance(decision, Reanchor):
                return decision
            try:
                self.counter.override(decision.season, decision.episode, decision.season_digits, decision.episode_digits)
            except ValidationError as e:
                self.prompt_console.print(f"[red]{safe_markup(e)}[/red]")
                continue
            self.prompt_console.print(f"Sequence reset to [bold]{self.counter.format()}[/bold]")

    def link_sequential(self, files: List[FileEntry]) -> RunSummary:
        """
        '<name> - sXXeYY.<ext>' for every file, ordered by base name.

        The counter advances only after a link was actually created. Once the
        ceiling is passed the remaining files are not processed.
        """
        summary = RunSummary()
        policy = CollisionPolicy.DEFAULT_ACCEPT if self.interactive else CollisionPolicy.RENAME_REQUIRED

        for entry in sorted(files, key=lambda e: e.name):
            if self.counter.reached_ceiling():
                summary.ceiling_reached = True
                log.info(f"Reached end of range {self.counter.format_ceiling()}, stopping.")
                self.console.print(f"Reached end of range {self.counter.format_ceiling()}, remaining files not processed.")
                break

            decision = self._resolve_sequential(entry, policy)
            if isinstance(decision, AbortAll):
                summary.aborted = True
                self.console.print("Stopped processing remaining files.")
                break
            if not isinstance(decision, Accept):
                self._skip(entry.name, summary)
                continue
            if self._link(entry, self.destination, decision.name, summary, overwrite=decision.overwrite):
                self.counter.advance()

        return summary
