# vlink_app/resolver.py
import logging
from pathlib import Path
from typing import Callable, Optional

from .enums import CollisionPolicy, EntryKind
from .models import Decision, Accept, Rename, Skip, AbortAll, Reanchor, Invalid
from .sequence import parse_renumber_token, extension_of
from .snapshot import DestinationSnapshot
from .ui_utils import AskFunc, ConsoleClass, escape, make_console, path_text

log = logging.getLogger(__name__)

DEFAULT_SKIP_KEYWORD = "pass"
DEFAULT_END_KEYWORD = "end"
_FORBIDDEN_NAMES = {".", ".."}


def interpret_response(
    raw: str,
    *,
    default_name: Optional[str] = None,
    suffix: str = "",
    skip_keyword: str = DEFAULT_SKIP_KEYWORD,
    end_keyword: str = DEFAULT_END_KEYWORD,
    allow_reanchor: bool = False,
    allow_rename: bool = True,
) -> Decision:
    """
    Turns one line of operator input into a decision. No I/O.

    - skip keyword -> Skip, end keyword -> AbortAll
    - blank -> Accept(default_name), or Invalid when there is no default
    - 'sXXeYY' -> Reanchor (only when allow_reanchor)
    - anything else -> Rename(text + suffix), or Invalid when renaming is not offered
    """
    text = raw.strip()
    if text == skip_keyword:
        return Skip()
    if text == end_keyword:
        return AbortAll()
    if not text:
        if default_name is not None:
            return Accept(default_name)
        return Invalid("Name cannot be empty.")
    if allow_reanchor:
        parsed = parse_renumber_token(text)
        if parsed is not None:
            return Reanchor(*parsed)
    if not allow_rename:
        return Invalid(f"Unrecognised input '{text}'.")
    if "/" in text or "\\" in text or "\0" in text or text in _FORBIDDEN_NAMES:
        return Invalid(f"'{text}' is not a valid name.")
    return Rename(f"{text}{suffix}")


class TargetNameResolver:
    """
    Decides the final name for one item being created under `parent`.

    Returns Accept, Skip, AbortAll or (when allowed) Reanchor; never raises
    for collisions. Lookups directly under the destination root go through
    the snapshot; nested directories are checked on disk.
    """

    def __init__(
        self,
        snapshot: DestinationSnapshot,
        ask: AskFunc,
        console: Optional[ConsoleClass] = None,
        *,
        skip_keyword: str = DEFAULT_SKIP_KEYWORD,
        end_keyword: str = DEFAULT_END_KEYWORD,
        overwrite_on_blank: bool = True,
        confirm: Optional[Callable[[str], bool]] = None,
        prompt_console: Optional[ConsoleClass] = None,
    ):
        self.snapshot = snapshot
        self.ask = ask
        self.console = console if console is not None else make_console()
        self.prompt_console = prompt_console if prompt_console is not None else self.console
        self.skip_keyword = skip_keyword
        self.end_keyword = end_keyword
        self.overwrite_on_blank = overwrite_on_blank
        self.confirm = confirm

    def existing_kind(self, parent: Path, name: str) -> Optional[EntryKind]:
        if self.snapshot.root is not None and parent == self.snapshot.root:
            return self.snapshot.contains(name)
        candidate = parent / name
        if candidate.is_dir() and not candidate.is_symlink():
            return EntryKind.DIR
        if candidate.exists() or candidate.is_symlink():
            return EntryKind.FILE
        return None

    def _read(self, message: str) -> str:
        try:
            return self.ask(message)
        except EOFError:
            log.warning("End of input while waiting for an answer; stopping the run.")
            return self.end_keyword

    def _interpret(self, raw: str, **kwargs) -> Decision:
        return interpret_response(raw, skip_keyword=self.skip_keyword, end_keyword=self.end_keyword, **kwargs)

    def resolve(
        self,
        parent: Path,
        desired: str,
        kind: EntryKind,
        policy: CollisionPolicy,
        *,
        confirm_default: bool = False,
        allow_reanchor: bool = False,
    ) -> Decision:
        existing = self.existing_kind(parent, desired)
        if existing is None:
            if not confirm_default:
                return Accept(desired)
            return self._confirm_default(desired, allow_reanchor)

        if policy is CollisionPolicy.SKIP:
            log.info(f"Target '{parent / desired}' exists, skipping.")
            self.console.print(f"[yellow]Exists, skipped:[/yellow] {path_text(desired, None)}")
            return Skip()

        label = "directory" if kind is EntryKind.DIR else "file"
        log.info(f"Collision: {label} '{desired}' already exists in '{parent}'.")
        self.prompt_console.print(f"[yellow]Target already has a {existing} named[/yellow] {path_text(desired)}")
        return self._collision_loop(parent, desired, kind, policy, allow_reanchor)

    def _confirm_default(self, desired: str, allow_reanchor: bool) -> Decision:
        hint = "Enter to accept"
        if allow_reanchor:
            hint += ", sXXeYY to renumber"
        hint += f", '{self.skip_keyword}' to skip, '{self.end_keyword}' to stop"
        while True:
            decision = self._interpret(self._read(hint), default_name=desired,
                                       allow_reanchor=allow_reanchor, allow_rename=False)
            if isinstance(decision, Invalid):
                self.prompt_console.print(f"[red]{escape(decision.reason)}[/red] Please try again.")
                continue
            return decision

    def _collision_loop(self, parent: Path, desired: str, kind: EntryKind,
                        policy: CollisionPolicy, allow_reanchor: bool) -> Decision:
        blank_accepts = policy is CollisionPolicy.DEFAULT_ACCEPT
        suffix = "" if kind is EntryKind.DIR else extension_of(desired)

        if kind is EntryKind.DIR:
            hint = "New directory name"
        else:
            hint = "New file name (without extension)"
        if allow_reanchor:
            hint += ", sXXeYY to renumber"
        hint += f", '{self.skip_keyword}' to skip, '{self.end_keyword}' to stop"
        if blank_accepts:
            hint += ", Enter to overwrite"

        while True:
            decision = self._interpret(
                self._read(hint),
                default_name=desired if blank_accepts else None,
                suffix=suffix,
                allow_reanchor=allow_reanchor,
            )

            if isinstance(decision, Invalid):
                self.prompt_console.print(f"[red]{escape(decision.reason)}[/red] Please try again.")
                continue

            if isinstance(decision, Accept):
                if self.existing_kind(parent, desired) is EntryKind.DIR:
                    self.prompt_console.print(f"[red]Cannot overwrite directory[/red] {path_text(desired, None)}. Please choose another name.")
                    continue
                if not self.overwrite_on_blank:
                    if self.confirm is None or not self.confirm(f"Overwrite existing '{desired}'?"):
                        continue
                log.info(f"Operator chose to overwrite '{parent / desired}'.")
                return Accept(desired, overwrite=True)

            if isinstance(decision, Rename):
                if self.existing_kind(parent, decision.name) is not None:
                    self.prompt_console.print(f"[yellow]Conflict:[/yellow] {path_text(decision.name, None)} already exists, try again.")
                    continue
                log.info(f"Operator renamed '{desired}' -> '{decision.name}'.")
                return Accept(decision.name)

            if isinstance(decision, Skip):
                log.info(f"Operator skipped '{desired}'.")
            elif isinstance(decision, AbortAll):
                log.info("Operator ended processing of remaining items.")
            return decision
