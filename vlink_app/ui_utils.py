# vlink_app/ui_utils.py
import sys
from typing import Any, Callable, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

ConsoleClass = Console
ConfirmClass = Confirm
PromptClass = Prompt
TableClass = Table

AskFunc = Callable[[str], str]


def make_console(quiet: bool = False) -> Console:
    return Console(quiet=quiet, highlight=False)


def print_stderr_message(console_obj: Console, message: Any, is_quiet: bool = False) -> None:
    """
    Prints a message to stderr. Errors are shown even in quiet mode, as plain text.
    """
    if is_quiet:
        plain_message = message.plain if hasattr(message, 'plain') else Text.from_markup(str(message)).plain
        print(plain_message, file=sys.stderr)
        return
    console_stderr_temp = Console(file=sys.stderr, width=console_obj.width, highlight=False)
    console_stderr_temp.print(message)


def make_prompt_reader(console: Console) -> AskFunc:
    """
    Returns the `ask(message) -> str` callable used by the collision protocol.

    A blank line is returned as ''. EOF propagates as EOFError.
    """
    def ask(message: str) -> str:
        return PromptClass.ask(message, console=console, default="", show_default=False)
    return ask


def make_confirm(console: Console) -> Callable[[str], bool]:
    def confirm(message: str, default: bool = False) -> bool:
        return ConfirmClass.ask(message, console=console, default=default)
    return confirm


def safe_markup(value: Any) -> str:
    """
    Markup-escaped text that any terminal encoding can print. Undecodable
    bytes in file names (kept as surrogates by os.fsdecode) show as U+FFFD.
    """
    text = str(value).encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")
    return escape(text)


def path_text(path: Any, style: Optional[str] = "cyan") -> str:
    """Markup-safe rendering of a path for console.print."""
    if style:
        return f"[{style}]{safe_markup(path)}[/{style}]"
    return safe_markup(path)
