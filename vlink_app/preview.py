# vlink_app/preview.py
import logging
from typing import Optional, Sequence

from .discovery import count_files_in_dir, DEFAULT_VIDEO_EXTENSIONS
from .enums import LinkMode
from .models import DiscoveryResult
from .sequence import SequenceCounter, sequential_name
from .ui_utils import ConsoleClass, TableClass, escape, safe_markup

log = logging.getLogger(__name__)


def show_preview(
    console: ConsoleClass,
    discovery: DiscoveryResult,
    mode: LinkMode,
    counter: Optional[SequenceCounter] = None,
    video_extensions: Sequence[str] = DEFAULT_VIDEO_EXTENSIONS,
    filter_regex: Optional[str] = None,
) -> int:
    """
    Lists what a run would pick up without touching the filesystem.
    Returns the number of files listed.
    """
    log.info(f"Preview of '{discovery.source_root}' ({mode}), no destination given.")
    console.rule("Preview")
    if filter_regex:
        console.print(f"Filter: [magenta]{escape(filter_regex)}[/magenta]")

    if discovery.dirs:
        dir_table = TableClass(title="Directories", show_header=True, header_style="bold magenta")
        dir_table.add_column("Directory", style="cyan")
        dir_table.add_column("Files", justify="right")
        for d in discovery.dirs:
            n = count_files_in_dir(d.source, mode, video_extensions, filter_regex)
            if filter_regex and n == 0:
                continue
            dir_table.add_row(safe_markup(d.name), str(n))
        if dir_table.row_count:
            console.print(dir_table)

    listed = 0
    if discovery.files:
        file_table = TableClass(title="Files", show_header=True, header_style="bold magenta")
        file_table.add_column("File", style="cyan")
        numbered = mode is LinkMode.SEQUENTIAL
        if numbered:
            file_table.add_column("->", justify="center")
            file_table.add_column("New name", style="green")
            preview_counter = counter.copy() if counter is not None else SequenceCounter()
            entries = sorted(discovery.files, key=lambda e: e.name)
        else:
            preview_counter = None
            entries = discovery.files

        truncated = False
        for entry in entries:
            if preview_counter is not None:
                if preview_counter.reached_ceiling():
                    truncated = True
                    break
                file_table.add_row(safe_markup(entry.name), "->", safe_markup(sequential_name(entry.name, preview_counter.format())))
                preview_counter.advance()
            else:
                file_table.add_row(safe_markup(entry.relative))
            listed += 1
        console.print(file_table)
        if truncated and preview_counter is not None:
            console.print(f"  (end of range {preview_counter.format_ceiling()} reached, remaining files not shown)")
    elif filter_regex:
        console.print("Files: (no files match the filter)")
    else:
        console.print("Files: (none)")

    console.rule("End of preview")
    return listed
