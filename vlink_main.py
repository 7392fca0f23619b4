#!/usr/bin/env python3
import sys
import logging
from pathlib import Path
from typing import Optional

from vlink_app.cli import create_parser, parse_arguments, resolve_positionals
from vlink_app.config_manager import ConfigManager, ConfigHelper, write_default_config
from vlink_app.discovery import discover
from vlink_app.enums import ExitCode, LinkMode
from vlink_app.exceptions import ConfigError, StateError, ValidationError, VlinkError
from vlink_app.ledger import ActionLedger, UndoExecutor, resolve_ledger_path
from vlink_app.link_planner import LinkPlanner
from vlink_app.log_setup import setup_logging
from vlink_app.models import RunSummary
from vlink_app.preview import show_preview
from vlink_app.resolver import TargetNameResolver
from vlink_app.sequence import SequenceCounter
from vlink_app.snapshot import DestinationSnapshot
from vlink_app.ui_utils import (
    ConsoleClass, escape, make_confirm, make_console, make_prompt_reader, path_text, print_stderr_message
)

log = logging.getLogger("vlink_app")


def select_mode(args) -> LinkMode:
    if args.recursive:
        return LinkMode.RECURSIVE
    if args.original_name:
        return LinkMode.VERBATIM
    return LinkMode.SEQUENTIAL


def print_created(console: ConsoleClass, ledger: ActionLedger, ledger_path: Path, fast: bool) -> None:
    if fast:
        console.print(f"\nFast mode complete, {len(ledger)} item(s) created:")
    elif len(ledger):
        console.print(f"\nCreated {len(ledger)} item(s):")
    else:
        console.print("\nNothing was created.")
    for p in ledger:
        console.print(f"  {path_text(p)}")
    console.print(f"Ledger written to {path_text(ledger_path)} (run with -undo to revert).")


def run_undo(args, cfg: ConfigHelper, console: ConsoleClass, is_quiet: bool) -> int:
    ledger_path = resolve_ledger_path(cfg('ledger_path'))
    executor = UndoExecutor(ledger_path, console=console, quiet_mode=is_quiet)
    try:
        if args.dry_run:
            executor.preview()
            return ExitCode.SUCCESS
        report = executor.run()
    except StateError as e:
        log.error(str(e))
        print_stderr_message(console, f"[bold red]{escape(str(e))}[/bold red]", is_quiet)
        return ExitCode.NO_PRIOR_RUN
    if report.failed:
        print_stderr_message(console, f"[yellow]{report.failed} item(s) could not be removed, the ledger was deleted anyway.[/yellow]", is_quiet)
    return ExitCode.SUCCESS


def main(argv=None) -> int:
    args = parse_arguments(argv)
    is_quiet = args.quiet
    console = make_console(quiet=is_quiet)
    ledger: Optional[ActionLedger] = None

    try:
        if args.generate_config is not None:
            setup_logging(log_level_console=logging.INFO)
            target = write_default_config(args.generate_config)
            console.print(f"[green]Default configuration file generated at: {target}[/green]")
            return ExitCode.SUCCESS

        config_manager_instance = ConfigManager(config_path_override=args.config)
        cfg = ConfigHelper(config_manager_instance, args)

        log_level_str = cfg('log_level', 'INFO')
        setup_logging(
            log_level_console=getattr(logging, log_level_str.upper(), logging.INFO),
            log_file=cfg('log_file', None),
            quiet=is_quiet,
        )
        log.debug(f"Parsed args: {args}")
        log.debug(f"Using profile: {args.profile}")

        if args.undo:
            return run_undo(args, cfg, console, is_quiet)

        try:
            resolve_positionals(args)
        except ValidationError as e:
            print_stderr_message(console, f"[bold red]{escape(str(e))}[/bold red]", is_quiet)
            return ExitCode.MISSING_ARGUMENT

        if args.source is None:
            create_parser().print_help()
            return ExitCode.MISSING_ARGUMENT

        source = Path(args.source).expanduser()
        if not source.exists():
            log.error(f"Source path does not exist: {source}")
            print_stderr_message(console, f"[bold red]Source path does not exist:[/bold red] {path_text(source, None)}", is_quiet)
            return ExitCode.SOURCE_MISSING

        destination: Optional[Path] = None
        if args.destination is not None:
            destination = Path(args.destination).expanduser().resolve()
            if not destination.is_dir():
                log.error(f"Destination must be an existing directory: {destination}")
                print_stderr_message(console, f"[bold red]Destination must be an existing directory:[/bold red] {path_text(destination, None)}", is_quiet)
                return ExitCode.DESTINATION_INVALID

        mode = select_mode(args)
        counter: Optional[SequenceCounter] = None
        if mode is LinkMode.SEQUENTIAL:
            token = args.sequence or cfg('default_sequence')
            try:
                counter = SequenceCounter.from_token(token)
            except ValidationError as e:
                log.error(str(e))
                print_stderr_message(console, f"[bold red]{escape(str(e))}[/bold red]", is_quiet)
                return ExitCode.INVALID_SEQUENCE

        filter_regex = cfg('filter_regex')
        video_extensions = cfg.get_list('video_extensions')
        try:
            discovery = discover(source, mode, video_extensions, filter_regex)
        except ValidationError as e:
            log.error(str(e))
            print_stderr_message(console, f"[bold red]{escape(str(e))}[/bold red]", is_quiet)
            return ExitCode.INVALID_FILTER

        if destination is None:
            show_preview(console, discovery, mode, counter, video_extensions, filter_regex)
            return ExitCode.SUCCESS

        snapshot = DestinationSnapshot.load(destination)
        # prompts stay visible in quiet mode
        prompt_console = make_console()
        resolver = TargetNameResolver(
            snapshot,
            make_prompt_reader(prompt_console),
            console,
            skip_keyword=cfg('skip_keyword'),
            end_keyword=cfg('end_keyword'),
            overwrite_on_blank=cfg('overwrite_on_blank'),
            confirm=make_confirm(prompt_console),
            prompt_console=prompt_console,
        )
        ledger = ActionLedger()
        planner = LinkPlanner(
            destination, snapshot, resolver, ledger, counter,
            interactive=not args.fast, console=console, prompt_console=prompt_console,
        )
        ledger_path = resolve_ledger_path(cfg('ledger_path'))
        with ledger.persist_on_exit(ledger_path):
            summary: RunSummary = planner.run(mode, discovery)

        print_created(console, ledger, ledger_path, args.fast)
        if summary.failed:
            print_stderr_message(console, f"[yellow]{summary.failed} item(s) could not be linked, see messages above.[/yellow]", is_quiet)
        return ExitCode.SUCCESS

    except ConfigError as e_cfg:
        print_stderr_message(console, f"[bold red]Configuration error:[/bold red] {escape(str(e_cfg))}", is_quiet)
        if log.handlers: log.critical(f"Config Error: {e_cfg}")
        return ExitCode.CONFIG_ERROR
    except KeyboardInterrupt:
        if log.handlers: log.warning("Operation interrupted by user.")
        created = len(ledger) if ledger is not None else 0
        print_stderr_message(console, f"\nInterrupted. {created} item(s) created so far were recorded for undo.", is_quiet)
        return ExitCode.INTERRUPTED
    except VlinkError as e_app:
        if log.handlers: log.error(f"Application Error: {e_app}", exc_info=True)
        print_stderr_message(console, f"[bold red]ERROR:[/bold red] {escape(str(e_app))}", is_quiet)
        return ExitCode.MISSING_ARGUMENT


def run():
    sys.exit(int(main()))


if __name__ == "__main__":
    run()
