import argparse
import logging
from pathlib import Path
from . import __version__
from .exceptions import ValidationError
from .sequence import SEQUENCE_TOKEN_PATTERN

log = logging.getLogger(__name__)

EPILOG = """\
positional arguments are matched in order: the first is the source, then
each remaining one is taken as the sequence (sXXeYY[-sXXeYY]), an existing
destination directory, the filter regex, or the destination.

examples:
  vlink ~/Downloads/Show ~/Media/Show s01e01
  vlink -r ~/Downloads/Pack ~/Media
  vlink -f ~/Downloads/Show ~/Media/Show s02e01-s02e12 '1080p'
  vlink -undo
"""

def create_parser():
    parser = argparse.ArgumentParser(
        prog="vlink",
        description=f"Hardlink video files into a library folder, optionally renumbered (v{__version__}).",
        epilog=EPILOG,
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument('-o', '--original-name', action='store_true', default=False, help='Keep original file names (top level of the source only).')
    mode_group.add_argument('-r', '--recursive', action='store_true', default=False, help='Mirror the whole source tree with original names.')
    mode_group.add_argument('-f', '--fast', action='store_true', default=False, help='Renumber without asking per file (prompts only on collisions).')
    mode_group.add_argument('-undo', '--undo', action='store_true', default=False, help='Remove everything created by the last run and exit.')

    parser.add_argument('--dry-run', action='store_true', default=False, help='With -undo: list what would be removed without removing it.')
    parser.add_argument('-op', '--origin-path', dest='source', type=Path, default=None, help='Source file or directory.')
    parser.add_argument('-lp', '--link-path', dest='destination', type=Path, default=None, help='Destination directory (must exist). Without it only a preview is shown.')
    parser.add_argument('-sn', '--sequence', dest='sequence', type=str, default=None, help="Start sequence, e.g. 's01e01' or the range 's01e01-s01e12'.")
    parser.add_argument('-fi', '--filter', dest='filter_regex', type=str, default=None, help='Regular expression searched in file names; replaces the extension filter.')

    parser.add_argument('--config', type=Path, help='Path to TOML config file (overrides default search).')
    parser.add_argument('--profile', type=str, default='default', help='Configuration profile to use.')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default=None, help='Console logging level (overrides config).')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path (overrides config).')
    parser.add_argument('--quiet', '-q', action='store_true', default=False, help='Suppress non-essential console output. Prompts and errors are still shown.')
    parser.add_argument('--generate-config', type=Path, metavar='PATH', default=None, help='Write a default vlink.toml to PATH and exit.')

    parser.add_argument('positionals', nargs='*', metavar='ARG', help='SOURCE [DEST] [SEQUENCE] [FILTER], see below.')
    return parser


def resolve_positionals(args: argparse.Namespace) -> argparse.Namespace:
    """
    Assigns free positional arguments to source, destination, sequence and
    filter, leaving values given through the named options untouched.
    Raises ValidationError for a positional that fits nowhere.
    """
    remaining = list(getattr(args, 'positionals', None) or [])
    if args.source is None and remaining:
        args.source = Path(remaining.pop(0))

    for arg in remaining:
        if args.sequence is None and SEQUENCE_TOKEN_PATTERN.match(arg):
            args.sequence = arg
            continue
        if args.destination is None and Path(arg).is_dir():
            args.destination = Path(arg)
            continue
        if args.filter_regex is None:
            args.filter_regex = arg
            continue
        if args.destination is None:
            args.destination = Path(arg)
            continue
        raise ValidationError(f"Unrecognised extra argument: {arg}")

    log.debug(f"Arguments: source={args.source} destination={args.destination} "
              f"sequence={args.sequence} filter={args.filter_regex}")
    return args


def parse_arguments(argv=None):
    parser = create_parser()
    args = parser.parse_intermixed_args(argv)
    if not hasattr(args, 'profile') or args.profile is None:
        args.profile = 'default'
    return args
