# vlink_app/enums.py
from enum import Enum, IntEnum, auto


class LinkMode(Enum):
    """Strategy used by the LinkPlanner. Exactly one is active per run."""
    VERBATIM = auto()    # -o: original names, one level, collisions skipped
    RECURSIVE = auto()   # -r: mirror the source tree, collisions renamed
    SEQUENTIAL = auto()  # default / -f: '<name> - sXXeYY.<ext>'

    def __str__(self):
        return self.name.lower()


class EntryKind(Enum):
    FILE = "file"
    DIR = "dir"

    def __str__(self):
        return self.value


class CollisionPolicy(Enum):
    """
    How the TargetNameResolver reacts when the desired name already exists.
    """
    SKIP = auto()             # silently skip the item, never prompt
    RENAME_REQUIRED = auto()  # prompt; blank answers are rejected
    DEFAULT_ACCEPT = auto()   # prompt; blank answer keeps the default name and overwrites


class ExitCode(IntEnum):
    SUCCESS = 0
    MISSING_ARGUMENT = 1
    SOURCE_MISSING = 2
    DESTINATION_INVALID = 3
    INVALID_SEQUENCE = 4
    NO_PRIOR_RUN = 5
    CONFIG_ERROR = 6
    INVALID_FILTER = 7
    INTERRUPTED = 130
