# vlink_app/sequence.py
import logging
import re
from typing import Optional, Tuple

from .models import SequenceState
from .exceptions import ValidationError

log = logging.getLogger(__name__)

# s01e01, s01e01-s01e12, s1e1,s1e24
SEQUENCE_TOKEN_PATTERN = re.compile(r'^s(\d+)e(\d+)(?:[,-]s(\d+)e(\d+))?$')
# Single pair typed at a prompt to renumber the current file
RENUMBER_PATTERN = re.compile(r'^s(\d+)e(\d+)$')


def parse_sequence_token(token: Optional[str]) -> SequenceState:
    """
    Parses 'sXXeYY[{,|-}sXXeZZ]' into a SequenceState.

    Digit widths are the literal digit counts typed (leading zeros included);
    with a second pair they grow to the widest of the two. A missing token
    yields s01e01 without ceiling.
    """
    if token is None or not token.strip():
        return SequenceState()

    m = SEQUENCE_TOKEN_PATTERN.match(token.strip())
    if not m:
        raise ValidationError(f"Invalid sequence '{token}'. Expected e.g. s01e01 or s01e01,s01e12")

    start_s_str, start_e_str, end_s_str, end_e_str = m.groups()
    state = SequenceState(
        season=int(start_s_str), episode=int(start_e_str),
        season_digits=len(start_s_str), episode_digits=len(start_e_str),
    )

    if end_s_str is not None:
        end_s, end_e = int(end_s_str), int(end_e_str)
        if end_s != state.season:
            raise ValidationError(f"Season mismatch: end season s{end_s_str} must equal start season s{start_s_str}")
        if end_e <= state.episode:
            raise ValidationError(f"Empty range: end episode {end_e} must be greater than start episode {state.episode}")
        state.range_end = end_e
        state.season_digits = max(state.season_digits, len(end_s_str))
        state.episode_digits = max(state.episode_digits, len(end_e_str))

    log.debug(f"Parsed sequence token '{token}' -> {state}")
    return state


def parse_renumber_token(text: str) -> Optional[Tuple[int, int, int, int]]:
    """Returns (season, episode, season_digits, episode_digits) for 'sXXeYY', else None."""
    m = RENUMBER_PATTERN.match(text.strip())
    if not m:
        return None
    s_str, e_str = m.groups()
    return int(s_str), int(e_str), len(s_str), len(e_str)


class SequenceCounter:
    def __init__(self, state: Optional[SequenceState] = None):
        self.state = state if state is not None else SequenceState()

    @classmethod
    def from_token(cls, token: Optional[str]) -> 'SequenceCounter':
        return cls(parse_sequence_token(token))

    @property
    def season(self) -> int:
        return self.state.season

    @property
    def episode(self) -> int:
        return self.state.episode

    @property
    def ceiling(self) -> Optional[int]:
        return self.state.range_end

    def format_pair(self, season: int, episode: int) -> str:
        return f"s{season:0{self.state.season_digits}d}e{episode:0{self.state.episode_digits}d}"

    def format(self) -> str:
        return self.format_pair(self.state.season, self.state.episode)

    def format_ceiling(self) -> Optional[str]:
        if self.state.range_end is None:
            return None
        return self.format_pair(self.state.season, self.state.range_end)

    def advance(self) -> None:
        self.state.episode += 1

    def override(self, season: int, episode: int, season_digits: int = 0, episode_digits: int = 0) -> None:
        if self.state.range_end is not None:
            if season != self.state.season:
                locked = f"s{self.state.season:0{self.state.season_digits}d}"
                raise ValidationError(f"Season locked: season must stay {locked} while a range is active")
            if episode > self.state.range_end:
                raise ValidationError(f"Beyond range: episode {episode} exceeds end of range {self.format_ceiling()}")

        # widths never shrink
        self.state.season_digits = max(self.state.season_digits, season_digits)
        self.state.episode_digits = max(self.state.episode_digits, episode_digits)
        self.state.season = season
        self.state.episode = episode
        log.info(f"Sequence renumbered to {self.format()}")

    def reached_ceiling(self) -> bool:
        return self.state.range_end is not None and self.state.episode > self.state.range_end

    def copy(self) -> 'SequenceCounter':
        s = self.state
        return SequenceCounter(SequenceState(s.season, s.episode, s.season_digits, s.episode_digits, s.range_end))


def sequential_name(original_name: str, sequence_label: str) -> str:
    """'Show.mkv' + 's01e02' -> 'Show - s01e02.mkv'."""
    stem, dot, ext = original_name.rpartition('.')
    if not dot or not stem:
        return f"{original_name} - {sequence_label}"
    return f"{stem} - {sequence_label}.{ext}"


def extension_of(name: str) -> str:
    """Suffix including the dot, or '' for names without one."""
    stem, dot, ext = name.rpartition('.')
    return f".{ext}" if dot and stem else ""
