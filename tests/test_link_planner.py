# tests/test_link_planner.py

import errno
import io
import os
import sys
import pytest
from pathlib import Path
from rich.console import Console

from vlink_app.discovery import discover
from vlink_app.enums import LinkMode
from vlink_app.ledger import ActionLedger, UndoExecutor, load_ledger
from vlink_app.link_planner import LinkPlanner
from vlink_app.resolver import TargetNameResolver
from vlink_app.sequence import SequenceCounter
from vlink_app.snapshot import DestinationSnapshot


@pytest.fixture
def make_planner(dest_dir, console):
    """Builds a planner against dest_dir; the snapshot is read when the factory is called."""
    def _factory(ask, token="s01e01", interactive=True, **resolver_kwargs):
        snapshot = DestinationSnapshot.load(dest_dir)
        resolver = TargetNameResolver(snapshot, ask, console, **resolver_kwargs)
        ledger = ActionLedger()
        planner = LinkPlanner(dest_dir, snapshot, resolver, ledger, SequenceCounter.from_token(token),
                              interactive=interactive, console=console)
        return planner, ledger
    return _factory


def _same_inode(a: Path, b: Path) -> bool:
    return os.stat(a).st_ino == os.stat(b).st_ino


# === Sequential ===

def test_sequential_fast_creates_numbered_links(make_planner, scripted_ask, source_dir, dest_dir):
    """a.mkv, b.mkv with s01e01 into an empty destination."""
    # Arrange
    ask = scripted_ask()
    planner, ledger = make_planner(ask, interactive=False)
    discovery = discover(source_dir, LinkMode.SEQUENTIAL)
    # Act
    summary = planner.run(LinkMode.SEQUENTIAL, discovery)
    # Assert
    assert ledger.entries == [dest_dir / "a - s01e01.mkv", dest_dir / "b - s01e02.mkv"]
    assert summary.created == 2
    assert ask.prompts == []
    assert _same_inode(source_dir / "a.mkv", dest_dir / "a - s01e01.mkv")
    assert _same_inode(source_dir / "b.mkv", dest_dir / "b - s01e02.mkv")
    assert not (dest_dir / "notes - s01e03.txt").exists()

def test_sequential_fast_collision_end_creates_nothing(make_planner, scripted_ask, source_dir, dest_dir):
    """An existing first target halts the fast run on a prompt; 'end' stops it."""
    (dest_dir / "a - s01e01.mkv").write_text("existing")
    ask = scripted_ask("end")
    planner, ledger = make_planner(ask, interactive=False)

    summary = planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert len(ask.prompts) == 1
    assert summary.aborted
    assert summary.created == 0
    assert len(ledger) == 0
    assert (dest_dir / "a - s01e01.mkv").read_text() == "existing"
    assert not (dest_dir / "b - s01e02.mkv").exists()

def test_sequential_fast_collision_rename(make_planner, scripted_ask, source_dir, dest_dir):
    (dest_dir / "a - s01e01.mkv").write_text("existing")
    ask = scripted_ask("a - s01e01 v2")
    planner, ledger = make_planner(ask, interactive=False)

    planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert ledger.entries == [dest_dir / "a - s01e01 v2.mkv", dest_dir / "b - s01e02.mkv"]

def test_sequential_interactive_accept_skip_and_renumber(make_planner, scripted_ask, source_dir, dest_dir):
    # Arrange: skip a.mkv, then renumber b.mkv to s01e10 and accept it
    ask = scripted_ask("pass", "s01e10", "")
    planner, ledger = make_planner(ask, interactive=True)
    # Act
    summary = planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))
    # Assert
    assert ledger.entries == [dest_dir / "b - s01e10.mkv"]
    assert summary.skipped == 1
    assert summary.created == 1
    # a skipped file does not consume a number
    assert planner.counter.format() == "s01e11"

def test_sequential_counter_only_advances_after_success(make_planner, scripted_ask, source_dir, dest_dir, mocker):
    real_link = os.link
    def flaky_link(src, dst):
        if Path(src).name == "a.mkv":
            raise OSError(errno.EACCES, "Permission denied")
        return real_link(src, dst)
    mocker.patch("os.link", side_effect=flaky_link)
    planner, ledger = make_planner(scripted_ask(), interactive=False)

    summary = planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert summary.failed == 1
    assert ledger.entries == [dest_dir / "b - s01e01.mkv"]
    assert all(p.exists() for p in ledger)

def test_sequential_halts_at_ceiling(make_planner, scripted_ask, tmp_path, dest_dir):
    src = tmp_path / "many"
    src.mkdir()
    for name in ["e1.mkv", "e2.mkv", "e3.mkv", "e4.mkv"]:
        (src / name).write_text(name)
    planner, ledger = make_planner(scripted_ask(), token="s02e05-s02e06", interactive=False)

    summary = planner.run(LinkMode.SEQUENTIAL, discover(src, LinkMode.SEQUENTIAL))

    assert summary.ceiling_reached
    assert ledger.entries == [dest_dir / "e1 - s02e05.mkv", dest_dir / "e2 - s02e06.mkv"]
    assert not (dest_dir / "e3 - s02e07.mkv").exists()

def test_sequential_renumber_outside_range_is_rejected(make_planner, scripted_ask, source_dir, dest_dir, console):
    ask = scripted_ask("s02e01", "", "end")
    planner, ledger = make_planner(ask, token="s01e01-s01e05", interactive=True)

    planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert "Season locked" in console.file.getvalue()
    assert ledger.entries == [dest_dir / "a - s01e01.mkv"]

def test_sequential_fast_blank_on_collision_is_rejected(make_planner, scripted_ask, source_dir, dest_dir):
    # Arrange
    target = dest_dir / "a - s01e01.mkv"
    target.write_text("old content")
    ask = scripted_ask("", "end")
    planner, ledger = make_planner(ask, interactive=False)
    # Act
    planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))
    # Assert
    assert ledger.entries == []
    assert target.read_text() == "old content"

def test_sequential_interactive_overwrite(make_planner, scripted_ask, source_dir, dest_dir):
    target = dest_dir / "a - s01e01.mkv"
    target.write_text("old content")
    # blank at the collision prompt overwrites a, then stop at b
    ask = scripted_ask("", "end")
    planner, ledger = make_planner(ask, interactive=True)

    planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert ledger.entries == [target]
    assert target.read_text() == "video a"
    assert _same_inode(source_dir / "a.mkv", target)
    assert not any(p.name.startswith("a - s01e01.vlinktmp_") for p in dest_dir.iterdir())


# === Verbatim ===

def test_verbatim_skips_existing_silently(make_planner, scripted_ask, tmp_path, dest_dir):
    src = tmp_path / "movies"
    src.mkdir()
    (src / "movie.mp4").write_text("new")
    (src / "other.mkv").write_text("other")
    (dest_dir / "movie.mp4").write_text("existing")
    ask = scripted_ask()
    planner, ledger = make_planner(ask)

    summary = planner.run(LinkMode.VERBATIM, discover(src, LinkMode.VERBATIM))

    assert ask.prompts == []
    assert ledger.entries == [dest_dir / "other.mkv"]
    assert summary.skipped == 1
    assert (dest_dir / "movie.mp4").read_text() == "existing"


# === Recursive ===

def test_recursive_mirrors_tree(make_planner, scripted_ask, nested_source_dir, dest_dir):
    planner, ledger = make_planner(scripted_ask())

    summary = planner.run(LinkMode.RECURSIVE, discover(nested_source_dir, LinkMode.RECURSIVE))

    assert (dest_dir / "top.mp4").is_file()
    assert (dest_dir / "Season 1" / "ep1.mkv").is_file()
    assert (dest_dir / "Season 1" / "extras" / "making-of.mkv").is_file()
    assert (dest_dir / "Specials" / "sp1.mkv").is_file()
    # top-level dirs are logged before any file; nested dirs are not logged
    assert ledger.entries[:2] == [dest_dir / "Season 1", dest_dir / "Specials"]
    assert dest_dir / "Season 1" / "extras" not in ledger.entries
    assert summary.created == 6

def test_recursive_renamed_top_directory_receives_its_files(make_planner, scripted_ask, nested_source_dir, dest_dir):
    # Arrange
    (dest_dir / "Season 1").mkdir()
    ask = scripted_ask("Season 1 (new)")
    planner, ledger = make_planner(ask)
    # Act
    planner.run(LinkMode.RECURSIVE, discover(nested_source_dir, LinkMode.RECURSIVE))
    # Assert
    renamed = dest_dir / "Season 1 (new)"
    assert (renamed / "ep1.mkv").is_file()
    assert (renamed / "extras" / "making-of.mkv").is_file()
    assert list((dest_dir / "Season 1").iterdir()) == []
    assert ledger.entries[0] == renamed

def test_recursive_skipped_directory_skips_its_files(make_planner, scripted_ask, nested_source_dir, dest_dir):
    (dest_dir / "Season 1").mkdir()
    planner, ledger = make_planner(scripted_ask("pass"))

    summary = planner.run(LinkMode.RECURSIVE, discover(nested_source_dir, LinkMode.RECURSIVE))

    assert not (dest_dir / "Season 1" / "ep1.mkv").exists()
    assert (dest_dir / "Specials" / "sp1.mkv").is_file()
    # the directory itself plus its two files
    assert summary.skipped == 3
    assert all("Season 1" not in str(p) for p in ledger)

def test_recursive_file_collision_prompts_for_new_name(make_planner, scripted_ask, nested_source_dir, dest_dir):
    (dest_dir / "top.mp4").write_text("existing")
    ask = scripted_ask("top-2")
    planner, ledger = make_planner(ask)

    planner.run(LinkMode.RECURSIVE, discover(nested_source_dir, LinkMode.RECURSIVE))

    assert (dest_dir / "top-2.mp4").is_file()
    assert dest_dir / "top-2.mp4" in ledger.entries

def test_recursive_end_stops_everything(make_planner, scripted_ask, nested_source_dir, dest_dir):
    (dest_dir / "Season 1").mkdir()
    planner, ledger = make_planner(scripted_ask("end"))

    summary = planner.run(LinkMode.RECURSIVE, discover(nested_source_dir, LinkMode.RECURSIVE))

    assert summary.aborted
    assert len(ledger) == 0
    assert not (dest_dir / "Specials").exists()


# === Link failures ===

def test_cross_device_failure_is_reported_and_run_continues(make_planner, scripted_ask, source_dir, dest_dir, mocker, console):
    mocker.patch("os.link", side_effect=OSError(errno.EXDEV, "Invalid cross-device link"))
    planner, ledger = make_planner(scripted_ask(), interactive=False)

    summary = planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))

    assert summary.failed == 2
    assert len(ledger) == 0
    assert "Cross-device link error" in console.file.getvalue()

@pytest.mark.skipif(sys.platform == "win32", reason="line breaks are not allowed in Windows file names")
def test_name_with_line_break_is_refused(make_planner, scripted_ask, tmp_path, dest_dir, console):
    src = tmp_path / "odd_source"
    src.mkdir()
    (src / "a.mkv").write_text("a")
    (src / "two\nlines.mkv").write_text("x")
    planner, ledger = make_planner(scripted_ask())

    summary = planner.run(LinkMode.VERBATIM, discover(src, LinkMode.VERBATIM))

    assert summary.failed == 1
    assert ledger.entries == [dest_dir / "a.mkv"]
    assert not (dest_dir / "two\nlines.mkv").exists()
    assert "line break" in console.file.getvalue()


# === Undecodable names ===

@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="needs a filesystem that accepts arbitrary name bytes")
def test_non_utf8_source_is_linked_recorded_and_undone(make_planner, scripted_ask, tmp_path, dest_dir, console):
    # Arrange
    src = tmp_path / "latin1_source"
    src.mkdir()
    (src / os.fsdecode(b"caf\xe9.mkv")).write_text("cafe")
    (src / "b.mkv").write_text("b")
    planner, ledger = make_planner(scripted_ask(), interactive=False)
    log_path = tmp_path / "last_run.log"
    # Act
    with ledger.persist_on_exit(log_path):
        planner.run(LinkMode.SEQUENTIAL, discover(src, LinkMode.SEQUENTIAL))
    # Assert
    created = [dest_dir / "b - s01e01.mkv", dest_dir / os.fsdecode(b"caf\xe9 - s01e02.mkv")]
    assert load_ledger(log_path) == created
    assert "caf\ufffd - s01e02.mkv" in console.file.getvalue()

    UndoExecutor(log_path, console=console).run()
    assert list(dest_dir.iterdir()) == []


# === Quiet output ===

def test_prompt_context_goes_to_prompt_console(scripted_ask, source_dir, dest_dir, console):
    """With a silenced main console the operator still sees what is being asked about."""
    # Arrange
    (dest_dir / "a - s01e01.mkv").write_text("existing")
    quiet = Console(file=io.StringIO(), quiet=True)
    snapshot = DestinationSnapshot.load(dest_dir)
    ask = scripted_ask("", "nonsense", "pass")
    resolver = TargetNameResolver(snapshot, ask, quiet, prompt_console=console)
    planner = LinkPlanner(dest_dir, snapshot, resolver, ActionLedger(), SequenceCounter.from_token("s01e01"),
                          console=quiet, prompt_console=console)
    # Act
    planner.run(LinkMode.SEQUENTIAL, discover(source_dir, LinkMode.SEQUENTIAL))
    # Assert
    out = console.file.getvalue()
    assert "Default name: a - s01e01.mkv" in out
    assert "Target already has a file named a - s01e01.mkv" in out
    assert "Default name: b - s01e02.mkv" in out
    assert "Please try again" in out
    assert quiet.file.getvalue() == ""
