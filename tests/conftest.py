# tests/conftest.py
import io
import pytest
from pathlib import Path
from unittest.mock import MagicMock
import sys
import argparse

# Ensure the app package is findable by pytest by adding the project root to the path
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

from rich.console import Console


# --- Mock Config Fixture ---
@pytest.fixture
def mock_cfg_helper(mocker):
    mock_args = argparse.Namespace(profile='default')
    mock_config_manager = MagicMock()
    class MockConfigHelper:
        def __init__(self, manager, args): self.manager = manager; self.args = args; self.profile = getattr(args, 'profile', 'default') or 'default'
        def __call__(self, key, default_value=None, arg_value=None):
             if arg_value is not None: return arg_value
             if key in self.manager._mock_values: return self.manager._mock_values[key]
             return default_value
        def get_list(self, key, default_value=None):
            val = self(key, default_value)
            if isinstance(val, str): return [i.strip() for i in val.split(',') if i.strip()]
            if isinstance(val, list): return val
            return default_value if isinstance(default_value, list) else []
    mock_config_manager._mock_values = {}
    helper = MockConfigHelper(mock_config_manager, mock_args)
    helper.manager = mock_config_manager
    return helper


# --- Console Fixture ---
@pytest.fixture
def console():
    """A rich console writing into a buffer; read it with console.file.getvalue()."""
    return Console(file=io.StringIO(), width=400, highlight=False, color_system=None)


# --- Scripted Prompt Answers ---
class ScriptedAsk:
    """
    Stand-in for the interactive prompt. Returns the scripted answers in order
    and raises EOFError once they run out, like a closed stdin.
    """
    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, message):
        self.prompts.append(message)
        if not self.answers:
            raise EOFError()
        return self.answers.pop(0)


@pytest.fixture
def scripted_ask():
    def _factory(*answers):
        return ScriptedAsk(answers)
    return _factory


# --- Source / Destination Trees ---
@pytest.fixture
def source_dir(tmp_path: Path):
    """Flat source with two videos and one unrelated file."""
    src = tmp_path / "source"
    src.mkdir()
    (src / "b.mkv").write_text("video b")
    (src / "a.mkv").write_text("video a")
    (src / "notes.txt").write_text("not a video")
    return src


@pytest.fixture
def nested_source_dir(tmp_path: Path):
    """
    source/
      top.mp4
      Season 1/ep1.mkv
      Season 1/extras/making-of.mkv
      Specials/sp1.mkv
    """
    src = tmp_path / "nested_source"
    (src / "Season 1" / "extras").mkdir(parents=True)
    (src / "Specials").mkdir()
    (src / "top.mp4").write_text("top")
    (src / "Season 1" / "ep1.mkv").write_text("ep1")
    (src / "Season 1" / "extras" / "making-of.mkv").write_text("extra")
    (src / "Specials" / "sp1.mkv").write_text("sp1")
    return src


@pytest.fixture
def dest_dir(tmp_path: Path):
    dst = tmp_path / "library"
    dst.mkdir()
    return dst
