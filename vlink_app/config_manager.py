# vlink_app/config_manager.py

import logging
import argparse
from pathlib import Path
from typing import Optional, List, Dict, Any

import platformdirs
import pytomlpp
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigError
from .sequence import SEQUENCE_TOKEN_PATTERN

log = logging.getLogger(__name__)
DEFAULT_CONFIG_FILENAME = "vlink.toml"
APP_NAME = "vlink"


class BaseProfileSettings(BaseModel):
    # Discovery
    video_extensions: Optional[List[str]] = Field(default_factory=lambda: [".mp4", ".mkv"], description="File extensions picked up by the verbatim and sequential modes (case-insensitive).")
    filter_regex: Optional[str] = Field(default=None, description="Regular expression searched in each file name; replaces the extension filter when set.")

    # Numbering
    default_sequence: Optional[str] = Field(default="s01e01", description="Sequence used when none is given, e.g. 's01e01' or 's01e01-s01e12'.")

    # Prompts
    skip_keyword: Optional[str] = Field(default="pass", description="Answer that skips the current item.")
    end_keyword: Optional[str] = Field(default="end", description="Answer that stops processing all remaining items.")
    overwrite_on_blank: Optional[bool] = Field(default=True, description="Blank answer on a numbered-name collision overwrites the existing file without a second confirmation.")

    # Undo
    ledger_path: Optional[str] = Field(default=None, description="File listing the paths created by the last run (default: vlink_last_run.log beside the program).")

    # Logging Options
    log_file: Optional[str] = Field(default=None, description="Path to log file (e.g., vlink.log).")
    log_level: Optional[str] = Field(default='INFO', description="Logging level: DEBUG, INFO, WARNING, ERROR.")

    @field_validator('log_level', mode='before')
    @classmethod
    def check_log_level(cls, v: Any) -> Optional[str]:
        if v is not None and isinstance(v, str) and v.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR']:
            raise ValueError("log_level must be one of DEBUG, INFO, WARNING, ERROR")
        return v.upper() if isinstance(v, str) else None

    @field_validator('video_extensions', mode='before')
    @classmethod
    def check_video_extensions(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return None
        if isinstance(v, str):
            v = [item.strip() for item in v.split(',') if item.strip()]
        if not isinstance(v, list):
            raise ValueError("video_extensions must be a list of extensions")
        return [ext.lower() if ext.startswith('.') else f".{ext.lower()}" for ext in v]

    @field_validator('skip_keyword', 'end_keyword', mode='before')
    @classmethod
    def check_keyword(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if not isinstance(v, str) or not v.strip():
            raise ValueError("keywords must be non-empty strings")
        v = v.strip()
        if SEQUENCE_TOKEN_PATTERN.match(v):
            raise ValueError(f"'{v}' looks like a sequence token and cannot be used as a keyword")
        return v

    @field_validator('default_sequence', mode='before')
    @classmethod
    def check_default_sequence(cls, v: Any) -> Optional[str]:
        if v is not None and (not isinstance(v, str) or not SEQUENCE_TOKEN_PATTERN.match(v.strip())):
            raise ValueError("default_sequence must look like 's01e01' or 's01e01-s01e12'")
        return v.strip() if isinstance(v, str) else None

    @model_validator(mode='after')
    def check_keywords_distinct(self):
        if self.skip_keyword is not None and self.skip_keyword == self.end_keyword:
            raise ValueError("skip_keyword and end_keyword must differ")
        return self


class DefaultSettings(BaseProfileSettings):
    pass

class RootConfigModel(BaseModel):
    default: DefaultSettings = Field(default_factory=DefaultSettings)
    model_config = {'extra': 'allow'}


def _toml_value(value: Any) -> str:
    if isinstance(value, str):
        escaped = value.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return str(value)


def generate_default_toml_content() -> str:
    default_settings = DefaultSettings()
    content_lines = ["# vlink default configuration file"]
    content_lines.append("# Command-line options override these values; named profiles override [default].\n")

    sections: Dict[str, List[str]] = {
        "Discovery": ['video_extensions', 'filter_regex'],
        "Numbering": ['default_sequence'],
        "Prompts": ['skip_keyword', 'end_keyword', 'overwrite_on_blank'],
        "Undo": ['ledger_path'],
        "Logging Options": ['log_file', 'log_level'],
    }

    content_lines.append("[default]")
    for section_name, keys in sections.items():
        content_lines.append(f"\n  # --- {section_name} ---")
        for key in keys:
            field_info = BaseProfileSettings.model_fields[key]
            default_value = getattr(default_settings, key)
            if field_info.description:
                content_lines.append(f"  # {field_info.description}")
            if default_value is None:
                content_lines.append(f"  # {key} = (not set)")
                continue
            content_lines.append(f"  {key} = {_toml_value(default_value)}")

    content_lines.append("\n# You can create other profiles, e.g.:")
    content_lines.append("# [anime]")
    content_lines.append("# video_extensions = [\".mkv\"]")
    content_lines.append("# default_sequence = \"s01e01-s01e12\"")

    return "\n".join(content_lines) + "\n"


def write_default_config(target_path: Path, force: bool = False) -> Path:
    target_path = Path(target_path).expanduser().resolve()
    if target_path.exists() and not force:
        raise ConfigError(f"Config file '{target_path}' already exists, not overwriting.")
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_text(generate_default_toml_content(), encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Could not write configuration file to '{target_path}': {e}") from e
    log.info(f"Default configuration generated at {target_path}")
    return target_path


class ConfigManager:
    def __init__(self, config_path_override: Optional[Path] = None):
        self.config_path = self._resolve_config_path(config_path_override)
        self._raw_toml_content_str: Optional[str] = None
        self._config = self._load_config()
        log.debug(f"Config path used: {self.config_path}")

    def _resolve_config_path(self, config_path_override: Optional[Path]) -> Path:
        if config_path_override:
            p = Path(config_path_override).expanduser()
            log.debug(f"Using explicit config path target: {p.resolve()}")
            return p.resolve()

        cwd_path = Path.cwd() / DEFAULT_CONFIG_FILENAME
        if cwd_path.is_file():
            log.debug(f"Found config file in current directory: {cwd_path}")
            return cwd_path.resolve()

        user_config_path = Path(platformdirs.user_config_dir(APP_NAME, ensure_exists=False)) / DEFAULT_CONFIG_FILENAME
        if user_config_path.is_file():
            log.debug(f"Found config file in user config directory: {user_config_path}")
            return user_config_path.resolve()

        proj_path = Path(__file__).parent.parent.resolve() / DEFAULT_CONFIG_FILENAME
        if proj_path.is_file():
            log.debug(f"Found config file in project directory: {proj_path}")
            return proj_path

        log.debug(f"No config file found. Preferred location would be: {user_config_path}")
        return user_config_path.resolve()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.is_file():
            log.debug(f"Config file not found at '{self.config_path}'. Using internal defaults.")
            self._raw_toml_content_str = None
            return RootConfigModel().model_dump()

        try:
            self._raw_toml_content_str = self.config_path.read_text(encoding='utf-8')
            if not self._raw_toml_content_str.strip():
                log.warning(f"Config file '{self.config_path}' is empty. Using internal defaults.")
                return RootConfigModel().model_dump()
            cfg_dict = pytomlpp.loads(self._raw_toml_content_str)
            log.info(f"Loaded configuration from '{self.config_path}'")
        except pytomlpp.DecodeError as e_toml:
            raise ConfigError(f"Failed to parse TOML config '{self.config_path}': {e_toml}")
        except OSError as e_os:
            raise ConfigError(f"Failed to read config file '{self.config_path}': {e_os}")

        try:
            validated_config = RootConfigModel.model_validate(cfg_dict)
            # named profiles are validated with the same model
            for name, section in cfg_dict.items():
                if name != 'default' and isinstance(section, dict):
                    BaseProfileSettings.model_validate(section)
        except ValidationError as e_val:
            error_msgs = [f"  - Field `{' -> '.join(map(str, err['loc']))}`: {err['msg']}" for err in e_val.errors()]
            error_summary = f"Config file '{self.config_path}' validation failed:\n" + "\n".join(error_msgs)
            log.error(error_summary)
            raise ConfigError(error_summary) from e_val
        log.debug("Config validation successful.")
        return validated_config.model_dump()

    def get_raw_toml_content(self) -> Optional[str]:
        return self._raw_toml_content_str

    def get_value(self, key: str, profile: str = 'default', command_line_value: Any = None, default_value: Any = None) -> Any:
        if command_line_value is not None:
            return command_line_value

        profile_settings_dict = self._config.get(profile, {})
        if isinstance(profile_settings_dict, dict) and profile_settings_dict.get(key) is not None:
            return profile_settings_dict[key]
        if profile != 'default' and profile not in self._config:
            log.debug(f"Profile '{profile}' not found in config. Using default settings.")

        default_settings_dict = self._config.get('default', {})
        if isinstance(default_settings_dict, dict) and default_settings_dict.get(key) is not None:
            return default_settings_dict[key]

        if default_value is None and key in BaseProfileSettings.model_fields:
            field_info = BaseProfileSettings.model_fields[key]
            if field_info.default_factory is not None:
                return field_info.default_factory()
            return field_info.default

        return default_value


class ConfigHelper:
    def __init__(self, config_manager: ConfigManager, args_ns: argparse.Namespace):
        self.manager = config_manager
        self.args = args_ns
        self.profile = getattr(args_ns, 'profile', 'default') or 'default'

    def __call__(self, key: str, default_value: Any = None, arg_value: Any = None) -> Any:
        cmd_line_val = arg_value if arg_value is not None else getattr(self.args, key, None)
        return self.manager.get_value(key, self.profile, cmd_line_val, default_value)

    def get_list(self, key: str, default_value: Optional[List[Any]] = None) -> List[Any]:
        cmd_line_val_str = getattr(self.args, key, None)
        cmd_line_list: Optional[List[str]] = None
        if isinstance(cmd_line_val_str, str):
            cmd_line_list = [item.strip() for item in cmd_line_val_str.split(',') if item.strip()]

        val = self.manager.get_value(key, self.profile, cmd_line_list, default_value)
        if isinstance(val, list):
            return val
        if isinstance(val, str):
            return [item.strip() for item in val.split(',') if item.strip()]
        return default_value if isinstance(default_value, list) else []
