"""
Iron Heart Settings
Groups the per-module configuration and merges a TOML file over the defaults
"""

import logging
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Union, get_type_hints

from pydantic import TypeAdapter, ValidationError

from iron_heart.errors import SettingsError
from iron_heart.osc.config import OSCConfig
from iron_heart.sources.ble.config import BLEConfig
from iron_heart.sources.websocket.config import WebSocketConfig

logger = logging.getLogger(__name__)

CONFIG_NAME = 'iron_heart.toml'


@dataclass
class MiscConfig:
    """Output files and logging."""

    write_bpm_to_file: bool = False
    write_bpm_file_path: str = 'bpm.txt'
    log_sessions_to_csv: bool = False
    log_sessions_csv_path: str = 'session_logs'
    log_level: str = 'INFO'
    log_file: str = ''  # Empty disables the file handler


@dataclass
class Settings:
    """All settings of one run."""

    osc: OSCConfig = field(default_factory=OSCConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)
    ble: BLEConfig = field(default_factory=BLEConfig)
    misc: MiscConfig = field(default_factory=MiscConfig)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings, starting from the defaults.

    A missing file is not an error: the defaults are used. Every section
    and key in the file must be known.

    Args:
        path: TOML file. Defaults to iron_heart.toml in the working directory.

    Returns:
        Settings with the file's values applied.

    Raises:
        SettingsError if the file is not valid TOML, has unknown keys or
        holds a value of the wrong type.
    """
    config_path = Path(path) if path else Path.cwd() / CONFIG_NAME
    settings = Settings()

    if not config_path.exists():
        logger.info(f"No settings file at {config_path}, using defaults")
        return settings

    try:
        data = tomllib.loads(config_path.read_text(encoding='utf-8'))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise SettingsError(f"Could not read {config_path}: {e}") from e

    for section_name, values in data.items():
        if section_name not in {f.name for f in fields(Settings)}:
            raise SettingsError(f"Unknown settings section [{section_name}] in {config_path}")
        if not isinstance(values, dict):
            raise SettingsError(f"Settings section [{section_name}] must be a table")

        section = getattr(settings, section_name)
        unknown = set(values) - {f.name for f in fields(section)}
        if unknown:
            raise SettingsError(
                f"Unknown keys in [{section_name}]: {', '.join(sorted(unknown))}"
            )
        setattr(settings, section_name, replace(section, **_checked(section_name, section, values)))

    logger.info(f"✓ Settings loaded from {config_path}")
    return settings


def _checked(section_name: str, section, values: dict) -> dict:
    """
    Validate every value against its field annotation.

    Validation is strict: "9000" is not a port and true is not a number.
    Integers are accepted for float fields.

    Raises:
        SettingsError naming the first offending key.
    """
    hints = get_type_hints(type(section))
    checked = {}
    for key, value in values.items():
        try:
            checked[key] = TypeAdapter(hints[key]).validate_python(value, strict=True)
        except ValidationError as e:
            message = e.errors()[0]['msg']
            raise SettingsError(f"Invalid value for {section_name}.{key} = {value!r}: {message}") from e
    return checked
