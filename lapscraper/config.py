"""Loading of the YAML scrape configuration."""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Dict

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file is missing or malformed."""
    pass


@dataclass
class RaceConfig:
    url: str
    race_id: int


@dataclass
class Config:
    database_url: str
    team_mappings: Dict[str, int] = field(default_factory=dict)
    races: List[RaceConfig] = field(default_factory=list)
    request_timeout: float = 30.0
    request_delay: float = 0.0


def _parse_race(index: int, race_data) -> RaceConfig:
    if not isinstance(race_data, dict):
        raise ConfigError(f"Race #{index} must be a mapping, got {race_data!r}")
    try:
        return RaceConfig(url=str(race_data['url']), race_id=int(race_data['race_id']))
    except KeyError as e:
        raise ConfigError(f"Race #{index} is missing {e.args[0]!r}")
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Race #{index} has an invalid race_id: {e}")


def load_config(config_path: str) -> Config:
    """Load scrape configuration from a YAML file.

    The DATABASE_URL environment variable, when set, takes precedence over
    the database_url in the file.
    """
    try:
        with open(config_path, 'r') as file:
            data = yaml.safe_load(file) or {}
    except OSError as e:
        raise ConfigError(f"Error reading config file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    database_url = os.getenv('DATABASE_URL') or data.get('database_url')
    if not database_url:
        raise ConfigError("database_url not set in config or DATABASE_URL environment variable")

    team_mappings = data.get('team_mappings') or {}
    if not isinstance(team_mappings, dict):
        raise ConfigError("team_mappings must be a mapping of team name to id")
    try:
        team_mappings = {str(name): int(team_id) for name, team_id in team_mappings.items()}
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid team id in team_mappings: {e}")

    races_data = data.get('races') or []
    if not isinstance(races_data, list):
        raise ConfigError("races must be a list")
    races = [_parse_race(i, race) for i, race in enumerate(races_data)]

    try:
        request_timeout = float(data.get('request_timeout', 30.0))
        request_delay = float(data.get('request_delay', 0.0))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid request setting: {e}")

    logger.info(f"Loaded {len(races)} races and {len(team_mappings)} team mappings from {config_path}")
    return Config(
        database_url=database_url,
        team_mappings=team_mappings,
        races=races,
        request_timeout=request_timeout,
        request_delay=request_delay,
    )
