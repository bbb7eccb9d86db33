"""League settings loaded from data/league_config.json."""

import os
from functools import lru_cache
from pathlib import Path

from .schemas import LeagueConfig
from .utils import load_json

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / 'data' / 'league_config.json'
CONFIG_ENV_VAR = 'THREEMAN_CONFIG'


def config_path() -> Path:
    """Config file location: $THREEMAN_CONFIG if set, else the bundled data file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_PATH


@lru_cache(maxsize=1)
def get_config() -> LeagueConfig:
    """
    Read and validate the league config once per process.

    Services take an explicit LeagueConfig when given one and fall back to this.

    Raises:
        FileNotFoundError: If the config file is missing
        ValueError: If a setting is out of range or unknown
    """
    return load_json(config_path(), schema=LeagueConfig)


def clear_config_cache() -> None:
    """Forget the cached config so the next get_config() re-reads the file."""
    get_config.cache_clear()
