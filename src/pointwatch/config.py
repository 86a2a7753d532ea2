import copy
from pathlib import Path
from typing import Optional, Union

import yaml
from loguru import logger

from pointwatch.errors import ConfigError

DEFAULT_CONFIG: dict = {
    'system': {
        'version': '0.1.0',
        'log_level': 'INFO',
        'log_file': 'logs/pointwatch.log',
        'history_file': 'logs/history.jsonl',
    },
    'sensor': {
        'port': None,
        'baudrate': 115200,
        'sample_interval': 0.08,
    },
    'motion': {
        'wear_on_swinging_hand': True,
        'swing_timeout': 0.5,
        'debounce_interval': 0.3,
        'peak_ratio': 0.85,
        'recent_shots': 20,
        'point_association_window': 3.0,
    },
    'rally': {
        'serve_window': 3.0,
        'pending_point_window': 3.0,
    },
    'calibration': {
        'magnitude_history': 200,
        'rotation_history': 100,
        'min_samples': 20,
        'confidence_gate': 0.7,
        'reset_on_new_match': True,
    },
    'match': {
        'undo_depth': 10,
        'pickleball': {
            'score_limit': 11,
            'win_by_two': True,
            'match_format': 'single',
            'first_to_count': 2,
            'doubles': False,
        },
        'tennis': {
            'scoring_system': 'traditional',
            'golden_point': False,
            'match_format': 'best_of_3',
            'first_to_count': 2,
            'doubles': False,
            'tiebreak_at': 6,
            'tiebreak_points': 7,
            'final_set_tiebreak': True,
            'final_set_tiebreak_points': 10,
        },
        'padel': {
            'scoring_system': 'traditional',
            'golden_point': True,
            'match_format': 'best_of_3',
            'first_to_count': 2,
        },
    },
    'health': {
        'summary_timeout': 2.0,
        'poll_interval': 0.1,
    },
}

_POSITIVE_KEYS = [
    ('motion', 'swing_timeout'),
    ('motion', 'debounce_interval'),
    ('motion', 'recent_shots'),
    ('rally', 'serve_window'),
    ('rally', 'pending_point_window'),
    ('calibration', 'magnitude_history'),
    ('calibration', 'rotation_history'),
    ('match', 'undo_depth'),
    ('health', 'poll_interval'),
]


def default_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def validate_config(config: dict) -> dict:
    for section, key in _POSITIVE_KEYS:
        try:
            value = config[section][key]
        except (KeyError, TypeError):
            raise ConfigError(f"Missing config value {section}.{key}")
        if not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{section}.{key} must be a positive number, got {value!r}")

    ratio = config['motion']['peak_ratio']
    if not 0 < ratio <= 1:
        raise ConfigError(f"motion.peak_ratio must be in (0, 1], got {ratio!r}")

    gate = config['calibration']['confidence_gate']
    if not 0 <= gate <= 1:
        raise ConfigError(f"calibration.confidence_gate must be in [0, 1], got {gate!r}")

    return config


def load_config(path: Optional[Union[str, Path]] = None) -> dict:
    """Load a YAML config file and merge it over the defaults.

    A missing path (or None) yields the defaults; a malformed file raises
    ConfigError.
    """
    config = default_config()
    if path is None:
        return validate_config(config)

    config_file = Path(path)
    if not config_file.exists():
        logger.warning(f"Config file {config_file} not found, using defaults")
        return validate_config(config)

    try:
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {config_file}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_file} must contain a mapping at the top level")

    _merge(config, loaded)
    logger.info(f"Configuration loaded from {config_file}")
    return validate_config(config)
