"""
Configuration management and loading.

Builds limiter configuration from YAML files.
"""

from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List

import yaml

from token_limiter.core.evaluator import DEFAULT_THRESHOLDS, LimitSpec, QuotaConfig
from token_limiter.core.limiter import DEFAULT_LIMIT, DEFAULT_WINDOW

ALLOWED_TOP_KEYS = {
    'limit', 'window_seconds', 'limits', 'burst_percent',
    'track_cost', 'cost_limit', 'thresholds'
}
ALLOWED_LIMIT_KEYS = {'tokens', 'window_seconds'}


def load_limiter_config(path: str) -> QuotaConfig:
    """Load and validate limiter configuration from YAML file.

    Unknown keys are rejected so typos never silently fall back to
    defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated QuotaConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Limiter config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    return parse_limiter_config(raw_config)


def parse_limiter_config(raw_config: Dict[str, Any]) -> QuotaConfig:
    """Build QuotaConfig from an already parsed mapping.

    Raises:
        ValueError: If configuration is invalid
    """
    unknown_keys = set(raw_config.keys()) - ALLOWED_TOP_KEYS
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    if 'limits' in raw_config:
        if 'limit' in raw_config or 'window_seconds' in raw_config:
            raise ValueError("Use either 'limits' or 'limit'/'window_seconds', not both")
        limits = _parse_limits(raw_config['limits'])
    else:
        limits = [LimitSpec(
            tokens=_number(raw_config.get('limit', DEFAULT_LIMIT), 'limit'),
            window=_seconds(
                raw_config.get('window_seconds', DEFAULT_WINDOW.total_seconds()),
                'window_seconds'
            )
        )]

    track_cost = raw_config.get('track_cost', False)
    if not isinstance(track_cost, bool):
        raise ValueError("'track_cost' must be a boolean")

    cost_limit = raw_config.get('cost_limit')
    if cost_limit is not None:
        cost_limit = _number(cost_limit, 'cost_limit')

    thresholds = raw_config.get('thresholds', list(DEFAULT_THRESHOLDS))
    if not isinstance(thresholds, list):
        raise ValueError("'thresholds' must be a list")

    return QuotaConfig(
        limits=tuple(limits),
        burst_percent=_number(raw_config.get('burst_percent', 0), 'burst_percent'),
        cost_limit=cost_limit,
        track_cost=track_cost,
        thresholds=tuple(_number(t, 'thresholds') for t in thresholds)
    )


def _parse_limits(data: Any) -> List[LimitSpec]:
    """Parse the 'limits' section.

    Args:
        data: Raw 'limits' value

    Returns:
        List of validated LimitSpec

    Raises:
        ValueError: If the section is invalid
    """
    if not isinstance(data, list) or not data:
        raise ValueError("'limits' must be a non-empty list")

    limits = []
    for index, item in enumerate(data):
        path = f"limits[{index}]"
        if not isinstance(item, dict):
            raise ValueError(f"{path} must be a dictionary")
        unknown_keys = set(item.keys()) - ALLOWED_LIMIT_KEYS
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
        for key in sorted(ALLOWED_LIMIT_KEYS):
            if key not in item:
                raise ValueError(f"Missing required '{key}' in {path}")
        limits.append(LimitSpec(
            tokens=_number(item['tokens'], f"{path}.tokens"),
            window=_seconds(item['window_seconds'], f"{path}.window_seconds")
        ))
    return limits


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return value


def _seconds(value: Any, path: str) -> timedelta:
    return timedelta(seconds=_number(value, path))
