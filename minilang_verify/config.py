"""Analysis configuration.

Loaded from ``.minilangrc.json`` (or ``minilang.config.json``) found by
walking up from the working directory; defaults apply when there is none.

Example .minilangrc.json:
    {
      "unroll_depth": 3,
      "solver_timeout_ms": 5000,
      "max_models": 2,
      "log_level": "INFO"
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

_CONFIG_FILES = [
    ".minilangrc.json",
    "minilang.config.json",
]


@dataclass
class AnalysisConfig:
    # show the optimized SSA alongside the raw one
    optimize: bool = True
    # feed the optimized SSA to the encoder instead of the raw SSA
    encode_optimized: bool = False
    # None: loops are encoded once through phi nodes
    unroll_depth: Optional[int] = None
    solver_timeout_ms: int = 10000
    max_models: int = 1
    rename_suffix: str = "_b"
    log_level: str = "WARNING"

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.unroll_depth is not None and (
                not isinstance(self.unroll_depth, int) or self.unroll_depth < 1):
            raise ConfigError(f"unroll_depth must be a positive integer, got {self.unroll_depth!r}")
        if not isinstance(self.solver_timeout_ms, int) or self.solver_timeout_ms <= 0:
            raise ConfigError(f"solver_timeout_ms must be a positive integer, got {self.solver_timeout_ms!r}")
        if not isinstance(self.max_models, int) or self.max_models < 1:
            raise ConfigError(f"max_models must be an integer of at least 1, got {self.max_models!r}")
        if not isinstance(self.rename_suffix, str) or (
                not self.rename_suffix or self.rename_suffix[-1].isdigit()):
            raise ConfigError("rename_suffix must be non-empty and must not end in a digit")
        if self.encode_optimized and not self.optimize:
            raise ConfigError("encode_optimized requires optimize")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"unknown log level {self.log_level!r}")


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def load_config(path: Optional[str] = None, start_dir: str = ".") -> AnalysisConfig:
    """Load configuration from a JSON file, or defaults when none is found.

    An explicitly given path must exist and parse.
    """
    explicit = path is not None
    if path is None:
        path = find_config(start_dir)
    if path is None:
        return AnalysisConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        if explicit:
            raise ConfigError(f"config file not found: {path}") from e
        return AnalysisConfig()
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON: {e}") from e
    logger.debug("loaded config from %s", path)
    return config_from_dict(data)


def config_from_dict(data: Dict[str, Any]) -> AnalysisConfig:
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")
    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("ignoring unknown config keys: %s", ", ".join(unknown))
    return AnalysisConfig(**{k: v for k, v in data.items() if k in known})
